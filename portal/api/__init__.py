"""
Portal API Package

- routers: page and event endpoints
- services: business logic behind the routers
"""

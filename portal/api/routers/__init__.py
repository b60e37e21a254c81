"""
Portal API Routers

Routers:
- pages_router: landing, dashboard, favicon and the 404 page
- events_router: admin-only event endpoints
"""

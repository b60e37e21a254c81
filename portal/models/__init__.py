"""
Portal ORM Models

- models: users, login sessions and events
"""

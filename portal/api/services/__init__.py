"""
Portal API Services

Services:
- event_service: Event creation and listing
"""

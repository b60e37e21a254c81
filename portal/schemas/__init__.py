"""
Portal Pydantic Schemas

This package contains Pydantic models for request/response validation
in the FastAPI application.

Schemas:
- event_schema: Event creation and listing schemas
"""

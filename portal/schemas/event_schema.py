from __future__ import annotations

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventCreate(BaseModel):
    """Request schema for creating an event."""

    name: str = Field(..., min_length=1, max_length=255, description="Event name")
    event_date: datetime.date

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    event_date: datetime.date
    created_by: Optional[int] = None
    created_at: datetime.datetime


class EventListResponse(BaseModel):
    events: list[EventOut]
    total: int

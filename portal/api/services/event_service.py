"""Event Service - business logic for portal events."""

import datetime
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth.sessions import StorageError
from portal.models.models import Event

logger = logging.getLogger(__name__)


class EventService:
    """Service for event operations."""

    def __init__(self, db: Session):
        self.db = db

    def list_events(self, limit: int = 50) -> tuple[list[Event], int]:
        """
        List events, most recent event date first.

        Returns:
            Tuple of (events, total count)
        """
        try:
            total = self.db.execute(select(func.count(Event.id))).scalar_one()
            events = (
                self.db.execute(
                    select(Event)
                    .order_by(Event.event_date.desc(), Event.id.desc())
                    .limit(limit)
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"DB Failure: {e}") from e
        return list(events), total

    def create_event(
        self,
        name: str,
        event_date: datetime.date,
        created_by: Optional[int] = None,
    ) -> Event:
        event = Event(name=name, event_date=event_date, created_by=created_by)
        try:
            self.db.add(event)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"DB Failure: {e}") from e

        logger.info(f"Event {event.id} '{name}' created by user {created_by}")
        return event

"""Session repository - server-side login sessions."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.models.models import User, UserSession, utcnow

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a database operation fails."""

    pass


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class SessionRecord:
    token: str
    user_id: int
    creation_time: datetime

    def expires_at(self, max_age: timedelta) -> datetime:
        return self.creation_time + max_age

    def is_expired(self, max_age: timedelta, now: datetime) -> bool:
        """A session is expired from the instant creation_time + max_age is reached."""
        return self.expires_at(max_age) <= now


class SessionRepository:
    """
    Persistence for login sessions.

    Every method is its own unit of work: it commits on success, rolls
    back and raises StorageError on failure.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, token: str) -> Optional[SessionRecord]:
        try:
            row = self.db.get(UserSession, token)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"DB Failure: {e}") from e

        if row is None:
            return None
        return SessionRecord(
            token=row.token,
            user_id=row.user_id,
            creation_time=as_utc(row.creation_time),
        )

    def create(self, token: str, user_id: int, now: Optional[datetime] = None) -> SessionRecord:
        creation_time = now or utcnow()
        try:
            self.db.add(UserSession(token=token, user_id=user_id, creation_time=creation_time))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"DB Failure: {e}") from e

        logger.info(f"Created session for user {user_id}")
        return SessionRecord(token=token, user_id=user_id, creation_time=as_utc(creation_time))

    def delete(self, token: str) -> bool:
        """
        Delete a session.

        Returns:
            True if a row was removed
        """
        try:
            result = self.db.execute(delete(UserSession).where(UserSession.token == token))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"DB Failure: {e}") from e
        return result.rowcount > 0

    def get_user(self, token: str) -> Optional[User]:
        """Look up the user owning a session."""
        query = (
            select(User)
            .join(UserSession, UserSession.user_id == User.id)
            .where(UserSession.token == token)
        )
        try:
            return self.db.execute(query).scalar_one_or_none()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"DB Failure: {e}") from e

    def purge_expired(self, max_age: timedelta, now: Optional[datetime] = None) -> int:
        """
        Remove sessions whose lifetime has elapsed.

        Returns:
            Number of sessions removed
        """
        cutoff = (now or utcnow()) - max_age
        try:
            result = self.db.execute(
                delete(UserSession).where(UserSession.creation_time <= cutoff)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"DB Failure: {e}") from e

        logger.info(f"Purged {result.rowcount} expired sessions")
        return result.rowcount

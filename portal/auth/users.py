"""User records keyed by the identity asserted by CAS."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth.cas import CasIdentity
from portal.auth.sessions import StorageError
from portal.models.models import BusinessCategory, User

logger = logging.getLogger(__name__)

# businessCategory value the CAS server sends for students
STUDENT_MARKER = "ELEVE"


def map_business_category(value: str) -> BusinessCategory:
    """Closed two-way classification: the student marker, or TEACHER."""
    if value == STUDENT_MARKER:
        return BusinessCategory.STUDENT
    return BusinessCategory.TEACHER


class UserService:
    """Service for user lookups and the login-time upsert."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def upsert(self, identity: CasIdentity) -> User:
        """
        Return the user for a CAS identity, creating it on first login.

        Runs as one transaction. A concurrent first login for the same
        email trips the unique constraint; the loser rolls back and
        re-reads the winner's row.

        Raises:
            StorageError: On any database failure (transaction rolled back)
        """
        try:
            user = self.get_by_email(identity.email)
            if user is not None:
                self.db.commit()
                return user

            user = User(
                email=identity.email,
                full_name=identity.full_name,
                department_number=identity.department_number,
                business_category=map_business_category(identity.business_category),
            )
            self.db.add(user)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                user = self.get_by_email(identity.email)
                if user is None:
                    raise
                self.db.commit()
                return user

            logger.info(f"Created {user.business_category.value} user: {user.email}")
            return user

        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"DB Failure: {e}") from e

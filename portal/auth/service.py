"""Authentication service - CAS login flow and session resolution."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from portal.auth.cas import CasClient
from portal.auth.cookies import SESSION_TOKEN_KEY, CookieDecodeError, SignedCookieCodec
from portal.auth.sessions import SessionRepository, StorageError
from portal.auth.users import UserService
from portal.core.keys import generate_session_token
from portal.core.settings import Settings
from portal.models.models import utcnow

logger = logging.getLogger(__name__)


class MissingTicketError(Exception):
    """Raised when the CAS callback arrives without a ticket."""

    pass


@dataclass(frozen=True)
class SessionContext:
    """Validated session attached to a request by the authentication gate."""

    token: str
    user_id: int
    creation_time: datetime


@dataclass(frozen=True)
class IssuedSession:
    token: str
    cookie_value: str
    user_id: int


class AuthService:
    """Service for the CAS login flow."""

    def __init__(self, db: Session, settings: Settings, cas_client: CasClient):
        self.settings = settings
        self.cas = cas_client
        self.sessions = SessionRepository(db)
        self.users = UserService(db)
        self.codec = SignedCookieCodec.from_settings(settings.security.session.token)

    @property
    def max_age(self) -> timedelta:
        return timedelta(seconds=self.settings.security.session.token.cookie_max_age)

    def resolve_session(
        self, cookie_value: Optional[str], now: Optional[datetime] = None
    ) -> Optional[SessionContext]:
        """
        Resolve a session cookie to a live session.

        Every failure (no cookie, undecodable cookie, no token, unknown
        token, storage error, expired session) yields None.
        """
        if not cookie_value:
            return None

        try:
            payload = self.codec.decode(cookie_value)
        except CookieDecodeError as e:
            logger.info(f"Rejected session cookie: {e}")
            return None

        token = payload.get(SESSION_TOKEN_KEY)
        if not token or not isinstance(token, str):
            return None

        try:
            record = self.sessions.get(token)
        except StorageError as e:
            logger.warning(str(e))
            return None

        if record is None:
            return None
        if record.is_expired(self.max_age, now or utcnow()):
            logger.debug(f"Session for user {record.user_id} has expired")
            return None

        return SessionContext(
            token=record.token,
            user_id=record.user_id,
            creation_time=record.creation_time,
        )

    def complete_login(self, ticket: Optional[str]) -> IssuedSession:
        """
        Exchange a CAS ticket for a new session.

        Steps run strictly in order: validate ticket, upsert user, persist
        session, encode cookie. The user upsert commits on its own, so a
        failure afterwards leaves a user without a session; the next login
        simply repeats the flow.

        Raises:
            MissingTicketError: Empty ticket
            CasAuthenticationError: Ticket rejected by the CAS server
            CasProviderError: CAS server unreachable or malformed answer
            StorageError: Database failure
        """
        if not ticket:
            raise MissingTicketError("Ticket is missing")

        identity = self.cas.validate(ticket, self.settings.callback_url)
        user = self.users.upsert(identity)

        token = generate_session_token()
        self.sessions.create(token, user.id)
        cookie_value = self.codec.encode({SESSION_TOKEN_KEY: token})

        logger.info(f"Successful login for user: {user.email}")
        return IssuedSession(token=token, cookie_value=cookie_value, user_id=user.id)

    def logout(self, token: str) -> None:
        """Delete a session; storage errors are logged, not raised."""
        try:
            self.sessions.delete(token)
        except StorageError as e:
            logger.error(str(e))

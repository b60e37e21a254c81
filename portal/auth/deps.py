"""FastAPI dependencies for authentication and authorization."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from portal.auth.cas import CasClient
from portal.auth.service import AuthService, SessionContext
from portal.auth.sessions import SessionRepository
from portal.core.settings import Settings
from portal.db.deps import get_db
from portal.models.models import User

logger = logging.getLogger(__name__)

NOT_ADMIN_MESSAGE = "Sorry you're not an admin"


class SessionRequired(Exception):
    """No live session: the handler redirects to the landing page."""

    pass


class NotAdminError(Exception):
    """Authenticated, but not allowed."""

    pass


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cas_client(request: Request) -> CasClient:
    return request.app.state.cas_client


def get_auth_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    cas_client: CasClient = Depends(get_cas_client),
) -> AuthService:
    return AuthService(db, settings, cas_client)


def require_session(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> SessionContext:
    """
    Authentication gate.

    Decodes the session cookie and checks the session row and its expiry.
    On success the SessionContext is attached to ``request.state.session``.

    Raises:
        SessionRequired: For any failure (cookie cleared, redirect to landing)
    """
    cookie_name = auth.settings.security.session.token.cookie_name
    context = auth.resolve_session(request.cookies.get(cookie_name))
    if context is None:
        raise SessionRequired()
    request.state.session = context
    return context


def require_admin(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Authorization gate; runs after require_session.

    Fails closed: a missing session context, an unknown user or a
    non-admin user all end in 401.

    Raises:
        NotAdminError: When the request is not made by an admin
        StorageError: On database failure
    """
    context = getattr(request.state, "session", None)
    if not isinstance(context, SessionContext):
        logger.error("Admin check reached without an authenticated session")
        raise NotAdminError(NOT_ADMIN_MESSAGE)

    user = SessionRepository(db).get_user(context.token)
    if user is None or not user.is_admin:
        raise NotAdminError(NOT_ADMIN_MESSAGE)
    return user


# Type aliases for cleaner dependency injection
CurrentSession = Annotated[SessionContext, Depends(require_session)]
AdminUser = Annotated[User, Depends(require_admin)]

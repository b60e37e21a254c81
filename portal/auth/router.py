"""Authentication routes: CAS login, callback and logout."""

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from portal.core.settings import RouteSettings, Settings

from .cookies import clear_signed_cookie, set_signed_cookie
from .deps import CurrentSession, get_auth_service, get_settings
from .service import AuthService

logger = logging.getLogger(__name__)


def login(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    Start a login.

    A live session goes straight to the dashboard; anything else is sent
    to the CAS login page with this service's callback URL.
    """
    cookie_name = settings.security.session.token.cookie_name
    if auth.resolve_session(request.cookies.get(cookie_name)) is not None:
        return RedirectResponse(settings.routes.dashboard, status_code=status.HTTP_302_FOUND)
    return RedirectResponse(settings.cas_login_url, status_code=status.HTTP_302_FOUND)


def cas_callback(
    ticket: str = Query(default=""),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    CAS callback: validate the ticket, then issue a session cookie.

    Errors raised by the service are turned into responses by the
    application's exception handlers.
    """
    issued = auth.complete_login(ticket)

    response = RedirectResponse(settings.routes.dashboard, status_code=status.HTTP_302_FOUND)
    set_signed_cookie(response, issued.cookie_value, settings.security.session.token)
    return response


def logout(
    session: CurrentSession,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """Clear the session cookie, delete the session row, go to landing."""
    response = RedirectResponse(settings.routes.landing, status_code=status.HTTP_302_FOUND)
    clear_signed_cookie(response, settings.security.session.token)
    auth.logout(session.token)
    logger.info(f"User logged out: {session.user_id}")
    return response


def build_router(routes: RouteSettings) -> APIRouter:
    """Auth router; paths come from configuration."""
    router = APIRouter(tags=["auth"])
    router.add_api_route(routes.login, login, methods=["GET"], name="login")
    router.add_api_route(routes.cas_callback, cas_callback, methods=["GET"], name="cas_callback")
    router.add_api_route(routes.logout, logout, methods=["GET"], name="logout")
    return router

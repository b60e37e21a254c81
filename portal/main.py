# portal/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.api.routers import events_router, pages_router
from portal.auth import router as auth_router
from portal.auth.cas import CasAuthenticationError, CasClient, CasProviderError
from portal.auth.cookies import clear_signed_cookie
from portal.auth.csrf import CsrfError, CsrfProtect
from portal.auth.deps import NotAdminError, SessionRequired
from portal.auth.service import MissingTicketError
from portal.auth.sessions import StorageError
from portal.core.settings import Settings
from portal.db.engine import Database
from portal.middleware import (
    MaxBodySizeMiddleware,
    RequestTimeoutMiddleware,
    access_log,
    apply_response_headers,
)

logger = logging.getLogger(__name__)


def respond_with_message(message: str, status_code: int) -> PlainTextResponse:
    """Plain-text error response; 5xx details are logged, not sent."""
    if status_code >= 500:
        logger.error(f"5xx error: {message}")
        return PlainTextResponse("Internal server error", status_code=status_code)
    return PlainTextResponse(message, status_code=status_code)


def register_exception_handlers(app: FastAPI) -> None:
    settings: Settings = app.state.settings

    @app.exception_handler(SessionRequired)
    async def session_required(request: Request, exc: SessionRequired):
        response = RedirectResponse(settings.routes.landing, status_code=status.HTTP_302_FOUND)
        clear_signed_cookie(response, settings.security.session.token)
        return response

    @app.exception_handler(NotAdminError)
    async def not_admin(request: Request, exc: NotAdminError):
        return respond_with_message(str(exc), status.HTTP_401_UNAUTHORIZED)

    @app.exception_handler(MissingTicketError)
    async def missing_ticket(request: Request, exc: MissingTicketError):
        return respond_with_message(str(exc), status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(CasAuthenticationError)
    async def cas_rejected(request: Request, exc: CasAuthenticationError):
        logger.warning(f"CAS authentication failure: {exc}")
        return respond_with_message(
            f"Authentication failure: {exc.message}", status.HTTP_400_BAD_REQUEST
        )

    @app.exception_handler(CasProviderError)
    async def cas_unavailable(request: Request, exc: CasProviderError):
        # Infrastructure trouble, not a user error; the description is kept.
        logger.error(f"CAS provider failure: {exc}")
        return PlainTextResponse(str(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.exception_handler(StorageError)
    async def storage_failure(request: Request, exc: StorageError):
        return respond_with_message(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.exception_handler(CsrfError)
    async def csrf_failure(request: Request, exc: CsrfError):
        return respond_with_message("Forbidden - CSRF token invalid", status.HTTP_403_FORBIDDEN)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return pages_router.not_found_page()
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    cas_http_client: Optional[httpx.Client] = None,
) -> FastAPI:
    """
    Build the portal application.

    Args:
        settings: Configuration (defaults to the environment)
        database: Database wrapper (defaults to one built from settings)
        cas_http_client: HTTP client used for CAS ticket validation
    """
    settings = settings or Settings()
    settings.warn_insecure_defaults()
    database = database or Database.from_settings(settings)
    cas_client = CasClient(
        settings.cas_base_url, http_client=cas_http_client, timeout=settings.cas_timeout
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Service URL: {settings.service_base_url} (dev mode: {settings.dev_mode})")
        logger.info(f"CAS URL: {settings.cas_base_url}")
        yield
        cas_client.close()
        database.dispose("shutdown")

    app = FastAPI(title="Photos portal", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = database
    app.state.cas_client = cas_client
    app.state.csrf = CsrfProtect(settings.security.csrf)

    # Last added runs first: headers and logging wrap the deadline and body limit.
    app.add_middleware(RequestTimeoutMiddleware, timeout=settings.server.request_timeout)
    app.add_middleware(MaxBodySizeMiddleware, max_size=settings.server.max_body_size)
    app.middleware("http")(apply_response_headers)
    app.middleware("http")(access_log)

    register_exception_handlers(app)

    # Routers
    app.include_router(pages_router.build_router(settings.routes))
    app.include_router(auth_router.build_router(settings.routes))
    app.include_router(events_router.build_router(settings.routes))

    return app


# Uvicorn entrypoint: uvicorn portal.main:create_app --factory --reload

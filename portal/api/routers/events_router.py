"""
Events Router - admin-only event endpoints.

Requires an authenticated session and an admin user.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from portal.api.services.event_service import EventService
from portal.auth.csrf import verify_csrf
from portal.auth.deps import AdminUser, require_admin, require_session
from portal.core.settings import RouteSettings
from portal.db.deps import get_db
from portal.schemas.event_schema import EventCreate, EventListResponse, EventOut

logger = logging.getLogger(__name__)


async def event_payload(request: Request) -> EventCreate:
    """
    Parse the event body.

    Declared as a dependency so it resolves after the session and admin
    gates; body parameters are parsed before any dependency runs.
    """
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error", "input": {}}]
        )
    try:
        return EventCreate.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("body", *error["loc"])} for error in e.errors(include_url=False)]
        )


def list_events(
    request: Request,
    response: Response,
    limit: int = 50,
    db: Session = Depends(get_db),
) -> EventListResponse:
    """List events, most recent first."""
    events, total = EventService(db).list_events(limit=max(1, min(limit, 500)))
    request.app.state.csrf.issue(request, response)
    return EventListResponse(
        events=[EventOut.model_validate(e) for e in events],
        total=total,
    )


def create_event(
    admin: AdminUser,
    payload: EventCreate = Depends(event_payload),
    db: Session = Depends(get_db),
) -> EventOut:
    """Create an event. Unsafe method: a CSRF token is required."""
    event = EventService(db).create_event(
        name=payload.name,
        event_date=payload.event_date,
        created_by=admin.id,
    )
    return EventOut.model_validate(event)


def build_router(routes: RouteSettings) -> APIRouter:
    # Order matters: the authentication gate attaches the session context
    # that the authorization gate reads, and both run before the body is read.
    router = APIRouter(
        tags=["events"],
        dependencies=[Depends(require_session), Depends(require_admin)],
    )
    router.add_api_route(
        routes.events,
        list_events,
        methods=["GET"],
        response_model=EventListResponse,
        name="list_events",
    )
    router.add_api_route(
        routes.events,
        create_event,
        methods=["POST"],
        response_model=EventOut,
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(verify_csrf)],
        name="create_event",
        openapi_extra={
            "requestBody": {
                "required": True,
                "content": {"application/json": {"schema": EventCreate.model_json_schema()}},
            }
        },
    )
    return router

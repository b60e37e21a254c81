"""
Mock CAS server.

Implements just enough of the CAS 2.0 protocol for local development:
``/cas/login`` hands out a fixed service ticket and ``/cas/serviceValidate``
accepts only that ticket. Run it with ``portal mock-cas``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlencode, urlsplit, urlunsplit
from xml.sax.saxutils import escape

from fastapi import FastAPI, Query, status
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from portal.auth.cas import CAS_NAMESPACE

logger = logging.getLogger(__name__)


@dataclass
class MockCasConfig:
    host: str = "127.0.0.1"
    port: int = 3000
    ticket: str = "ST-12345"
    user: str = "jdoe"
    full_name: str = "John Doe"
    email: str = "jdoe@example.com"
    department_number: str = "ICM 2A"
    business_category: str = "ELEVE"


def with_ticket(service: str, ticket: str) -> str:
    """Append the ticket parameter to a service URL, keeping its query."""
    parts = urlsplit(service)
    extra = urlencode({"ticket": ticket})
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def success_document(config: MockCasConfig) -> str:
    return (
        f'<cas:serviceResponse xmlns:cas="{CAS_NAMESPACE}">\n'
        "  <cas:authenticationSuccess>\n"
        f"    <cas:user>{escape(config.user)}</cas:user>\n"
        "    <cas:attributes>\n"
        f"      <cas:cn>{escape(config.full_name)}</cas:cn>\n"
        f"      <cas:email>{escape(config.email)}</cas:email>\n"
        f"      <cas:departmentNumber>{escape(config.department_number)}</cas:departmentNumber>\n"
        f"      <cas:businessCategory>{escape(config.business_category)}</cas:businessCategory>\n"
        "    </cas:attributes>\n"
        "  </cas:authenticationSuccess>\n"
        "</cas:serviceResponse>\n"
    )


def failure_document(code: str, message: str) -> str:
    return (
        f'<cas:serviceResponse xmlns:cas="{CAS_NAMESPACE}">\n'
        f'  <cas:authenticationFailure code="{escape(code)}">\n'
        f"    {escape(message)}\n"
        "  </cas:authenticationFailure>\n"
        "</cas:serviceResponse>\n"
    )


def create_mock_cas_app(config: MockCasConfig | None = None) -> FastAPI:
    config = config or MockCasConfig()
    app = FastAPI(title="Mock CAS", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = config

    @app.get("/cas/login")
    def login(service: str = Query("")):
        if not service:
            return PlainTextResponse(f"Mock CAS: logged in as {config.user}")
        logger.info(f"Issuing ticket {config.ticket} for {service}")
        return RedirectResponse(
            with_ticket(service, config.ticket), status_code=status.HTTP_302_FOUND
        )

    @app.get("/cas/serviceValidate")
    def service_validate(service: str = Query(""), ticket: str = Query("")):
        if service and ticket == config.ticket:
            body = success_document(config)
        elif not service or not ticket:
            body = failure_document(
                "INVALID_REQUEST", "Both service and ticket parameters are required"
            )
        else:
            logger.info(f"Rejecting unknown ticket {ticket!r}")
            body = failure_document("INVALID_TICKET", f"Ticket {ticket} is not recognized")
        return Response(body, media_type="application/xml")

    return app

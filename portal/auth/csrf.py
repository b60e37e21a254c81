"""Double-submit CSRF protection.

Safe requests receive a signed CSRF cookie and the raw token in a response
header; unsafe requests must echo that token in the header or form field.
"""

import hmac
import logging
import secrets
from typing import Optional

from fastapi import Request
from starlette.responses import Response

from portal.auth.cookies import CookieDecodeError, SignedCookieCodec, set_signed_cookie
from portal.core.settings import CsrfTokenSettings

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
CSRF_TOKEN_KEY = "csrf"
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class CsrfError(Exception):
    """Raised when an unsafe request carries no valid CSRF token."""

    pass


class CsrfProtect:
    def __init__(self, settings: CsrfTokenSettings):
        self.settings = settings
        self.codec = SignedCookieCodec.from_settings(settings.token)

    def _cookie_token(self, request: Request) -> Optional[str]:
        value = request.cookies.get(self.settings.token.cookie_name)
        if not value:
            return None
        try:
            payload = self.codec.decode(value)
        except CookieDecodeError:
            return None
        token = payload.get(CSRF_TOKEN_KEY)
        return token if isinstance(token, str) and token else None

    def token_for(self, request: Request) -> str:
        """The token of a still-valid CSRF cookie, or a new one."""
        return self._cookie_token(request) or secrets.token_urlsafe(32)

    def attach(self, request: Request, response: Response, token: str) -> None:
        if self._cookie_token(request) != token:
            set_signed_cookie(
                response, self.codec.encode({CSRF_TOKEN_KEY: token}), self.settings.token
            )
        response.headers[self.settings.header_name] = token

    def issue(self, request: Request, response: Response) -> str:
        token = self.token_for(request)
        self.attach(request, response, token)
        return token

    async def verify(self, request: Request) -> None:
        if request.method in SAFE_METHODS:
            return

        expected = self._cookie_token(request)
        if expected is None:
            raise CsrfError("CSRF cookie missing or invalid")

        submitted = request.headers.get(self.settings.header_name)
        content_type = request.headers.get("content-type", "")
        if not submitted and content_type.startswith(FORM_CONTENT_TYPES):
            form = await request.form()
            submitted = form.get(self.settings.field_name)

        if not isinstance(submitted, str) or not hmac.compare_digest(submitted, expected):
            logger.warning(f"CSRF check failed for {request.method} {request.url.path}")
            raise CsrfError("CSRF token mismatch")


async def verify_csrf(request: Request) -> None:
    """FastAPI dependency guarding unsafe methods."""
    await request.app.state.csrf.verify(request)

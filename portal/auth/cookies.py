"""Signed cookie envelopes.

Cookie values are HS256 JWTs keyed by a server-side secret. The cookie name
is bound into the envelope as its audience, so a value minted for one cookie
does not decode as another.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from starlette.responses import Response

from portal.core.settings import TokenSettings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
SESSION_TOKEN_KEY = "session_token"

_ENVELOPE_CLAIMS = ("aud", "iat", "exp")


class CookieDecodeError(Exception):
    """Raised when a cookie value cannot be trusted."""

    pass


class SignedCookieCodec:
    """Encode and decode payloads into a signed cookie value."""

    def __init__(self, secret: bytes, name: str, max_age: Optional[int] = None):
        if not secret:
            raise ValueError("secret must not be empty")
        self.secret = secret
        self.name = name
        self.max_age = max_age

    @classmethod
    def from_settings(cls, token: TokenSettings) -> "SignedCookieCodec":
        return cls(token.secret_bytes, token.cookie_name, token.cookie_max_age)

    def encode(self, payload: dict) -> str:
        clashes = set(payload) & set(_ENVELOPE_CLAIMS)
        if clashes:
            raise ValueError(f"reserved keys in cookie payload: {sorted(clashes)}")

        now = datetime.now(timezone.utc)
        claims = {**payload, "aud": self.name, "iat": now}
        if self.max_age:
            claims["exp"] = now + timedelta(seconds=self.max_age)
        return jwt.encode(claims, self.secret, algorithm=JWT_ALGORITHM)

    def decode(self, value: str) -> dict:
        """
        Decode a cookie value.

        Raises:
            CookieDecodeError: On a bad signature, wrong secret, foreign
                cookie name, expired envelope or malformed value
        """
        if not value:
            raise CookieDecodeError("empty cookie value")
        try:
            claims = jwt.decode(
                value,
                self.secret,
                algorithms=[JWT_ALGORITHM],
                audience=self.name,
            )
        except jwt.InvalidTokenError as e:
            raise CookieDecodeError(f"Invalid cookie: {e}") from e

        return {k: v for k, v in claims.items() if k not in _ENVELOPE_CLAIMS}


def set_signed_cookie(response: Response, value: str, token: TokenSettings) -> None:
    response.set_cookie(
        key=token.cookie_name,
        value=value,
        max_age=token.cookie_max_age,
        path="/",
        secure=token.cookie_secure,
        httponly=token.cookie_http_only,
        samesite=token.cookie_same_site,
    )


def clear_signed_cookie(response: Response, token: TokenSettings) -> None:
    response.delete_cookie(
        key=token.cookie_name,
        path="/",
        secure=token.cookie_secure,
        httponly=token.cookie_http_only,
        samesite=token.cookie_same_site,
    )

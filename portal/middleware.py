"""Request middleware: deadline, body size limit, access log, security headers."""

import asyncio
import logging
import time
import uuid
from typing import Callable

from fastapi import Request
from fastapi.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


class RequestTimeoutMiddleware:
    """
    Abort requests that run past a deadline with 504.

    The in-flight handler task is cancelled. Once the response has started
    the timeout can no longer be reported and is re-raised.
    """

    def __init__(self, app: ASGIApp, timeout: float):
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, receive, send_wrapper), self.timeout)
        except asyncio.TimeoutError:
            if started:
                raise
            logger.warning(f"Request timed out after {self.timeout}s: {scope.get('path')}")
            response = PlainTextResponse("Request timed out", status_code=504)
            await response(scope, receive, send)


class BodyTooLarge(Exception):
    """Raised from the wrapped receive channel once the limit is passed."""

    pass


class MaxBodySizeMiddleware:
    """
    Reject request bodies larger than max_size bytes with 413.

    A declared Content-Length is checked up front; bodies without one
    (chunked) are counted as they are read.
    """

    def __init__(self, app: ASGIApp, max_size: int):
        self.app = app
        self.max_size = max_size

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = PlainTextResponse("Request body too large", status_code=413)
        await response(scope, receive, send)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        for name, value in scope.get("headers", []):
            if name == b"content-length":
                try:
                    declared = int(value)
                except ValueError:
                    declared = -1
                if declared < 0 or declared > self.max_size:
                    await self._reject(scope, receive, send)
                    return

        received = 0
        exceeded = False
        started = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_size:
                    exceeded = True
                    raise BodyTooLarge(f"body exceeds {self.max_size} bytes")
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal started
            # Whatever the app answers to a cut-off body is replaced by 413.
            if exceeded and not started:
                return
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except BodyTooLarge:
            if started:
                raise

        if exceeded and not started:
            logger.warning(f"Request body over {self.max_size} bytes: {scope.get('path')}")
            await self._reject(scope, receive, send)


async def access_log(request: Request, call_next: Callable) -> Response:
    """One log line per request; tags the response with a request id."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    started = time.perf_counter()

    response: Response = await call_next(request)

    duration_ms = (time.perf_counter() - started) * 1000
    response.headers[REQUEST_ID_HEADER] = request_id
    client_ip = request.client.host if request.client else "-"
    logger.info(
        f"req-id={request_id} ip={client_ip} method={request.method} "
        f"url={request.url.path} status={response.status_code} "
        f"duration={duration_ms:.1f}ms ua={request.headers.get('user-agent', '-')!r}"
    )
    return response


async def apply_response_headers(request: Request, call_next: Callable) -> Response:
    """Apply response headers to all responses.
       Prevent UI redress attacks.
    """
    response: Response = await call_next(request)
    response.headers["Content-Security-Policy"] = "frame-ancestors 'none'"
    response.headers["X-Frame-Options"] = "DENY"
    return response

"""HTTP middleware for sbgateway.

RequestIDMiddleware:
    Assigns every request a ULID, binds it into the structlog context for the
    duration of the request and returns it in ``X-Request-ID``.

BodySizeLimitMiddleware:
    Enforces the MAX_REQUEST_BODY_BYTES cap before any handler decodes a
    body. Oversized requests get a plain-text HTTP 413.
      1. Content-Length fast path: reject on the declared size, no body read.
      2. Chunked / no Content-Length: accumulate with a rolling cap, cache the
         body on the request so handlers can still ``await request.body()``.

In Starlette the LAST-added middleware is OUTERMOST; create_app() adds
BodySizeLimitMiddleware first and RequestIDMiddleware last, so rejections are
logged with a request id.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from sbgateway.constants import MAX_REQUEST_BODY_BYTES
from sbgateway.models.responses import build_error_response
from sbgateway.utils.logger import clear_request_id, get_logger, set_request_id
from sbgateway.utils.ulid import generate_ulid

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_PAYLOAD_TOO_LARGE = "request body too large"
_INVALID_CONTENT_LENGTH = "invalid Content-Length header"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with a ULID for log correlation."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        request_id = generate_ulid()
        set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than ``max_bytes`` with HTTP 413."""

    def __init__(self, app, max_bytes: int = MAX_REQUEST_BODY_BYTES) -> None:
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        content_length_header = request.headers.get("content-length")

        # ── Phase 1: Content-Length fast path ─────────────────────────────────
        if content_length_header is not None:
            try:
                declared_size = int(content_length_header)
            except ValueError:
                logger.warning(
                    "Invalid Content-Length header",
                    value=content_length_header,
                    path=request.url.path,
                )
                return build_error_response(_INVALID_CONTENT_LENGTH, 400)

            if declared_size > self.max_bytes:
                logger.warning(
                    "Request body too large (Content-Length)",
                    declared_size=declared_size,
                    limit=self.max_bytes,
                    path=request.url.path,
                )
                return build_error_response(_PAYLOAD_TOO_LARGE, 413)

            return await call_next(request)

        # ── Phase 2: Chunked / no Content-Length, rolling cap ────────────────
        body_chunks: list[bytes] = []
        total_size: int = 0

        async for chunk in request.stream():
            total_size += len(chunk)
            if total_size > self.max_bytes:
                logger.warning(
                    "Request body too large (chunked)",
                    accumulated_size=total_size,
                    limit=self.max_bytes,
                    path=request.url.path,
                )
                return build_error_response(_PAYLOAD_TOO_LARGE, 413)
            body_chunks.append(chunk)

        # Starlette's Request.body() returns request._body when present.
        request._body = b"".join(body_chunks)  # type: ignore[attr-defined]

        return await call_next(request)

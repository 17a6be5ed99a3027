"""
oidc_interactions.observability.middleware

HTTP middleware for request-scoped logging context and cache policy.

Responsibilities:
- Generate/propagate request IDs.
- Bind request metadata into structlog contextvars.
- Mark interaction responses (including error pages) as non-cacheable.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    - Ensures every request has a request id
    - Binds request-scoped contextvars for structured logs
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=request.url.path,
            method=request.method,
        )
        try:
            response: Response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers["x-request-id"] = request_id
        return response


class NoStoreMiddleware(BaseHTTPMiddleware):
    """
    Interaction pages carry per-user prompt state; they must never be cached.
    """

    def __init__(self, app: ASGIApp, *, prefixes: Sequence[str] = ("/interaction",)) -> None:
        super().__init__(app)
        self._prefixes = tuple(prefixes)

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        if request.url.path.startswith(self._prefixes):
            response.headers["cache-control"] = "no-store"
        return response


# --- Module Notes -----------------------------------------------------------
# NoStoreMiddleware wraps the mapped exception handlers, so protocol-mismatch and
# unknown-interaction pages carry the header too.

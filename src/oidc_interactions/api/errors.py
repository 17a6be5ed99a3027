"""
oidc_interactions.api.errors

Error-to-response mapping.

Responsibilities:
- Map `InteractionError` kinds to their HTTP status and OAuth-style error body.
- Render the HTML error view for browser-facing interaction routes.
- Log and mask anything unexpected as a 500.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from oidc_interactions.interaction.errors import InteractionError, UnhandledInternalError
from oidc_interactions.observability.logging import get_logger
from oidc_interactions.views.render import render_with_layout

log = get_logger(__name__)


def _wants_html(request: Request) -> bool:
    return request.url.path.startswith("/interaction")


def error_response(request: Request, exc: InteractionError) -> Response:
    if _wants_html(request):
        html = render_with_layout(
            "error",
            {
                "title": "oops! something went wrong",
                "error": exc.error,
                "error_description": exc.description,
            },
        )
        return HTMLResponse(html, status_code=exc.status_code)
    return JSONResponse(
        {"error": exc.error, "error_description": exc.description},
        status_code=exc.status_code,
    )


async def _interaction_error(request: Request, exc: InteractionError) -> Response:
    log.info(
        "interaction.rejected",
        error=exc.error,
        error_class=type(exc).__name__,
        status_code=exc.status_code,
        uid=exc.uid,
    )
    return error_response(request, exc)


async def _unhandled(request: Request, exc: Exception) -> Response:
    log.exception("unhandled_error", error_class=type(exc).__name__)
    # Internal detail stays in the logs.
    response = error_response(request, UnhandledInternalError("oops! something went wrong"))
    if _wants_html(request):
        response.headers["cache-control"] = "no-store"
    return response


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InteractionError, _interaction_error)
    app.add_exception_handler(Exception, _unhandled)


# --- Module Notes -----------------------------------------------------------
# The `Exception` handler runs in ServerErrorMiddleware, outside NoStoreMiddleware, so it
# sets the cache header itself.

"""
oidc_interactions.api.routers.interactions

End-user interaction pages.

Responsibilities:
- Render the current prompt (login form or consent page) for an interaction uid.
- Accept login, consent and abort submissions and redirect to the handoff target.
- Re-render the login form when the identifier does not resolve to an account.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Form
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER, HTTP_401_UNAUTHORIZED

from oidc_interactions.api.deps import interaction_service
from oidc_interactions.interaction.contracts import InteractionDetails
from oidc_interactions.interaction.errors import AccountLookupFailure, ProtocolMismatch
from oidc_interactions.observability.logging import bind_interaction
from oidc_interactions.services.interaction_service import InteractionService
from oidc_interactions.views.debug import format_debug
from oidc_interactions.views.render import render_with_layout

router = APIRouter(prefix="/interaction", tags=["interaction"])

# prompt name -> (view, title)
_VIEWS = {
    "login": ("login", "Sign-in"),
    "consent": ("interaction", "Authorize"),
}


def _render(details: InteractionDetails, *, flash: str | None = None, status_code: int = 200) -> HTMLResponse:
    view = _VIEWS.get(details.prompt_name)
    if view is None:
        # No page exists for custom prompts.
        raise ProtocolMismatch(uid=details.uid, expected="login or consent", actual=details.prompt_name)
    template, title = view
    context: dict[str, Any] = {
        "client": details.client,
        "uid": details.uid,
        "details": details.prompt_details,
        "params": details.params,
        "title": title,
        "flash": flash,
        "session": format_debug(details.session) if details.session is not None else None,
        "dbg": {
            "params": format_debug(details.params),
            "prompt": format_debug(
                {
                    "name": details.prompt_name,
                    "reasons": list(details.prompt_reasons),
                    "details": details.prompt_details,
                }
            ),
        },
    }
    return HTMLResponse(render_with_layout(template, context), status_code=status_code)


def _see_other(location: str) -> RedirectResponse:
    return RedirectResponse(location, status_code=HTTP_303_SEE_OTHER)


@router.get("/{uid}", response_class=HTMLResponse)
async def show_interaction(
    uid: str,
    svc: InteractionService = Depends(interaction_service),
) -> HTMLResponse:
    bind_interaction(uid)
    return _render(await svc.get_details(uid))


@router.post("/{uid}/login")
async def submit_login(
    uid: str,
    login: str = Form(default=""),
    svc: InteractionService = Depends(interaction_service),
):
    bind_interaction(uid)
    try:
        handoff = await svc.submit_login(uid, login)
    except AccountLookupFailure:
        details = await svc.get_details(uid)
        return _render(details, flash="Invalid login.", status_code=HTTP_401_UNAUTHORIZED)
    return _see_other(handoff.redirect_to)


@router.post("/{uid}/confirm")
async def submit_consent(
    uid: str,
    svc: InteractionService = Depends(interaction_service),
) -> RedirectResponse:
    bind_interaction(uid)
    handoff = await svc.submit_consent(uid)
    return _see_other(handoff.redirect_to)


@router.get("/{uid}/abort")
async def abort_interaction(
    uid: str,
    svc: InteractionService = Depends(interaction_service),
) -> RedirectResponse:
    bind_interaction(uid)
    handoff = await svc.abort(uid)
    return _see_other(handoff.redirect_to)


# --- Module Notes -----------------------------------------------------------
# Handlers never touch interaction state directly; every mutation goes through the
# service so it commits or rolls back as one unit.

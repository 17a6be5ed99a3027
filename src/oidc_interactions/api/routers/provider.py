"""
oidc_interactions.api.routers.provider

Simulated Authorization Engine endpoints (dev/test only).

Responsibilities:
- `/v1/provider/auth`: validate an authorization request and start an interaction.
- `/v1/provider/resume/{uid}`: consume a finalized result and continue the sequence.
- `/v1/provider/interactions/{uid}/events`: expose the audit trail of one interaction.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_303_SEE_OTHER, HTTP_404_NOT_FOUND

from oidc_interactions.api.deps import db_session, interaction_service, settings_dep
from oidc_interactions.db.repositories.events import EventRepo
from oidc_interactions.observability.logging import bind_interaction
from oidc_interactions.services.interaction_service import InteractionService
from oidc_interactions.settings import Settings


def _not_in_prod(settings: Settings = Depends(settings_dep)) -> None:
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")


router = APIRouter(prefix="/v1/provider", tags=["provider"], dependencies=[Depends(_not_in_prod)])


@router.get("/auth")
async def authorize(
    request: Request,
    svc: InteractionService = Depends(interaction_service),
) -> RedirectResponse:
    interaction = await svc.authorize(dict(request.query_params))
    bind_interaction(interaction.uid)
    return RedirectResponse(f"/interaction/{interaction.uid}", status_code=HTTP_303_SEE_OTHER)


@router.get("/resume/{uid}")
async def resume(
    uid: str,
    svc: InteractionService = Depends(interaction_service),
) -> RedirectResponse:
    bind_interaction(uid)
    return RedirectResponse(await svc.resume(uid), status_code=HTTP_303_SEE_OTHER)


@router.get("/interactions/{uid}/events")
async def list_events(
    uid: str,
    session: AsyncSession = Depends(db_session),
) -> list[dict[str, Any]]:
    events = await EventRepo(session).list_for_interaction(uid)
    return [
        {
            "actor": ev.actor,
            "event_type": ev.event_type,
            "details": ev.details,
            "created_at": ev.created_at.isoformat(),
        }
        for ev in events
    ]

"""
oidc_interactions.db.repositories.events

Repository for `InteractionEvent` entities.

Responsibilities:
- Append audit events (prompt resolution, submissions, finalization).
- Query the trail of one interaction uid.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from oidc_interactions.db.models import InteractionEvent


class EventRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        uid: str,
        actor: str,
        event_type: str,
        details: dict[str, Any],
    ) -> InteractionEvent:
        # Append-only; events are never updated or deleted in normal operation.
        ev = InteractionEvent(uid=uid, actor=actor, event_type=event_type, details=details)
        self._session.add(ev)
        await self._session.flush()
        return ev

    async def list_for_interaction(self, uid: str) -> list[InteractionEvent]:
        stmt = (
            select(InteractionEvent)
            .where(InteractionEvent.uid == uid)
            .order_by(InteractionEvent.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())

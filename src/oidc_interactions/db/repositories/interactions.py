"""
oidc_interactions.db.repositories.interactions

Repository for `InteractionRecord` entities.

Responsibilities:
- Create and fetch interactions (optionally locked for update).
- Persist prompt/session/grant changes of a live interaction.
- Finalize and consume interactions with conditional updates (single use).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from oidc_interactions.db.models import InteractionRecord
from oidc_interactions.interaction.contracts import Interaction, utcnow
from oidc_interactions.interaction.errors import UnknownOrExpiredInteraction


def _to_interaction(row: InteractionRecord) -> Interaction:
    return Interaction(
        uid=row.uid,
        client_id=row.client_id,
        params=dict(row.params or {}),
        expires_at=row.expires_at,
        state=row.state,
        prompt_name=row.prompt_name,
        prompt_reasons=list(row.prompt_reasons or []),
        prompt_details=dict(row.prompt_details or {}),
        session_id=row.session_id,
        grant_id=row.grant_id,
        last_submission=dict(row.last_submission or {}),
        result=dict(row.result) if row.result is not None else None,
        finalized=bool(row.finalized),
        return_to=row.return_to,
    )


def _mutable_fields(interaction: Interaction) -> dict[str, Any]:
    return {
        "params": dict(interaction.params),
        "state": interaction.state,
        "prompt_name": interaction.prompt_name,
        "prompt_reasons": list(interaction.prompt_reasons),
        "prompt_details": dict(interaction.prompt_details),
        "session_id": interaction.session_id,
        "grant_id": interaction.grant_id,
    }


class InteractionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, interaction: Interaction) -> Interaction:
        row = InteractionRecord(
            uid=interaction.uid,
            client_id=interaction.client_id,
            last_submission=dict(interaction.last_submission),
            result=None,
            finalized=False,
            return_to=interaction.return_to,
            expires_at=interaction.expires_at,
            **_mutable_fields(interaction),
        )
        self._session.add(row)
        await self._session.flush()
        return _to_interaction(row)

    async def get(self, uid: str, *, for_update: bool = False) -> Interaction | None:
        row = await self._session.get(
            InteractionRecord, uid, with_for_update=for_update, populate_existing=for_update
        )
        return _to_interaction(row) if row is not None else None

    async def save(self, interaction: Interaction) -> None:
        row = await self._session.get(InteractionRecord, interaction.uid)
        if row is None or row.finalized:
            # Finalized interactions are immutable.
            raise UnknownOrExpiredInteraction(uid=interaction.uid)
        for key, value in _mutable_fields(interaction).items():
            setattr(row, key, value)
        row.updated_at = utcnow()
        await self._session.flush()

    async def finish(self, interaction: Interaction, *, result: dict[str, Any]) -> bool:
        """
        Record the outcome and flip `finalized`, only if nobody did so first.
        """

        stmt = (
            update(InteractionRecord)
            .where(InteractionRecord.uid == interaction.uid)
            .where(InteractionRecord.finalized.is_(False))
            .values(
                **_mutable_fields(interaction),
                result=result,
                finalized=True,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        res = await self._session.execute(stmt)
        if res.rowcount != 1:
            return False
        await self._refresh(interaction.uid)
        return True

    async def consume(self, uid: str, *, at: datetime | None = None) -> bool:
        stmt = (
            update(InteractionRecord)
            .where(InteractionRecord.uid == uid)
            .where(InteractionRecord.finalized.is_(True))
            .where(InteractionRecord.consumed_at.is_(None))
            .values(consumed_at=at or utcnow())
            .execution_options(synchronize_session=False)
        )
        res = await self._session.execute(stmt)
        if res.rowcount != 1:
            return False
        await self._refresh(uid)
        return True

    async def _refresh(self, uid: str) -> None:
        # Core-style updates bypass the identity map; reload so later reads see them.
        await self._session.get(InteractionRecord, uid, populate_existing=True)


# --- Module Notes -----------------------------------------------------------
# `finish` is the store-level half of the single-finalize guarantee; the coordinator's
# terminal-state check is the other half.

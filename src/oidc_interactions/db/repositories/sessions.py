from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from oidc_interactions.db.models import LoginSession
from oidc_interactions.interaction.contracts import Session


def _to_session(row: LoginSession) -> Session:
    return Session(
        id=row.id,
        account_id=row.account_id,
        auth_time=row.auth_time,
        acr=row.acr,
        grants=dict(row.grants or {}),
    )


class SessionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, session_id: str) -> Session | None:
        row = await self._session.get(LoginSession, session_id)
        return _to_session(row) if row is not None else None

    async def save(self, value: Session) -> Session:
        row = await self._session.get(LoginSession, value.id)
        if row is None:
            row = LoginSession(id=value.id)
            self._session.add(row)
        row.account_id = value.account_id
        row.auth_time = value.auth_time
        row.acr = value.acr
        row.grants = dict(value.grants)
        await self._session.flush()
        return _to_session(row)

    async def bind_grant(self, *, session_id: str, client_id: str, grant_id: str) -> None:
        row = await self._session.get(LoginSession, session_id, with_for_update=True)
        if row is None:
            return
        # Reassign (not mutate) so the JSON column is marked dirty.
        row.grants = {**(row.grants or {}), client_id: grant_id}
        await self._session.flush()

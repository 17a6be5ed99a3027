"""
oidc_interactions.db.repositories.grants

Repository for `ConsentGrant` entities; implements the GrantStore contract.

Responsibilities:
- Load grants by id or by (account, client).
- Save grants: insert on first save, version-checked overwrite afterwards.
"""

from __future__ import annotations

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from oidc_interactions.db.models import ConsentGrant
from oidc_interactions.interaction.contracts import Grant, utcnow
from oidc_interactions.interaction.errors import GrantConflict


def _to_grant(row: ConsentGrant) -> Grant:
    return Grant(
        id=row.id,
        account_id=row.account_id,
        client_id=row.client_id,
        oidc_scopes=set(row.oidc_scopes or []),
        oidc_claims=set(row.oidc_claims or []),
        resource_scopes={k: set(v) for k, v in (row.resource_scopes or {}).items()},
        version=row.version,
    )


class GrantRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, grant_id: str) -> Grant | None:
        # populate_existing: a retry after a conflict must see the other writer's row.
        row = await self._session.get(ConsentGrant, grant_id, populate_existing=True)
        return _to_grant(row) if row is not None else None

    async def latest_for(self, *, account_id: str, client_id: str) -> Grant | None:
        stmt = (
            select(ConsentGrant)
            .where(ConsentGrant.account_id == account_id, ConsentGrant.client_id == client_id)
            .order_by(desc(ConsentGrant.updated_at))
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _to_grant(row) if row is not None else None

    async def save(self, grant: Grant) -> str:
        oidc_scopes = sorted(grant.oidc_scopes)
        oidc_claims = sorted(grant.oidc_claims)
        resource_scopes = {k: sorted(v) for k, v in sorted(grant.resource_scopes.items())}

        if grant.id is None:
            row = ConsentGrant(
                account_id=grant.account_id,
                client_id=grant.client_id,
                oidc_scopes=oidc_scopes,
                oidc_claims=oidc_claims,
                resource_scopes=resource_scopes,
                version=1,
            )
            self._session.add(row)
            await self._session.flush()
            grant.id = row.id
            grant.version = row.version
            return row.id

        stmt = (
            update(ConsentGrant)
            .where(ConsentGrant.id == grant.id, ConsentGrant.version == grant.version)
            .values(
                oidc_scopes=oidc_scopes,
                oidc_claims=oidc_claims,
                resource_scopes=resource_scopes,
                version=grant.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        res = await self._session.execute(stmt)
        if res.rowcount != 1:
            raise GrantConflict(grant_id=grant.id)
        grant.version += 1
        return grant.id

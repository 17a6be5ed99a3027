from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from oidc_interactions.db.models import OAuthClient
from oidc_interactions.interaction.contracts import Client


class ClientRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(
        self,
        *,
        client_id: str,
        client_secret: str | None,
        redirect_uris: list[str],
        pkce_required: bool,
    ) -> OAuthClient:
        existing = await self._session.get(OAuthClient, client_id)
        if existing is not None:
            existing.client_secret = client_secret
            existing.redirect_uris = list(redirect_uris)
            existing.pkce_required = pkce_required
            await self._session.flush()
            return existing

        row = OAuthClient(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uris=list(redirect_uris),
            pkce_required=pkce_required,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def find(self, client_id: str) -> Client | None:
        row = await self._session.get(OAuthClient, client_id)
        if row is None:
            return None
        return Client(
            client_id=row.client_id,
            redirect_uris=tuple(row.redirect_uris or ()),
            pkce_required=bool(row.pkce_required),
        )

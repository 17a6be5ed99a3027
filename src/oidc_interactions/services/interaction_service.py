"""
oidc_interactions.services.interaction_service

Interaction lifecycle service (transaction owner).

Responsibilities:
- Wire the coordinator to the database-backed provider and the configured account store.
- Run every operation as one unit of work: commit on success, roll back on any error.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, TypeVar

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from oidc_interactions.clients.account_directory import HttpAccountStore
from oidc_interactions.db.repositories.accounts import AccountRepo
from oidc_interactions.interaction.accounts import AccountResolver
from oidc_interactions.interaction.contracts import AccountStore, Interaction, InteractionDetails
from oidc_interactions.interaction.coordinator import InteractionCoordinator
from oidc_interactions.interaction.finalization import Handoff
from oidc_interactions.interaction.grants import GrantAccumulator
from oidc_interactions.interaction.policy import PromptPolicy
from oidc_interactions.provider.local import LocalProvider
from oidc_interactions.settings import Settings

T = TypeVar("T")


def build_account_store(
    *, settings: Settings, session: AsyncSession, http: httpx.AsyncClient | None
) -> AccountStore:
    if settings.account_store == "http":
        if http is None:
            raise RuntimeError("account_store=http requires an account directory HTTP client")
        return HttpAccountStore(settings=settings, http=http)
    return AccountRepo(session)


class InteractionService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        policy: PromptPolicy,
        http: httpx.AsyncClient | None = None,
        account_store: AccountStore | None = None,
    ) -> None:
        self._session = session
        self._provider = LocalProvider(session=session, settings=settings, policy=policy)
        store = account_store or build_account_store(settings=settings, session=session, http=http)
        self._coordinator = InteractionCoordinator(
            engine=self._provider,
            policy=policy,
            resolver=AccountResolver(store),
            accumulator=GrantAccumulator(self._provider, max_attempts=settings.grant_save_attempts),
            acr=settings.session_acr,
        )

    async def get_details(self, uid: str) -> InteractionDetails:
        return await self._unit_of_work(self._coordinator.get_details(uid))

    async def submit_login(self, uid: str, login: str) -> Handoff:
        return await self._unit_of_work(self._coordinator.submit_login(uid, login))

    async def submit_consent(self, uid: str) -> Handoff:
        return await self._unit_of_work(self._coordinator.submit_consent(uid))

    async def abort(self, uid: str) -> Handoff:
        return await self._unit_of_work(self._coordinator.abort(uid))

    async def authorize(self, params: dict[str, Any]) -> Interaction:
        return await self._unit_of_work(self._provider.authorize(params))

    async def resume(self, uid: str) -> str:
        return await self._unit_of_work(self._provider.resume(uid))

    async def _unit_of_work(self, op: Awaitable[T]) -> T:
        try:
            result = await op
        except Exception:
            # Nothing from a failed step may stick, including soft failures.
            await self._session.rollback()
            raise
        await self._session.commit()
        return result


# --- Module Notes -----------------------------------------------------------
# This service is the transaction boundary; coordinator, provider and repositories only
# flush.

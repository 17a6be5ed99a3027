"""
tests.conftest

Shared fixtures.

Responsibilities:
- In-memory Authorization Engine / Account Store for coordinator-level tests.
- Settings and a lifespan-managed app + HTTP client for API-level tests.
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from oidc_interactions.api.app import create_app
from oidc_interactions.interaction.accounts import AccountResolver
from oidc_interactions.interaction.contracts import (
    Account,
    Client,
    Grant,
    Interaction,
    Session,
    utcnow,
)
from oidc_interactions.interaction.coordinator import InteractionCoordinator
from oidc_interactions.interaction.errors import GrantConflict, UnknownOrExpiredInteraction
from oidc_interactions.interaction.grants import GrantAccumulator
from oidc_interactions.interaction.policy import default_policy
from oidc_interactions.settings import ClientConfig, Settings

RP_CALLBACK = "https://rp.example/cb"


class InMemoryAccounts:
    def __init__(self, accounts: dict[str, str]) -> None:
        self._accounts = dict(accounts)
        self.lookups: list[str] = []

    async def find_by_login(self, login: str) -> Account | None:
        self.lookups.append(login)
        account_id = self._accounts.get(login)
        return Account(account_id=account_id, login=login) if account_id else None


class InMemoryEngine:
    """
    Stores copies, like a real store would; callers never share objects with it.
    """

    def __init__(self) -> None:
        self.interactions: dict[str, Interaction] = {}
        self.clients: dict[str, Client] = {}
        self.sessions: dict[str, Session] = {}
        self.grants: dict[str, Grant] = {}
        self.finished: list[tuple[str, dict[str, Any], bool]] = []
        self.events: list[tuple[str, str, dict[str, Any]]] = []
        self._grant_seq = 0

    def add_interaction(self, **kwargs: Any) -> Interaction:
        kwargs.setdefault("client_id", "client-a")
        kwargs.setdefault("expires_at", utcnow() + timedelta(hours=1))
        interaction = Interaction(**kwargs)
        interaction.return_to = f"/resume/{interaction.uid}"
        self.interactions[interaction.uid] = copy.deepcopy(interaction)
        return interaction

    async def interaction_details(self, uid: str, *, for_update: bool = False) -> Interaction | None:
        stored = self.interactions.get(uid)
        return copy.deepcopy(stored) if stored is not None else None

    async def save_interaction(self, interaction: Interaction) -> None:
        stored = self.interactions.get(interaction.uid)
        if stored is None or stored.finalized:
            raise UnknownOrExpiredInteraction(uid=interaction.uid)
        self.interactions[interaction.uid] = copy.deepcopy(interaction)

    async def interaction_finished(
        self,
        interaction: Interaction,
        result: dict[str, Any],
        *,
        merge_with_last_submission: bool,
    ) -> str:
        stored = self.interactions[interaction.uid]
        if stored.finalized:
            raise UnknownOrExpiredInteraction(uid=interaction.uid, reason="interaction already finalized")
        payload = {**stored.last_submission, **result} if merge_with_last_submission else dict(result)
        finished = copy.deepcopy(interaction)
        finished.result = payload
        finished.finalized = True
        self.interactions[interaction.uid] = finished
        self.finished.append((interaction.uid, payload, merge_with_last_submission))
        return interaction.return_to

    async def find_client(self, client_id: str) -> Client | None:
        return self.clients.get(client_id)

    async def find_session(self, session_id: str) -> Session | None:
        stored = self.sessions.get(session_id)
        return copy.deepcopy(stored) if stored is not None else None

    async def save_session(self, session: Session) -> Session:
        self.sessions[session.id] = copy.deepcopy(session)
        return copy.deepcopy(session)

    async def find_grant(self, grant_id: str) -> Grant | None:
        stored = self.grants.get(grant_id)
        return copy.deepcopy(stored) if stored is not None else None

    async def save_grant(self, grant: Grant) -> str:
        if grant.id is None:
            self._grant_seq += 1
            grant.id = f"grant-{self._grant_seq}"
            grant.version = 1
        else:
            stored = self.grants.get(grant.id)
            if stored is None or stored.version != grant.version:
                raise GrantConflict(grant_id=grant.id)
            grant.version += 1
        self.grants[grant.id] = copy.deepcopy(grant)
        return grant.id

    def new_grant(self, *, account_id: str, client_id: str) -> Grant:
        return Grant(account_id=account_id, client_id=client_id)

    async def record_event(
        self, *, uid: str, actor: str, event_type: str, details: dict[str, Any]
    ) -> None:
        self.events.append((uid, event_type, details))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'interactions.db'}",
        jwt_secret="test-secret-0123456789abcdef0123456789",
        clients=[ClientConfig(client_id="client-a", redirect_uris=[RP_CALLBACK])],
        seed_accounts={"alice": "acc-1", "bob": "acc-2"},
    )


@pytest.fixture
def engine() -> InMemoryEngine:
    eng = InMemoryEngine()
    eng.clients["client-a"] = Client(client_id="client-a", redirect_uris=(RP_CALLBACK,))
    return eng


@pytest.fixture
def accounts() -> InMemoryAccounts:
    return InMemoryAccounts({"alice": "acc-1", "bob": "acc-2"})


@pytest.fixture
def coordinator(engine: InMemoryEngine, accounts: InMemoryAccounts, settings: Settings) -> InteractionCoordinator:
    return InteractionCoordinator(
        engine=engine,
        policy=default_policy(settings),
        resolver=AccountResolver(accounts),
        accumulator=GrantAccumulator(engine, max_attempts=settings.grant_save_attempts),
        acr=settings.session_acr,
    )


@asynccontextmanager
async def serve(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    # httpx ASGITransport does not run the lifespan; do it explicitly.
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings=settings)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    async with serve(app) as c:
        yield c


@pytest.fixture
def running():
    # For tests that build their own app (different settings or transports).
    return serve

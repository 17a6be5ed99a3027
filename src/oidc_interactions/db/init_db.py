"""
oidc_interactions.db.init_db

DB initialization helpers (dev/test convenience).

Responsibilities:
- Create tables for local development and tests.
- Seed client registrations and directory accounts from settings.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from oidc_interactions.db.base import Base
from oidc_interactions.db.repositories.accounts import AccountRepo
from oidc_interactions.db.repositories.clients import ClientRepo
from oidc_interactions.settings import Settings


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_reference_data(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings
) -> None:
    """
    Idempotent: existing clients are updated in place, existing logins are left alone.
    """

    async with session_factory() as session:
        clients = ClientRepo(session)
        for cfg in settings.clients:
            await clients.upsert(
                client_id=cfg.client_id,
                client_secret=cfg.client_secret,
                redirect_uris=cfg.redirect_uris,
                pkce_required=cfg.pkce_required,
            )
        accounts = AccountRepo(session)
        for login, account_id in settings.seed_accounts.items():
            await accounts.ensure(login=login, account_id=account_id)
        await session.commit()


# --- Module Notes -----------------------------------------------------------
# Production deployments create the schema out of band and register clients through
# their own tooling; `create_app` only calls these helpers for env dev/test.

"""
oidc_interactions.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Expose app.state resources (settings, policy, DB sessionmaker, directory client).
- Build the request-scoped InteractionService.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from oidc_interactions.interaction.policy import PromptPolicy
from oidc_interactions.services.interaction_service import InteractionService
from oidc_interactions.settings import Settings


def settings_dep(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[attr-defined]


def policy_dep(request: Request) -> PromptPolicy:
    return request.app.state.policy  # type: ignore[attr-defined]


def directory_http(request: Request) -> httpx.AsyncClient | None:
    return getattr(request.app.state, "directory_http", None)


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created in the app lifespan (`api.app.create_app`).
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is owned by the service layer.
    async with session_factory() as session:
        yield session


def interaction_service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    policy: PromptPolicy = Depends(policy_dep),
    http: httpx.AsyncClient | None = Depends(directory_http),
) -> InteractionService:
    return InteractionService(session=session, settings=settings, policy=policy, http=http)

"""
oidc_interactions.api.app

FastAPI app factory for the interaction service.

Responsibilities:
- Build the FastAPI application and register routers, middleware and error handlers.
- Initialize and dispose shared infrastructure (DB engine/session factory, directory client).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from oidc_interactions.api.errors import register_exception_handlers
from oidc_interactions.api.routers.health import router as health_router
from oidc_interactions.api.routers.interactions import router as interactions_router
from oidc_interactions.api.routers.internal_accounts import router as internal_accounts_router
from oidc_interactions.api.routers.provider import router as provider_router
from oidc_interactions.db.init_db import init_db, seed_reference_data
from oidc_interactions.db.session import create_engine, create_sessionmaker
from oidc_interactions.interaction.policy import default_policy
from oidc_interactions.observability.logging import configure_logging, get_logger
from oidc_interactions.observability.middleware import NoStoreMiddleware, RequestContextMiddleware
from oidc_interactions.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    directory_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        cache_loggers=settings.env != "test",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env, account_store=settings.account_store)
        # Create the async DB engine and session factory once and stash them on app.state.
        # Routers obtain sessions via dependencies (see `oidc_interactions.api.deps`).
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables and register clients/accounts automatically.
            await init_db(engine)
            await seed_reference_data(app.state.sessionmaker, settings)

        app.state.directory_http = None
        if settings.account_store == "http":
            app.state.directory_http = httpx.AsyncClient(
                base_url=settings.account_store_url,
                timeout=settings.account_store_timeout_seconds,
                transport=directory_transport,
            )

        try:
            yield
        finally:
            if app.state.directory_http is not None:
                await app.state.directory_http.aclose()
            # Dispose the engine to close pools/FDs gracefully.
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="OIDC Interaction Service",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.policy = default_policy(settings)

    # Last added runs first: request context is bound before the cache policy applies.
    app.add_middleware(NoStoreMiddleware, prefixes=("/interaction",))
    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(interactions_router)
    app.include_router(provider_router)
    app.include_router(internal_accounts_router)

    return app


# --- Module Notes -----------------------------------------------------------
# This file stays small: app composition lives here; interaction semantics live in
# `oidc_interactions.interaction` and the transaction boundary in `services`.

"""
oidc_interactions.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide env-driven settings for the interaction service and the simulated provider.
- Hide secrets from repr/logging (service token secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientConfig(BaseModel):
    client_id: str
    client_secret: str | None = Field(default=None, repr=False)
    redirect_uris: list[str] = Field(default_factory=list)
    pkce_required: bool = False


def _default_clients() -> list[ClientConfig]:
    return [
        ClientConfig(
            client_id="aaa-client",
            client_secret="aaa-secret",
            redirect_uris=[
                "https://connectify-staging-xckvrr.zitadel.cloud/ui/login/login/externalidp/callback",
            ],
            pkce_required=False,
        )
    ]


class Settings(BaseSettings):
    """
    Env-driven configuration; defaults are safe for local dev.
    Complex fields (clients, seed_accounts) are read from JSON env values.
    """

    model_config = SettingsConfigDict(env_prefix="OIDC_IX_", case_sensitive=False)

    # `dev`/`test` auto-create tables and expose the simulated provider routes.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "oidc-interactions"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 3000

    issuer: str = "https://oidc.congee.me"

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./oidc_interactions.db"

    # Interactions
    interaction_ttl_seconds: int = 3600
    session_acr: str = "urn:mace:incommon:iap:bronze"
    select_account_as_login: bool = True
    oidc_scopes: list[str] = Field(
        default_factory=lambda: ["openid", "offline_access", "profile", "email", "address", "phone"]
    )
    grant_save_attempts: int = 3

    # Service-to-service tokens (account directory lookups)
    jwt_alg: str = "HS256"
    jwt_issuer: str = "oidc-interactions"
    jwt_audience: str = "account-directory"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Account store: local table or remote account directory over HTTP.
    account_store: Literal["db", "http"] = "db"
    account_store_url: str = "http://localhost:3000"
    account_store_timeout_seconds: float = 5.0

    # Reference data seeded at startup in dev/test.
    clients: list[ClientConfig] = Field(default_factory=_default_clients)
    seed_accounts: dict[str, str] = Field(default_factory=dict)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Prompt policy wiring (select_account rewrite, OIDC scope set) reads from here, so
# the policy stays identical between the interaction routes and the simulated provider.

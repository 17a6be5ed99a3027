"""
oidc_interactions.db.models

Persistence schema for the interaction service.

Responsibilities:
- Define ORM models:
  - OAuthClient: client reference data (seeded, read-only at runtime)
  - UserAccount: account directory entries looked up by login
  - LoginSession: end-user session created by a login submission
  - InteractionRecord: one in-flight interaction (prompt state, result, expiry)
  - ConsentGrant: accumulated consent per (account, client), version-checked
  - InteractionEvent: append-only audit trail per interaction uid
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Index, String, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from oidc_interactions.db.base import Base
from oidc_interactions.interaction.contracts import InteractionState, utcnow


def _hex_id() -> str:
    return uuid.uuid4().hex


class OAuthClient(Base):
    __tablename__ = "clients"

    client_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    client_secret: Mapped[str | None] = mapped_column(String(256), nullable=True)
    redirect_uris: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    pkce_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class UserAccount(Base):
    __tablename__ = "accounts"

    account_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    login: Mapped[str] = mapped_column(String(256), nullable=False, unique=True, index=True)
    claims: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class LoginSession(Base):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_hex_id)
    account_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    auth_time: Mapped[datetime | None] = mapped_column(nullable=True)
    acr: Mapped[str | None] = mapped_column(String(128), nullable=True)
    # client_id -> grant_id
    grants: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class InteractionRecord(Base):
    __tablename__ = "interactions"

    uid: Mapped[str] = mapped_column(String(64), primary_key=True)
    client_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("clients.client_id"), nullable=False, index=True
    )
    params: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    state: Mapped[InteractionState] = mapped_column(
        Enum(InteractionState), nullable=False, index=True
    )
    prompt_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    prompt_reasons: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    prompt_details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    session_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("sessions.id"), nullable=True, index=True
    )
    grant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    last_submission: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    finalized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    consumed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    return_to: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class ConsentGrant(Base):
    __tablename__ = "grants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_hex_id)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    client_id: Mapped[str] = mapped_column(String(128), nullable=False)

    oidc_scopes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    oidc_claims: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    resource_scopes: Mapped[dict[str, list[str]]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    # Bumped on every save; writers must present the version they read.
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_grants_account_client", "account_id", "client_id"),)


class InteractionEvent(Base):
    __tablename__ = "interaction_events"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    uid: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    actor: Mapped[str] = mapped_column(String(256), nullable=False)  # account id / policy / end-user
    event_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (Index("ix_interaction_events_uid_created", "uid", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# Scope/claim sets are stored as sorted JSON lists; repositories convert to Python sets.

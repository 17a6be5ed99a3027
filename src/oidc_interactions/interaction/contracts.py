"""
oidc_interactions.interaction.contracts

Domain types and collaborator contracts of the interaction subsystem.

Responsibilities:
- Define the in-memory shapes of Interaction, Session, Client, Account and Grant.
- Define the Authorization Engine and Account Store protocols the coordinator talks to.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol


def utcnow() -> datetime:
    # Naive UTC everywhere; matches what the DB layer persists.
    return datetime.now(tz=UTC).replace(tzinfo=None)


def tokens(value: str | Iterable[str] | None) -> set[str]:
    """
    Normalize a space-delimited string or an iterable of strings into a set of tokens.
    """

    if value is None:
        return set()
    if isinstance(value, str):
        return set(value.split())
    out: set[str] = set()
    for item in value:
        out.update(str(item).split())
    return out


class InteractionState(enum.StrEnum):
    pending = "PENDING"
    awaiting_login = "AWAITING_LOGIN"
    awaiting_consent = "AWAITING_CONSENT"
    finalizing = "FINALIZING"
    finished = "FINISHED"
    aborted = "ABORTED"

    @property
    def terminal(self) -> bool:
        return self in (InteractionState.finished, InteractionState.aborted)


@dataclass(slots=True)
class Interaction:
    uid: str
    client_id: str
    params: dict[str, Any]
    expires_at: datetime
    state: InteractionState = InteractionState.pending
    prompt_name: str | None = None
    prompt_reasons: list[str] = field(default_factory=list)
    prompt_details: dict[str, Any] = field(default_factory=dict)
    session_id: str | None = None
    grant_id: str | None = None
    last_submission: dict[str, Any] = field(default_factory=dict)
    result: dict[str, Any] | None = None
    finalized: bool = False
    return_to: str = ""

    def is_expired(self, *, reference: datetime | None = None) -> bool:
        return (reference or utcnow()) >= self.expires_at


@dataclass(slots=True)
class Session:
    id: str
    account_id: str | None
    auth_time: datetime | None = None
    acr: str | None = None
    # client_id -> grant_id, mirrors the provider's per-session authorizations.
    grants: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Client:
    client_id: str
    redirect_uris: tuple[str, ...] = ()
    pkce_required: bool = False


@dataclass(frozen=True, slots=True)
class Account:
    account_id: str
    login: str
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Grant:
    """
    Consent record for one (account, client) pair.

    The add_* methods are pure set unions; they never remove or duplicate members.
    """

    account_id: str
    client_id: str
    id: str | None = None
    oidc_scopes: set[str] = field(default_factory=set)
    oidc_claims: set[str] = field(default_factory=set)
    resource_scopes: dict[str, set[str]] = field(default_factory=dict)
    version: int = 0

    @property
    def persisted(self) -> bool:
        return self.id is not None

    def add_oidc_scope(self, scope: str | Iterable[str]) -> None:
        self.oidc_scopes |= tokens(scope)

    def add_oidc_claims(self, claims: str | Iterable[str]) -> None:
        self.oidc_claims |= tokens(claims)

    def add_resource_scope(self, indicator: str, scope: str | Iterable[str]) -> None:
        current = self.resource_scopes.setdefault(indicator, set())
        current |= tokens(scope)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "accountId": self.account_id,
            "clientId": self.client_id,
            "openid": {
                "scope": " ".join(sorted(self.oidc_scopes)),
                "claims": sorted(self.oidc_claims),
            },
            "resources": {
                indicator: " ".join(sorted(scopes))
                for indicator, scopes in sorted(self.resource_scopes.items())
            },
        }


@dataclass(frozen=True, slots=True)
class InteractionDetails:
    uid: str
    prompt_name: str
    prompt_reasons: tuple[str, ...]
    prompt_details: dict[str, Any]
    params: dict[str, Any]
    client: Client
    session: Session | None = None


class AuthorizationEngine(Protocol):
    """
    What the coordinator needs from the protocol engine (and its store).
    """

    async def interaction_details(
        self, uid: str, *, for_update: bool = False
    ) -> Interaction | None: ...

    async def save_interaction(self, interaction: Interaction) -> None: ...

    async def interaction_finished(
        self,
        interaction: Interaction,
        result: dict[str, Any],
        *,
        merge_with_last_submission: bool,
    ) -> str: ...

    async def find_client(self, client_id: str) -> Client | None: ...

    async def find_session(self, session_id: str) -> Session | None: ...

    async def save_session(self, session: Session) -> Session: ...

    async def find_grant(self, grant_id: str) -> Grant | None: ...

    async def save_grant(self, grant: Grant) -> str: ...

    def new_grant(self, *, account_id: str, client_id: str) -> Grant: ...

    async def record_event(
        self, *, uid: str, actor: str, event_type: str, details: dict[str, Any]
    ) -> None: ...


class AccountStore(Protocol):
    async def find_by_login(self, login: str) -> Account | None: ...


# --- Module Notes -----------------------------------------------------------
# `provider.local.LocalProvider` implements AuthorizationEngine on top of the service
# database; tests substitute an in-memory implementation.

"""
oidc_interactions.interaction.grants

Grant accumulator: set-merge semantics for consent grants.

Responsibilities:
- Union scopes, claims and resource-scoped permissions into a grant.
- Persist grants with an optimistic re-read-then-write on version conflicts.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from oidc_interactions.interaction.contracts import Grant, tokens
from oidc_interactions.interaction.errors import GrantConflict
from oidc_interactions.observability.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ConsentDelta:
    """
    Items the provider reported as missing from the grant; only these are merged.
    """

    scopes: frozenset[str] = frozenset()
    claims: frozenset[str] = frozenset()
    resource_scopes: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def from_prompt_details(cls, details: Mapping[str, Any]) -> ConsentDelta:
        resources = details.get("missingResourceScopes") or {}
        return cls(
            scopes=frozenset(tokens(details.get("missingOIDCScope"))),
            claims=frozenset(tokens(details.get("missingOIDCClaims"))),
            resource_scopes={
                indicator: frozenset(tokens(scopes)) for indicator, scopes in resources.items()
            },
        )

    @property
    def empty(self) -> bool:
        return not (self.scopes or self.claims or any(self.resource_scopes.values()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "scopes": sorted(self.scopes),
            "claims": sorted(self.claims),
            "resource_scopes": {k: sorted(v) for k, v in sorted(self.resource_scopes.items())},
        }


def add_scopes(grant: Grant, scopes: str | Iterable[str]) -> Grant:
    grant.add_oidc_scope(scopes)
    return grant


def add_claims(grant: Grant, claims: str | Iterable[str]) -> Grant:
    grant.add_oidc_claims(claims)
    return grant


def add_resource_scope(grant: Grant, indicator: str, scopes: str | Iterable[str]) -> Grant:
    grant.add_resource_scope(indicator, scopes)
    return grant


def apply_delta(grant: Grant, delta: ConsentDelta) -> Grant:
    if delta.scopes:
        add_scopes(grant, delta.scopes)
    if delta.claims:
        add_claims(grant, delta.claims)
    for indicator, scopes in delta.resource_scopes.items():
        if scopes:
            add_resource_scope(grant, indicator, scopes)
    return grant


class GrantStore(Protocol):
    async def find_grant(self, grant_id: str) -> Grant | None: ...

    async def save_grant(self, grant: Grant) -> str: ...


class GrantAccumulator:
    def __init__(self, store: GrantStore, *, max_attempts: int = 3) -> None:
        self._store = store
        self._max_attempts = max(1, max_attempts)

    async def merge_and_save(self, grant: Grant, delta: ConsentDelta) -> str:
        """
        Merge `delta` into `grant` and save it.

        When the stored row moved on since `grant` was read, the stored grant is
        re-read and the same delta re-applied; unions make the retry safe.
        """

        apply_delta(grant, delta)
        created = not grant.persisted
        attempt = 1
        while True:
            try:
                grant_id = await self._store.save_grant(grant)
            except GrantConflict as e:
                log.warning("grant.conflict", grant_id=e.grant_id, attempt=attempt)
                if attempt >= self._max_attempts:
                    raise
                fresh = await self._store.find_grant(e.grant_id)
                if fresh is None:
                    raise
                grant = apply_delta(fresh, delta)
                attempt += 1
                continue
            log.info(
                "grant.saved",
                grant_id=grant_id,
                account_id=grant.account_id,
                client_id=grant.client_id,
                created=created,
                delta=delta.to_dict(),
            )
            return grant_id


# --- Module Notes -----------------------------------------------------------
# Callers pass only the delta the policy reported as missing, so grants never grow
# from items that were already satisfied.

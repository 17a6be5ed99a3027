"""
tests.test_grants

Grant accumulator: union semantics and conflict retries.
"""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from oidc_interactions.interaction.contracts import Grant
from oidc_interactions.interaction.errors import GrantConflict
from oidc_interactions.interaction.grants import ConsentDelta, GrantAccumulator, apply_delta


def _grant(**kwargs) -> Grant:
    return Grant(account_id="acc-1", client_id="client-a", **kwargs)


def test_interleaved_deltas_commute_without_duplicates() -> None:
    a = ConsentDelta(scopes=frozenset({"openid", "email"}))
    b = ConsentDelta(
        scopes=frozenset({"email", "profile"}),
        claims=frozenset({"nickname"}),
        resource_scopes={"https://api.example": frozenset({"api:read"})},
    )

    ab = apply_delta(apply_delta(_grant(), a), b)
    ba = apply_delta(apply_delta(_grant(), b), a)

    assert ab.to_dict() == ba.to_dict()
    assert ab.oidc_scopes == {"openid", "email", "profile"}
    assert ab.to_dict()["openid"]["scope"] == "email openid profile"


def test_reapplying_a_delta_is_a_no_op() -> None:
    delta = ConsentDelta(claims=frozenset({"nickname"}), resource_scopes={"urn:api": frozenset({"read"})})
    grant = apply_delta(_grant(), delta)
    before = grant.to_dict()

    apply_delta(grant, delta)

    assert grant.to_dict() == before


def test_delta_from_prompt_details() -> None:
    delta = ConsentDelta.from_prompt_details(
        {
            "missingOIDCScope": ["openid", "email"],
            "missingOIDCClaims": ["nickname"],
            "missingResourceScopes": {"urn:api": ["read", "write"]},
        }
    )

    assert delta.scopes == {"openid", "email"}
    assert delta.claims == {"nickname"}
    assert delta.resource_scopes == {"urn:api": {"read", "write"}}
    assert not delta.empty
    assert ConsentDelta.from_prompt_details({}).empty


class FlakyGrantStore:
    """
    Simulates a concurrent writer: the first `conflicts` saves find a newer row.
    """

    def __init__(self, stored: Grant, *, conflicts: int) -> None:
        self.stored = stored
        self.conflicts = conflicts
        self.saves = 0

    async def find_grant(self, grant_id: str) -> Grant | None:
        return Grant(
            account_id=self.stored.account_id,
            client_id=self.stored.client_id,
            id=self.stored.id,
            oidc_scopes=set(self.stored.oidc_scopes),
            oidc_claims=set(self.stored.oidc_claims),
            resource_scopes={k: set(v) for k, v in self.stored.resource_scopes.items()},
            version=self.stored.version,
        )

    async def save_grant(self, grant: Grant) -> str:
        self.saves += 1
        if self.conflicts:
            self.conflicts -= 1
            # Another request consented to "profile" meanwhile.
            self.stored.oidc_scopes.add("profile")
            self.stored.version += 1
        if grant.version != self.stored.version:
            raise GrantConflict(grant_id=grant.id or "")
        grant.version += 1
        self.stored = grant
        return grant.id or ""


@pytest.mark.asyncio
async def test_conflict_rereads_and_keeps_both_writers() -> None:
    stored = _grant(id="g-1", oidc_scopes={"openid"}, version=1)
    store = FlakyGrantStore(stored, conflicts=1)
    accumulator = GrantAccumulator(store, max_attempts=3)
    stale = await store.find_grant("g-1")
    assert stale is not None

    with capture_logs() as logs:
        grant_id = await accumulator.merge_and_save(stale, ConsentDelta(scopes=frozenset({"email"})))

    assert grant_id == "g-1"
    assert store.saves == 2
    assert store.stored.oidc_scopes == {"openid", "profile", "email"}
    events = [e["event"] for e in logs]
    assert events == ["grant.conflict", "grant.saved"]
    assert logs[-1]["created"] is False


@pytest.mark.asyncio
async def test_conflict_budget_exhausted_raises() -> None:
    store = FlakyGrantStore(_grant(id="g-1", version=1), conflicts=5)
    accumulator = GrantAccumulator(store, max_attempts=2)
    grant = await store.find_grant("g-1")
    assert grant is not None

    with pytest.raises(GrantConflict):
        await accumulator.merge_and_save(grant, ConsentDelta(scopes=frozenset({"email"})))
    assert store.saves == 2

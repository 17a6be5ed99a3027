"""
tests.test_policy

Prompt policy engine: ordering, reasons, details and rewrites.
"""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from oidc_interactions.interaction.contracts import Client, Grant, Session, utcnow
from oidc_interactions.interaction.policy import (
    PromptCheck,
    PromptDefinition,
    base_policy,
    default_policy,
    requested_claims,
)
from oidc_interactions.settings import Settings

CLIENT = Client(client_id="client-a")


def _session(account_id: str | None = "acc-1", **kwargs) -> Session:
    return Session(id="s-1", account_id=account_id, auth_time=kwargs.pop("auth_time", utcnow()), **kwargs)


def test_no_session_requires_login() -> None:
    policy = base_policy()
    ctx = policy.context(params={"scope": "openid"}, client=CLIENT, session=None, grant=None)

    decision = policy.next_prompt(ctx)

    assert decision is not None
    assert decision.name == "login"
    assert decision.reasons == ("no_session",)
    assert decision.priority == 0
    assert policy.get("login").is_required(ctx)
    assert not policy.get("consent").is_required(ctx)


def test_requested_login_is_satisfied_by_last_submission() -> None:
    policy = base_policy()
    params = {"scope": "openid", "prompt": "login"}
    grant = Grant(account_id="acc-1", client_id="client-a", id="g-1", oidc_scopes={"openid"})

    ctx = policy.context(params=params, client=CLIENT, session=_session(), grant=grant)
    decision = policy.next_prompt(ctx)
    assert decision is not None
    assert decision.name == "login"
    assert decision.reasons == ("login_prompt",)

    ctx = policy.context(
        params=params,
        client=CLIENT,
        session=_session(),
        grant=grant,
        last_submission={"login": {"accountId": "acc-1"}},
    )
    assert policy.next_prompt(ctx) is None


def test_max_age_forces_login() -> None:
    policy = base_policy()
    session = _session(auth_time=utcnow() - timedelta(minutes=10))
    ctx = policy.context(params={"scope": "openid", "max_age": "60"}, client=CLIENT, session=session, grant=None)

    decision = policy.next_prompt(ctx)

    assert decision is not None
    assert decision.name == "login"
    assert decision.reasons == ("max_age",)


def test_max_age_satisfied_by_login_in_same_sequence() -> None:
    policy = base_policy()
    grant = Grant(account_id="acc-1", client_id="client-a", id="g-1", oidc_scopes={"openid"})
    ctx = policy.context(
        params={"scope": "openid", "max_age": "0"},
        client=CLIENT,
        session=_session(auth_time=utcnow() - timedelta(seconds=5)),
        grant=grant,
        last_submission={"login": {"accountId": "acc-1"}},
    )

    assert not policy.get("login").is_required(ctx)
    assert policy.next_prompt(ctx) is None


def test_consent_reasons_and_details() -> None:
    policy = base_policy()
    params = {
        "scope": "openid email api:read",
        "resource": "https://api.example",
        "claims": json.dumps({"userinfo": {"nickname": None, "sub": None}}),
    }
    grant = Grant(account_id="acc-1", client_id="client-a", id="g-1", oidc_scopes={"openid"})

    ctx = policy.context(params=params, client=CLIENT, session=_session(), grant=grant)
    decision = policy.next_prompt(ctx)

    assert decision is not None
    assert decision.name == "consent"
    assert decision.reasons == ("op_scopes_missing", "op_claims_missing", "rs_scopes_missing")
    assert decision.details == {
        "missingOIDCScope": ["email"],
        "missingOIDCClaims": ["nickname"],
        "missingResourceScopes": {"https://api.example": ["api:read"]},
    }


def test_fully_granted_request_needs_no_prompt() -> None:
    policy = base_policy()
    grant = Grant(
        account_id="acc-1",
        client_id="client-a",
        id="g-1",
        oidc_scopes={"openid", "email"},
    )
    ctx = policy.context(params={"scope": "openid email"}, client=CLIENT, session=_session(), grant=grant)

    assert policy.next_prompt(ctx) is None


def test_requested_claims_ignores_protocol_claims() -> None:
    params = {"claims": json.dumps({"id_token": {"auth_time": None, "email": None}, "userinfo": {"sid": None}})}

    assert requested_claims(params) == frozenset({"email"})


def test_custom_prompt_priority_and_registration() -> None:
    policy = base_policy()
    policy.add(
        PromptDefinition(name="terms", checks=(PromptCheck("terms_not_accepted", lambda ctx: True),)),
        0,
    )

    assert policy.names == ["terms", "login", "consent"]
    ctx = policy.context(params={"scope": "openid"}, client=CLIENT, session=None, grant=None)
    decision = policy.next_prompt(ctx)
    assert decision is not None
    assert decision.name == "terms"
    assert decision.reasons == ("terms_not_accepted",)

    with pytest.raises(ValueError):
        policy.add(PromptDefinition(name="login"))

    policy.remove("terms")
    assert policy.names == ["login", "consent"]


def test_select_account_rewritten_to_login() -> None:
    policy = default_policy(Settings(env="test"))
    params = {"scope": "openid", "prompt": "select_account consent"}
    ctx = policy.context(params=params, client=CLIENT, session=_session(), grant=None)

    decision = policy.next_prompt(ctx)
    assert decision is not None
    assert decision.name == "select_account"
    assert decision.reasons == ("select_account_prompt",)

    rewritten = policy.rewrite(decision, ctx)
    assert rewritten is not None
    login, new_params = rewritten
    assert login.name == "login"
    assert login.reasons == ()
    assert login.rewritten_from == "select_account"
    assert new_params["prompt"] == "login consent"
    # Input params are left untouched.
    assert params["prompt"] == "select_account consent"


def test_rewrite_disabled_by_settings() -> None:
    policy = default_policy(Settings(env="test", select_account_as_login=False))
    ctx = policy.context(params={"prompt": "select_account"}, client=CLIENT, session=_session(), grant=None)

    decision = policy.next_prompt(ctx)

    assert decision is not None
    assert policy.rewrite(decision, ctx) is None


def test_rewrite_target_must_exist() -> None:
    policy = base_policy()
    with pytest.raises(ValueError):
        policy.add_rewrite("select_account", "chooser")

"""
oidc_interactions.interaction.policy

Prompt policy engine.

Responsibilities:
- Hold the ordered, extensible list of prompt definitions (login, consent, custom).
- Decide the next required prompt for an interaction context.
- Apply one-time prompt rewrites (e.g. select_account -> login).
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from oidc_interactions.interaction.contracts import Client, Grant, Session, tokens, utcnow
from oidc_interactions.settings import Settings

DEFAULT_OIDC_SCOPES = frozenset(
    {"openid", "offline_access", "profile", "email", "address", "phone"}
)

# Claims the provider always releases; never part of a consent decision.
PROTOCOL_CLAIMS = frozenset({"sub", "sid", "auth_time", "acr", "amr", "iss"})


@dataclass(frozen=True, slots=True)
class PromptContext:
    params: Mapping[str, Any]
    client: Client | None
    session: Session | None
    grant: Grant | None
    requested_scopes: frozenset[str]
    requested_claims: frozenset[str]
    requested_resource_scopes: Mapping[str, frozenset[str]]
    last_submission: Mapping[str, Any] = field(default_factory=dict)
    now: datetime = field(default_factory=utcnow)

    @property
    def requested_prompts(self) -> set[str]:
        return tokens(self.params.get("prompt"))

    @property
    def account_id(self) -> str | None:
        return self.session.account_id if self.session is not None else None

    def missing_scopes(self) -> set[str]:
        granted = self.grant.oidc_scopes if self.grant is not None else set()
        return set(self.requested_scopes) - granted

    def missing_claims(self) -> set[str]:
        granted = self.grant.oidc_claims if self.grant is not None else set()
        return set(self.requested_claims) - granted

    def missing_resource_scopes(self) -> dict[str, set[str]]:
        granted = self.grant.resource_scopes if self.grant is not None else {}
        out: dict[str, set[str]] = {}
        for indicator, requested in self.requested_resource_scopes.items():
            missing = set(requested) - granted.get(indicator, set())
            if missing:
                out[indicator] = missing
        return out


def requested_claims(params: Mapping[str, Any]) -> frozenset[str]:
    raw = params.get("claims")
    if not raw:
        return frozenset()
    claims = json.loads(raw) if isinstance(raw, str) else raw
    names: set[str] = set()
    for member in ("userinfo", "id_token"):
        section = claims.get(member) or {}
        names.update(str(name) for name in section)
    return frozenset(names - PROTOCOL_CLAIMS)


def build_context(
    *,
    params: Mapping[str, Any],
    client: Client | None,
    session: Session | None,
    grant: Grant | None,
    last_submission: Mapping[str, Any] | None = None,
    oidc_scopes: Iterable[str] = DEFAULT_OIDC_SCOPES,
    now: datetime | None = None,
) -> PromptContext:
    known = frozenset(oidc_scopes)
    scopes = tokens(params.get("scope"))
    # Non-OIDC scopes only mean something relative to a resource indicator.
    resource_scopes = frozenset(scopes - known)
    indicators = tokens(params.get("resource"))
    return PromptContext(
        params=params,
        client=client,
        session=session,
        grant=grant,
        requested_scopes=frozenset(scopes & known),
        requested_claims=requested_claims(params),
        requested_resource_scopes={
            indicator: resource_scopes for indicator in sorted(indicators) if resource_scopes
        },
        last_submission=dict(last_submission or {}),
        now=now or utcnow(),
    )


@dataclass(frozen=True, slots=True)
class PromptCheck:
    reason: str
    check: Callable[[PromptContext], bool]


@dataclass(frozen=True, slots=True)
class PromptDefinition:
    """
    A named prompt. It is required when any of its checks fire, or when it is
    requestable and the client asked for it via `params.prompt` and the current
    authorization sequence has not answered it yet.
    """

    name: str
    requestable: bool = False
    checks: tuple[PromptCheck, ...] = ()
    details: Callable[[PromptContext], dict[str, Any]] | None = None

    def reasons(self, ctx: PromptContext) -> list[str]:
        out: list[str] = []
        if (
            self.requestable
            and self.name in ctx.requested_prompts
            and self.name not in ctx.last_submission
        ):
            out.append(f"{self.name}_prompt")
        out.extend(c.reason for c in self.checks if c.check(ctx))
        return out

    def is_required(self, ctx: PromptContext) -> bool:
        return bool(self.reasons(ctx))

    def build_details(self, ctx: PromptContext) -> dict[str, Any]:
        return self.details(ctx) if self.details is not None else {}


@dataclass(frozen=True, slots=True)
class PromptDecision:
    name: str
    reasons: tuple[str, ...]
    details: dict[str, Any]
    priority: int
    rewritten_from: str | None = None


class PromptPolicy:
    def __init__(
        self,
        prompts: Iterable[PromptDefinition] = (),
        *,
        oidc_scopes: Iterable[str] = DEFAULT_OIDC_SCOPES,
    ) -> None:
        self._prompts: list[PromptDefinition] = []
        self._rewrites: dict[str, str] = {}
        self.oidc_scopes = frozenset(oidc_scopes)
        for prompt in prompts:
            self.add(prompt)

    def __iter__(self) -> Iterator[PromptDefinition]:
        return iter(self._prompts)

    @property
    def names(self) -> list[str]:
        return [p.name for p in self]

    def get(self, name: str) -> PromptDefinition | None:
        for prompt in self._prompts:
            if prompt.name == name:
                return prompt
        return None

    def add(self, prompt: PromptDefinition, priority: int | None = None) -> None:
        """
        Insert a prompt; `priority` is its position in evaluation order (0 = first).
        """

        if self.get(prompt.name) is not None:
            raise ValueError(f"prompt {prompt.name!r} is already registered")
        if priority is None:
            self._prompts.append(prompt)
        else:
            self._prompts.insert(priority, prompt)

    def remove(self, name: str) -> None:
        self._prompts = [p for p in self._prompts if p.name != name]
        self._rewrites = {s: t for s, t in self._rewrites.items() if name not in (s, t)}

    def add_rewrite(self, source: str, target: str) -> None:
        if self.get(target) is None:
            raise ValueError(f"rewrite target {target!r} is not a registered prompt")
        self._rewrites[source] = target

    def context(self, **kwargs: Any) -> PromptContext:
        return build_context(oidc_scopes=self.oidc_scopes, **kwargs)

    def next_prompt(self, ctx: PromptContext) -> PromptDecision | None:
        for priority, prompt in enumerate(self._prompts):
            reasons = prompt.reasons(ctx)
            if reasons:
                return PromptDecision(
                    name=prompt.name,
                    reasons=tuple(reasons),
                    details=prompt.build_details(ctx),
                    priority=priority,
                )
        return None

    def rewrite(
        self, decision: PromptDecision, ctx: PromptContext
    ) -> tuple[PromptDecision, dict[str, Any]] | None:
        """
        Turn a first-evaluation decision into its registered rewrite target.

        Returns the rewritten decision (reasons cleared) and the request params with the
        source prompt token replaced, or None when no rewrite applies.
        """

        target_name = self._rewrites.get(decision.name)
        target = self.get(target_name) if target_name is not None else None
        if target_name is None or target is None:
            return None

        params = dict(ctx.params)
        requested = str(params.get("prompt") or "").split()
        if decision.name in requested:
            replaced: list[str] = []
            for token in requested:
                token = target_name if token == decision.name else token
                if token not in replaced:
                    replaced.append(token)
            params["prompt"] = " ".join(replaced)

        rewritten = PromptDecision(
            name=target_name,
            reasons=(),
            details=target.build_details(ctx),
            priority=self._prompts.index(target),
            rewritten_from=decision.name,
        )
        return rewritten, params


def _no_session(ctx: PromptContext) -> bool:
    return not ctx.account_id


def _max_age_exceeded(ctx: PromptContext) -> bool:
    raw = ctx.params.get("max_age")
    if raw in (None, "") or ctx.session is None or ctx.session.auth_time is None:
        return False
    if "login" in ctx.last_submission:
        # Authenticated within this authorization sequence.
        return False
    return ctx.now - ctx.session.auth_time > timedelta(seconds=int(raw))


def _login_details(ctx: PromptContext) -> dict[str, Any]:
    hint = ctx.params.get("login_hint")
    return {"loginHint": hint} if hint else {}


def _consent_details(ctx: PromptContext) -> dict[str, Any]:
    details: dict[str, Any] = {}
    scopes = ctx.missing_scopes()
    if scopes:
        details["missingOIDCScope"] = sorted(scopes)
    claims = ctx.missing_claims()
    if claims:
        details["missingOIDCClaims"] = sorted(claims)
    resources = ctx.missing_resource_scopes()
    if resources:
        details["missingResourceScopes"] = {
            indicator: sorted(scopes) for indicator, scopes in sorted(resources.items())
        }
    return details


def login_prompt() -> PromptDefinition:
    return PromptDefinition(
        name="login",
        requestable=True,
        checks=(
            PromptCheck("no_session", _no_session),
            PromptCheck("max_age", _max_age_exceeded),
        ),
        details=_login_details,
    )


def consent_prompt() -> PromptDefinition:
    return PromptDefinition(
        name="consent",
        requestable=True,
        checks=(
            PromptCheck("op_scopes_missing", lambda ctx: bool(ctx.missing_scopes())),
            PromptCheck("op_claims_missing", lambda ctx: bool(ctx.missing_claims())),
            PromptCheck("rs_scopes_missing", lambda ctx: bool(ctx.missing_resource_scopes())),
        ),
        details=_consent_details,
    )


def base_policy(*, oidc_scopes: Iterable[str] = DEFAULT_OIDC_SCOPES) -> PromptPolicy:
    return PromptPolicy([login_prompt(), consent_prompt()], oidc_scopes=oidc_scopes)


def default_policy(settings: Settings) -> PromptPolicy:
    policy = base_policy(oidc_scopes=settings.oidc_scopes)
    policy.add(PromptDefinition(name="select_account", requestable=True), 0)
    if settings.select_account_as_login:
        # No account chooser is rendered; the request is served by the login form instead.
        policy.add_rewrite("select_account", "login")
    return policy


# --- Module Notes -----------------------------------------------------------
# Check order inside a prompt is the order its reasons are reported in; prompt order is
# the order prompts are asked in.

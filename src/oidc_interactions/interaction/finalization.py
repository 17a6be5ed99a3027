"""
oidc_interactions.interaction.finalization

Finalization protocol: hand a terminal interaction outcome to the Authorization Engine.

Responsibilities:
- Build the three result shapes (login, consent, error).
- Validate that a result is well formed before handing it off.
- Invoke the engine's `interaction_finished` and return where the browser goes next.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from oidc_interactions.interaction.contracts import AuthorizationEngine, Interaction
from oidc_interactions.interaction.errors import AbortedByUser
from oidc_interactions.observability.logging import get_logger

log = get_logger(__name__)


class LoginResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    account_id: str = Field(alias="accountId", min_length=1)


class ConsentResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    grant_id: str | None = Field(default=None, alias="grantId")


class InteractionResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    login: LoginResult | None = None
    consent: ConsentResult | None = None
    error: str | None = None
    error_description: str | None = None

    @model_validator(mode="after")
    def _exactly_one_kind(self) -> InteractionResult:
        kinds = [k for k in (self.login, self.consent, self.error) if k is not None]
        if len(kinds) != 1:
            raise ValueError("result must carry exactly one of login, consent or error")
        if self.error_description is not None and self.error is None:
            raise ValueError("error_description requires error")
        return self

    @property
    def kind(self) -> str:
        if self.login is not None:
            return "login"
        if self.consent is not None:
            return "consent"
        return "error"

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def login_result(account_id: str) -> dict[str, Any]:
    return {"login": {"accountId": account_id}}


def consent_result(grant_id: str | None = None) -> dict[str, Any]:
    # grantId is only sent the first time a grant is tied to the interaction's session.
    consent: dict[str, Any] = {}
    if grant_id is not None:
        consent["grantId"] = grant_id
    return {"consent": consent}


def abort_result() -> dict[str, Any]:
    return {"error": AbortedByUser.error, "error_description": AbortedByUser.description_text}


@dataclass(frozen=True, slots=True)
class Handoff:
    uid: str
    redirect_to: str
    result: dict[str, Any]
    merge_with_last_submission: bool


class Finalizer:
    """
    Single-use per uid is guaranteed by the coordinator's terminal-state check and
    the engine's conditional write, not by this class.
    """

    def __init__(self, engine: AuthorizationEngine) -> None:
        self._engine = engine

    async def finalize(
        self,
        interaction: Interaction,
        result: dict[str, Any],
        *,
        merge_with_last_submission: bool,
    ) -> Handoff:
        validated = InteractionResult.model_validate(result)
        payload = validated.to_payload()
        redirect_to = await self._engine.interaction_finished(
            interaction,
            payload,
            merge_with_last_submission=merge_with_last_submission,
        )
        log.info(
            "interaction.finalized",
            uid=interaction.uid,
            result_kind=validated.kind,
            merge_with_last_submission=merge_with_last_submission,
        )
        return Handoff(
            uid=interaction.uid,
            redirect_to=redirect_to,
            result=payload,
            merge_with_last_submission=merge_with_last_submission,
        )


# --- Module Notes -----------------------------------------------------------
# Producing the end-user redirect is the engine's job; this module stops at handing it
# a well-formed result.

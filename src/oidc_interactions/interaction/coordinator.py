"""
oidc_interactions.interaction.coordinator

Interaction coordinator (the per-uid state machine).

Responsibilities:
- Load interaction/session/grant state through the Authorization Engine contract.
- Resolve the current prompt lazily on first use and keep it stable across reads.
- Apply login, consent and abort submissions and trigger finalization.

States:
    PENDING -> AWAITING_LOGIN | AWAITING_CONSENT   (first evaluation)
    AWAITING_* -> FINALIZING -> FINISHED           (login / consent)
    any non-terminal -> FINALIZING -> ABORTED      (abort)
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from oidc_interactions.interaction.accounts import AccountResolver
from oidc_interactions.interaction.contracts import (
    AuthorizationEngine,
    Client,
    Grant,
    Interaction,
    InteractionDetails,
    InteractionState,
    Session,
    utcnow,
)
from oidc_interactions.interaction.errors import ProtocolMismatch, UnknownOrExpiredInteraction
from oidc_interactions.interaction.finalization import (
    Finalizer,
    Handoff,
    abort_result,
    consent_result,
    login_result,
)
from oidc_interactions.interaction.grants import ConsentDelta, GrantAccumulator
from oidc_interactions.interaction.policy import PromptDecision, PromptPolicy
from oidc_interactions.observability.logging import get_logger

log = get_logger(__name__)

_PROMPT_STATES = {
    "login": InteractionState.awaiting_login,
    "consent": InteractionState.awaiting_consent,
}


class InteractionCoordinator:
    def __init__(
        self,
        *,
        engine: AuthorizationEngine,
        policy: PromptPolicy,
        resolver: AccountResolver,
        accumulator: GrantAccumulator,
        finalizer: Finalizer | None = None,
        acr: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._engine = engine
        self._policy = policy
        self._resolver = resolver
        self._accumulator = accumulator
        self._finalizer = finalizer or Finalizer(engine)
        self._acr = acr
        self._clock = clock

    async def get_details(self, uid: str) -> InteractionDetails:
        interaction = await self._load(uid)
        client = await self._client(interaction)
        session = await self._session(interaction)
        await self._ensure_prompt(interaction, client=client, session=session)
        if interaction.prompt_name is None:
            raise ProtocolMismatch(uid=uid, expected="login or consent", actual=None)

        log.info(
            "interaction.details",
            uid=uid,
            prompt=interaction.prompt_name,
            reasons=interaction.prompt_reasons,
            state=interaction.state.value,
        )
        return InteractionDetails(
            uid=interaction.uid,
            prompt_name=interaction.prompt_name,
            prompt_reasons=tuple(interaction.prompt_reasons),
            prompt_details=dict(interaction.prompt_details),
            params=dict(interaction.params),
            client=client,
            session=session,
        )

    async def submit_login(self, uid: str, login: str) -> Handoff:
        interaction = await self._load(uid, for_update=True)
        client = await self._client(interaction)
        session = await self._session(interaction)
        await self._ensure_prompt(interaction, client=client, session=session)
        self._expect(interaction, "login")

        # Lookup failures propagate before anything is written.
        account_id = await self._resolver.resolve(login, uid=uid)

        now = self._clock()
        if session is None:
            session = Session(id=uuid.uuid4().hex, account_id=None)
        if session.account_id != account_id:
            # A different end-user takes over the session; their consents are not ours.
            session.grants = {}
        session.account_id = account_id
        session.auth_time = now
        session.acr = self._acr
        session = await self._engine.save_session(session)
        interaction.session_id = session.id

        result = login_result(account_id)
        grant = await self._grant(interaction)
        upcoming = self._policy.next_prompt(
            self._policy.context(
                params=interaction.params,
                client=client,
                session=session,
                grant=grant,
                last_submission=result,
                now=now,
            )
        )
        log.info(
            "interaction.login",
            uid=uid,
            account_id=account_id,
            next_prompt=upcoming.name if upcoming else None,
        )
        await self._engine.record_event(
            uid=uid,
            actor=account_id,
            event_type="LOGIN_SUBMITTED",
            details={"next_prompt": upcoming.name if upcoming else None},
        )
        # Login always starts a fresh result for the authorization sequence.
        return await self._finish(
            interaction,
            result,
            merge_with_last_submission=False,
            terminal=InteractionState.finished,
        )

    async def submit_consent(self, uid: str) -> Handoff:
        interaction = await self._load(uid, for_update=True)
        client = await self._client(interaction)
        session = await self._session(interaction)
        await self._ensure_prompt(interaction, client=client, session=session)
        self._expect(interaction, "consent")
        if session is None or not session.account_id:
            raise ProtocolMismatch(uid=uid, expected="login", actual=interaction.prompt_name)

        first_association = interaction.grant_id is None
        if first_association:
            grant = self._engine.new_grant(account_id=session.account_id, client_id=client.client_id)
        else:
            grant = await self._grant(interaction)
            if grant is None:
                raise UnknownOrExpiredInteraction(uid=uid, reason="grant bound to interaction not found")

        # Missing items come from the stored prompt, never from the request body.
        delta = ConsentDelta.from_prompt_details(interaction.prompt_details)
        grant_id = await self._accumulator.merge_and_save(grant, delta)
        interaction.grant_id = grant_id

        log.info(
            "interaction.consent",
            uid=uid,
            grant_id=grant_id,
            first_association=first_association,
            delta=delta.to_dict(),
        )
        await self._engine.record_event(
            uid=uid,
            actor=session.account_id,
            event_type="CONSENT_SUBMITTED",
            details={"grant_id": grant_id, **delta.to_dict()},
        )
        return await self._finish(
            interaction,
            consent_result(grant_id if first_association else None),
            merge_with_last_submission=True,
            terminal=InteractionState.finished,
        )

    async def abort(self, uid: str) -> Handoff:
        interaction = await self._load(uid, for_update=True)
        log.info("interaction.aborted", uid=uid, state=interaction.state.value)
        await self._engine.record_event(
            uid=uid,
            actor="end-user",
            event_type="INTERACTION_ABORTED",
            details={"state": interaction.state.value},
        )
        return await self._finish(
            interaction,
            abort_result(),
            merge_with_last_submission=False,
            terminal=InteractionState.aborted,
        )

    async def _load(self, uid: str, *, for_update: bool = False) -> Interaction:
        interaction = await self._engine.interaction_details(uid, for_update=for_update)
        if interaction is None:
            raise UnknownOrExpiredInteraction(uid=uid)
        if interaction.finalized or interaction.state.terminal:
            raise UnknownOrExpiredInteraction(uid=uid, reason="interaction already finalized")
        if interaction.is_expired(reference=self._clock()):
            raise UnknownOrExpiredInteraction(uid=uid, reason="interaction expired")
        return interaction

    async def _client(self, interaction: Interaction) -> Client:
        client = await self._engine.find_client(interaction.client_id)
        if client is None:
            raise UnknownOrExpiredInteraction(uid=interaction.uid, reason="client not found")
        return client

    async def _session(self, interaction: Interaction) -> Session | None:
        if interaction.session_id is None:
            return None
        return await self._engine.find_session(interaction.session_id)

    async def _grant(self, interaction: Interaction) -> Grant | None:
        if interaction.grant_id is None:
            return None
        return await self._engine.find_grant(interaction.grant_id)

    async def _ensure_prompt(
        self, interaction: Interaction, *, client: Client, session: Session | None
    ) -> None:
        """
        First evaluation of the interaction. Runs once per uid; afterwards the stored
        prompt is authoritative, which keeps reads idempotent.
        """

        if interaction.prompt_name is not None:
            return

        ctx = self._policy.context(
            params=interaction.params,
            client=client,
            session=session,
            grant=await self._grant(interaction),
            last_submission=interaction.last_submission,
            now=self._clock(),
        )
        decision = self._policy.next_prompt(ctx)
        if decision is None:
            return

        rewritten = self._policy.rewrite(decision, ctx)
        if rewritten is not None:
            decision, interaction.params = rewritten
            log.info(
                "prompt.rewritten",
                uid=interaction.uid,
                source=decision.rewritten_from,
                target=decision.name,
            )

        self._apply_decision(interaction, decision)
        await self._engine.save_interaction(interaction)
        await self._engine.record_event(
            uid=interaction.uid,
            actor="policy",
            event_type="PROMPT_RESOLVED",
            details={
                "prompt": decision.name,
                "reasons": list(decision.reasons),
                "rewritten_from": decision.rewritten_from,
            },
        )

    @staticmethod
    def _apply_decision(interaction: Interaction, decision: PromptDecision) -> None:
        interaction.prompt_name = decision.name
        interaction.prompt_reasons = list(decision.reasons)
        interaction.prompt_details = dict(decision.details)
        interaction.state = _PROMPT_STATES.get(decision.name, InteractionState.pending)

    @staticmethod
    def _expect(interaction: Interaction, prompt: str) -> None:
        if interaction.prompt_name != prompt:
            raise ProtocolMismatch(uid=interaction.uid, expected=prompt, actual=interaction.prompt_name)

    async def _finish(
        self,
        interaction: Interaction,
        result: dict[str, Any],
        *,
        merge_with_last_submission: bool,
        terminal: InteractionState,
    ) -> Handoff:
        interaction.state = InteractionState.finalizing
        await self._engine.save_interaction(interaction)

        interaction.state = terminal
        handoff = await self._finalizer.finalize(
            interaction,
            result,
            merge_with_last_submission=merge_with_last_submission,
        )
        interaction.finalized = True
        return handoff


# --- Module Notes -----------------------------------------------------------
# The coordinator never commits; `services.interaction_service` owns the transaction so a
# failing request leaves no partial writes behind.

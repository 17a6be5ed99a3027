"""
oidc_interactions.provider.local

Simulated Authorization Engine backed by the service database.

Responsibilities:
- Implement the `AuthorizationEngine` contract the coordinator depends on.
- Start interactions for authorization requests (`authorize`).
- Consume finalized results once (`resume`): redirect back to the client, or chain a
  follow-up interaction that carries the result as its last submission.

Note:
- This is a stand-in so the service runs end to end. It issues no tokens: the code it
  hands to the client is opaque and there is no token endpoint.
"""

from __future__ import annotations

import json
import secrets
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from oidc_interactions.db.repositories.clients import ClientRepo
from oidc_interactions.db.repositories.events import EventRepo
from oidc_interactions.db.repositories.grants import GrantRepo
from oidc_interactions.db.repositories.interactions import InteractionRepo
from oidc_interactions.db.repositories.sessions import SessionRepo
from oidc_interactions.interaction.contracts import (
    Client,
    Grant,
    Interaction,
    InteractionState,
    Session,
    utcnow,
)
from oidc_interactions.interaction.errors import InteractionError, UnknownOrExpiredInteraction
from oidc_interactions.interaction.policy import PromptPolicy
from oidc_interactions.observability.logging import get_logger
from oidc_interactions.settings import Settings

log = get_logger(__name__)

RESUME_PATH = "/v1/provider/resume"


class AuthorizationRequestError(InteractionError):
    """
    Authorization request rejected before any interaction exists (bad client,
    unregistered redirect_uri, missing PKCE challenge, malformed claims).
    """

    status_code = 400

    def __init__(self, error: str, description: str) -> None:
        super().__init__(description)
        self.error = error


def redirect_with(uri: str, params: Mapping[str, Any]) -> str:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    if not query:
        return uri
    return f"{uri}{'&' if '?' in uri else '?'}{query}"


class LocalProvider:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        policy: PromptPolicy,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._settings = settings
        self._policy = policy
        self._clock = clock

        self._interactions = InteractionRepo(session)
        self._clients = ClientRepo(session)
        self._sessions = SessionRepo(session)
        self._grants = GrantRepo(session)
        self._events = EventRepo(session)

    # -- AuthorizationEngine contract ------------------------------------------------

    async def interaction_details(self, uid: str, *, for_update: bool = False) -> Interaction | None:
        return await self._interactions.get(uid, for_update=for_update)

    async def save_interaction(self, interaction: Interaction) -> None:
        await self._interactions.save(interaction)

    async def interaction_finished(
        self,
        interaction: Interaction,
        result: dict[str, Any],
        *,
        merge_with_last_submission: bool,
    ) -> str:
        if merge_with_last_submission:
            payload = {**interaction.last_submission, **result}
        else:
            payload = dict(result)

        if not await self._interactions.finish(interaction, result=payload):
            raise UnknownOrExpiredInteraction(
                uid=interaction.uid, reason="interaction already finalized"
            )
        interaction.result = payload
        await self._events.add(
            uid=interaction.uid,
            actor="provider",
            event_type="INTERACTION_FINISHED",
            details={"result": payload, "merge_with_last_submission": merge_with_last_submission},
        )
        return interaction.return_to

    async def find_client(self, client_id: str) -> Client | None:
        return await self._clients.find(client_id)

    async def find_session(self, session_id: str) -> Session | None:
        return await self._sessions.get(session_id)

    async def save_session(self, session: Session) -> Session:
        return await self._sessions.save(session)

    async def find_grant(self, grant_id: str) -> Grant | None:
        return await self._grants.get(grant_id)

    async def save_grant(self, grant: Grant) -> str:
        return await self._grants.save(grant)

    def new_grant(self, *, account_id: str, client_id: str) -> Grant:
        return Grant(account_id=account_id, client_id=client_id)

    async def record_event(
        self, *, uid: str, actor: str, event_type: str, details: dict[str, Any]
    ) -> None:
        await self._events.add(uid=uid, actor=actor, event_type=event_type, details=details)

    # -- simulated protocol endpoints ------------------------------------------------

    async def start_interaction(
        self,
        *,
        client_id: str,
        params: dict[str, Any],
        session_id: str | None = None,
        grant_id: str | None = None,
        last_submission: dict[str, Any] | None = None,
    ) -> Interaction:
        uid = secrets.token_urlsafe(16)
        interaction = await self._interactions.create(
            Interaction(
                uid=uid,
                client_id=client_id,
                params=dict(params),
                expires_at=self._clock() + timedelta(seconds=self._settings.interaction_ttl_seconds),
                state=InteractionState.pending,
                session_id=session_id,
                grant_id=grant_id,
                last_submission=dict(last_submission or {}),
                return_to=f"{RESUME_PATH}/{uid}",
            )
        )
        log.info(
            "interaction.started",
            uid=uid,
            client_id=client_id,
            chained=bool(last_submission),
        )
        await self._events.add(
            uid=uid,
            actor="provider",
            event_type="INTERACTION_STARTED",
            details={"client_id": client_id, "last_submission": dict(last_submission or {})},
        )
        return interaction

    async def authorize(self, params: dict[str, Any]) -> Interaction:
        client_id = str(params.get("client_id") or "")
        client = await self._clients.find(client_id) if client_id else None
        if client is None:
            raise AuthorizationRequestError("invalid_client", "client is invalid")

        redirect_uri = params.get("redirect_uri")
        if redirect_uri not in client.redirect_uris:
            raise AuthorizationRequestError(
                "invalid_redirect_uri", "redirect_uri did not match any of the client's registered uris"
            )
        if client.pkce_required and not params.get("code_challenge"):
            raise AuthorizationRequestError(
                "invalid_request", "Authorization Server policy requires PKCE to be used"
            )
        claims = params.get("claims")
        if claims:
            try:
                parsed = json.loads(claims)
            except ValueError as e:
                raise AuthorizationRequestError("invalid_request", "could not parse the claims parameter") from e
            if not isinstance(parsed, dict):
                raise AuthorizationRequestError("invalid_request", "claims parameter should be a JSON object")

        max_age = params.get("max_age")
        if max_age not in (None, "") and not str(max_age).isdigit():
            raise AuthorizationRequestError(
                "invalid_request", "invalid max_age parameter value, must be a non-negative integer"
            )

        return await self.start_interaction(client_id=client.client_id, params=params)

    async def resume(self, uid: str) -> str:
        interaction = await self._interactions.get(uid, for_update=True)
        if interaction is None or not interaction.finalized:
            raise UnknownOrExpiredInteraction(uid=uid)
        if not await self._interactions.consume(uid, at=self._clock()):
            raise UnknownOrExpiredInteraction(uid=uid, reason="interaction result already consumed")

        result = dict(interaction.result or {})
        params = interaction.params
        redirect_uri = str(params.get("redirect_uri") or "")
        common = {"state": params.get("state"), "iss": self._settings.issuer}

        if "error" in result:
            log.info("authorization.denied", uid=uid, error=result["error"])
            return redirect_with(
                redirect_uri,
                {
                    "error": result["error"],
                    "error_description": result.get("error_description"),
                    **common,
                },
            )

        client = await self._clients.find(interaction.client_id)
        session = (
            await self._sessions.get(interaction.session_id) if interaction.session_id else None
        )
        if client is None or session is None or not session.account_id:
            return redirect_with(
                redirect_uri,
                {"error": "login_required", "error_description": "End-User authentication is required", **common},
            )

        consent = result.get("consent")
        if consent is not None:
            grant_id = consent.get("grantId") or interaction.grant_id
            if grant_id:
                await self._sessions.bind_grant(
                    session_id=session.id, client_id=client.client_id, grant_id=grant_id
                )
                session.grants[client.client_id] = grant_id

        grant = await self._known_grant(session, client)
        upcoming = self._policy.next_prompt(
            self._policy.context(
                params=params,
                client=client,
                session=session,
                grant=grant,
                last_submission=result,
                now=self._clock(),
            )
        )
        if upcoming is not None:
            follow_up = await self.start_interaction(
                client_id=client.client_id,
                params=params,
                session_id=session.id,
                grant_id=grant.id if grant is not None else None,
                last_submission=result,
            )
            return f"/interaction/{follow_up.uid}"

        code = secrets.token_urlsafe(32)
        log.info(
            "authorization.completed",
            uid=uid,
            account_id=session.account_id,
            client_id=client.client_id,
            grant_id=grant.id if grant is not None else None,
        )
        return redirect_with(redirect_uri, {"code": code, **common})

    async def _known_grant(self, session: Session, client: Client) -> Grant | None:
        grant_id = session.grants.get(client.client_id)
        if grant_id:
            grant = await self._grants.get(grant_id)
            if grant is not None:
                return grant
        # Grants persisted by earlier sequences are reused for the same account/client.
        return await self._grants.latest_for(account_id=session.account_id or "", client_id=client.client_id)


# --- Module Notes -----------------------------------------------------------
# Request validation here is deliberately shallow; a real engine owns response types,
# PKCE verification and token issuance.

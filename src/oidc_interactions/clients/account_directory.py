"""
oidc_interactions.clients.account_directory

HTTP client boundary to an external account directory (AccountStore over HTTP).

Responsibilities:
- Attach short-lived service JWTs (role=internal_system).
- Look accounts up by login identifier; 404 means "no such account".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import httpx

from oidc_interactions.auth.jwt import JwtConfig, issue_token
from oidc_interactions.interaction.contracts import Account
from oidc_interactions.settings import Settings


@dataclass(frozen=True, slots=True)
class DirectoryAuth:
    subject: str = "oidc-interactions"
    roles: tuple[str, ...] = ("internal_system",)


class HttpAccountStore:
    def __init__(
        self,
        *,
        settings: Settings,
        http: httpx.AsyncClient,
        auth: DirectoryAuth | None = None,
    ) -> None:
        self._settings = settings
        self._http = http
        self._auth = auth or DirectoryAuth()

    def _authz(self) -> dict[str, str]:
        token = issue_token(
            cfg=JwtConfig.from_settings(self._settings),
            subject=self._auth.subject,
            roles=list(self._auth.roles),
            ttl=timedelta(minutes=5),
        )
        return {"Authorization": f"Bearer {token}"}

    async def find_by_login(self, login: str) -> Account | None:
        r = await self._http.get(
            "/internal/v1/accounts/lookup",
            params={"login": login},
            headers=self._authz(),
        )
        if r.status_code == 404:
            return None
        r.raise_for_status()
        body = r.json()
        return Account(
            account_id=str(body["account_id"]),
            login=str(body.get("login", login)),
            claims=dict(body.get("claims") or {}),
        )


# --- Module Notes -----------------------------------------------------------
# Transport errors and 5xx responses propagate as httpx errors and surface as internal
# errors; only a 404 is a (soft) lookup failure.

"""
oidc_interactions.interaction.accounts

Session/account resolver.

Responsibilities:
- Resolve a login identifier to a canonical account id through an AccountStore.
- Report unknown identifiers as a soft `AccountLookupFailure`.

Note:
- No credential verification happens here; the store attests identity from the
  identifier alone.
"""

from __future__ import annotations

from oidc_interactions.interaction.contracts import AccountStore
from oidc_interactions.interaction.errors import AccountLookupFailure
from oidc_interactions.observability.logging import get_logger

log = get_logger(__name__)


class AccountResolver:
    def __init__(self, store: AccountStore) -> None:
        self._store = store

    async def resolve(self, login: str, *, uid: str | None = None) -> str:
        identifier = (login or "").strip()
        if not identifier:
            log.info("account.lookup_failed", reason="blank_login")
            raise AccountLookupFailure(login=login or "", uid=uid)

        account = await self._store.find_by_login(identifier)
        if account is None:
            log.info("account.lookup_failed", reason="not_found", login=identifier)
            raise AccountLookupFailure(login=identifier, uid=uid)
        return account.account_id

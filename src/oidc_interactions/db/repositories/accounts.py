"""
oidc_interactions.db.repositories.accounts

Repository for `UserAccount` entities; doubles as the database-backed AccountStore.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from oidc_interactions.db.models import UserAccount
from oidc_interactions.interaction.contracts import Account


class AccountRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def ensure(
        self, *, login: str, account_id: str, claims: dict[str, Any] | None = None
    ) -> UserAccount:
        stmt = select(UserAccount).where(UserAccount.login == login)
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            return existing
        row = UserAccount(account_id=account_id, login=login, claims=dict(claims or {}))
        self._session.add(row)
        await self._session.flush()
        return row

    async def find_by_login(self, login: str) -> Account | None:
        stmt = select(UserAccount).where(UserAccount.login == login)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Account(account_id=row.account_id, login=row.login, claims=dict(row.claims or {}))

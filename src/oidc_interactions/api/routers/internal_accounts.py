"""
oidc_interactions.api.routers.internal_accounts

Internal account directory (the remote side of `HttpAccountStore`).

Responsibilities:
- Look an account up by login identifier for trusted services (role `internal_system`).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_404_NOT_FOUND

from oidc_interactions.api.deps import db_session
from oidc_interactions.auth.deps import require_roles
from oidc_interactions.db.repositories.accounts import AccountRepo

router = APIRouter(
    prefix="/internal/v1/accounts",
    tags=["internal"],
    dependencies=[Depends(require_roles("internal_system"))],
)


class AccountResponse(BaseModel):
    account_id: str
    login: str
    claims: dict[str, Any] = Field(default_factory=dict)


@router.get("/lookup", response_model=AccountResponse)
async def lookup_account(
    login: str = Query(min_length=1, max_length=256),
    session: AsyncSession = Depends(db_session),
) -> AccountResponse:
    account = await AccountRepo(session).find_by_login(login)
    if account is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Account not found")
    return AccountResponse(account_id=account.account_id, login=account.login, claims=account.claims)

"""
api/routes/v1/users.py -- Account endpoints for any authenticated caller.

Routes:
  GET /api/v1/users/me  -- the caller's account (looked up by credential subject id)
  GET /api/v1/users     -- all accounts
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import AccountResponse
from auth.dependencies import get_current_claims
from auth.lifecycle import AccountService
from auth.models import Claims

# Auth policy: every route requires a valid bearer credential (get_current_claims).
router = APIRouter()


@router.get("/users/me", response_model=AccountResponse)
def current_user(request: Request, claims: Claims = Depends(get_current_claims)) -> AccountResponse:
    """Return the live account record for the authenticated caller."""
    accounts: AccountService = request.app.state.accounts
    return AccountResponse.from_account(accounts.get(claims.subject_id))


@router.get("/users", response_model=list[AccountResponse])
def list_users(request: Request, claims: Claims = Depends(get_current_claims)) -> list[AccountResponse]:
    accounts: AccountService = request.app.state.accounts
    return [AccountResponse.from_account(a) for a in accounts.list_accounts()]

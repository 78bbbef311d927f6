"""
api/routes/v1/admin.py -- Administrator approval workflow.

Routes:
  GET  /api/v1/admin/pending-users       -- accounts awaiting approval
  POST /api/v1/admin/approve-user/{id}   -- pending -> approved (role user)
  POST /api/v1/admin/reject-user/{id}    -- pending -> rejected
  PUT  /api/v1/admin/users/{id}/role     -- set role on an approved account

Every route requires the admin role (require_admin). Lifecycle rules live in
auth/lifecycle.py; violations surface as AuthError subclasses
(not_found, invalid_transition, account_not_approved, invalid_role).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import AccountResponse, RoleUpdate
from auth.dependencies import require_admin
from auth.lifecycle import AccountService
from auth.models import Claims

# Auth policy: every route requires admin (require_admin).
router = APIRouter()


def _accounts(request: Request) -> AccountService:
    return request.app.state.accounts


@router.get("/admin/pending-users", response_model=list[AccountResponse])
def pending_users(request: Request, admin: Claims = Depends(require_admin)) -> list[AccountResponse]:
    return [AccountResponse.from_account(a) for a in _accounts(request).list_pending()]


@router.post("/admin/approve-user/{account_id}", response_model=AccountResponse)
def approve_user(request: Request, account_id: int, admin: Claims = Depends(require_admin)) -> AccountResponse:
    """Approve an account, recording the calling admin as approver."""
    return AccountResponse.from_account(_accounts(request).approve(account_id, approver_id=admin.subject_id))


@router.post("/admin/reject-user/{account_id}", response_model=AccountResponse)
def reject_user(request: Request, account_id: int, admin: Claims = Depends(require_admin)) -> AccountResponse:
    return AccountResponse.from_account(_accounts(request).reject(account_id))


@router.put("/admin/users/{account_id}/role", response_model=AccountResponse)
def update_user_role(
    request: Request,
    account_id: int,
    body: RoleUpdate,
    admin: Claims = Depends(require_admin),
) -> AccountResponse:
    """Change an approved account's role to "user" or "admin".

    Credentials already issued keep their old role until they expire.
    """
    return AccountResponse.from_account(_accounts(request).set_role(account_id, body.role))

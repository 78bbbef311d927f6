"""
api/routes/v1/auth.py -- Google login handshake and logout.

Routes:
  GET  /api/v1/auth/google/login     -- issue correlation token; return consent URL
  GET  /api/v1/auth/google/callback  -- verify state, exchange code, reconcile account
  POST /api/v1/auth/logout           -- clear cookies; 200

Security:
  [R1] The callback verifies-and-consumes state BEFORE touching the code.
       A bad state ends the request with invalid_state; no provider call is
       made, no account is created, no credential is issued.
  [R2] The exchange runs under a deadline (OAUTH_EXCHANGE_DEADLINE_SECONDS).
       Any exchange failure raises before reconcile(), so nothing is committed.
  [R3] Pending accounts receive their identity but no credential. Rejected
       accounts receive 403 account_not_approved.
  [R4] Login and callback are rate-limited per client IP.
  [R5] Cache-Control: no-store on every response that carries a token.

Handlers are sync (def) so the blocking provider calls run in FastAPI's
threadpool rather than on the event loop.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    AccountResponse,
    IdentityResponse,
    LoginURLResponse,
    MessageResponse,
    PendingApprovalResponse,
    SessionResponse,
)
from auth.lifecycle import AccountService
from auth.models import STATUS_PENDING
from auth.oauth import IdentityExchanger
from auth.state import StateTracker
from auth.tokens import clear_session_cookies, set_auth_cookie, set_state_cookie
from core.config import Settings, get_settings

logger = logging.getLogger("surfer.api.auth")

# Auth policy: every route in this module is public.
router = APIRouter()

_LOGIN_LIMIT = get_settings().login_rate_limit


@router.get("/auth/google/login", response_model=LoginURLResponse)
@limiter.limit(_LOGIN_LIMIT)  # [R4]
def google_login(request: Request) -> JSONResponse:
    """Start the OAuth handshake.

    Issues a correlation token, embeds it in the provider consent URL, and
    mirrors it into the legacy oauth_state cookie.
    """
    settings: Settings = request.app.state.settings
    tracker: StateTracker = request.app.state.state_tracker
    exchanger: IdentityExchanger = request.app.state.exchanger

    token = tracker.issue()
    url = exchanger.build_authorization_url(token)

    resp = JSONResponse(content=LoginURLResponse(url=url).model_dump())
    set_state_cookie(resp, token.value, settings)
    resp.headers["Cache-Control"] = "no-store"  # [R5]
    return resp


@router.get("/auth/google/callback", response_model=SessionResponse | PendingApprovalResponse)
@limiter.limit(_LOGIN_LIMIT)  # [R4]
def google_callback(request: Request, state: Optional[str] = None, code: Optional[str] = None) -> JSONResponse:
    """Finish the OAuth handshake.

    AuthError subclasses raised here (invalid_state, code_exchange_failed,
    profile_fetch_failed, malformed_profile, account_not_approved) are mapped
    to the error envelope by the handler in api/main.py.
    """
    settings: Settings = request.app.state.settings
    tracker: StateTracker = request.app.state.state_tracker
    exchanger: IdentityExchanger = request.app.state.exchanger
    accounts: AccountService = request.app.state.accounts

    tracker.verify_and_consume(state)  # [R1]

    deadline = time.monotonic() + settings.oauth_exchange_deadline_seconds  # [R2]
    identity = exchanger.exchange(code, deadline=deadline)
    account = accounts.reconcile(identity)

    if account.status == STATUS_PENDING:  # [R3]
        return JSONResponse(
            content=PendingApprovalResponse(
                user=IdentityResponse.from_identity(identity),
                account=AccountResponse.from_account(account),
            ).model_dump()
        )

    token = accounts.issue_session(account)
    logger.info("Session issued for account id=%d", account.id)
    resp = JSONResponse(
        content=SessionResponse(
            access_token=token,
            expires_in=settings.token_expire_seconds,
            user=AccountResponse.from_account(account),
        ).model_dump()
    )
    set_auth_cookie(resp, token, settings)
    resp.headers["Cache-Control"] = "no-store"  # [R5]
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the session cookies.

    Already-issued credentials stay valid until they expire; there is no
    revocation list.
    """
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    clear_session_cookies(resp, request.app.state.settings)
    return resp

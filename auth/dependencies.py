"""
auth/dependencies.py -- FastAPI Depends() helpers for the request and role gates.

get_current_claims() is the request gate: it reads the
Authorization: Bearer <token> header, verifies the credential with the
CredentialService on app.state, and attaches the Claims to request.state.
require_admin() is the role gate, composed after it.

Outcomes:
  no header                         -> 401 unauthorized
  header without "Bearer <token>"   -> 401 invalid_authorization_header
  bad signature / expired / bad alg -> 401 with the specific CredentialError code
  role on request.state != "admin"  -> 403 forbidden (also when no claims are attached)

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.errors import AuthError, InsufficientRole, MalformedAuthorizationHeader, MissingCredential
from auth.models import ROLE_ADMIN, Claims
from auth.tokens import CredentialService


def _unauthorized(exc: AuthError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail=exc.to_detail(),
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_bearer_token(header: str | None) -> str:
    """Return the token from an Authorization header value.

    Raises MissingCredential when the header is absent and
    MalformedAuthorizationHeader when the scheme is missing or not Bearer.
    """
    if not header:
        raise MissingCredential()
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme != "Bearer" or not token or " " in token:
        raise MalformedAuthorizationHeader()
    return token


def get_current_claims(request: Request) -> Claims:
    """Require a valid session credential. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: Claims = Depends(get_current_claims)): ...
    """
    credentials: CredentialService = request.app.state.credentials
    try:
        token = extract_bearer_token(request.headers.get("Authorization"))
        claims = credentials.verify(token)
    except AuthError as exc:
        raise _unauthorized(exc) from exc
    request.state.claims = claims
    return claims


def ensure_admin(claims: Claims | None) -> Claims:
    """Raise HTTP 403 unless claims carry the admin role.

    Missing claims (a route wired without the request gate) are treated as an
    insufficient role, never as a crash.
    """
    if getattr(claims, "role", None) != ROLE_ADMIN:
        exc = InsufficientRole()
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())
    return claims


def require_admin(request: Request, _claims: Claims = Depends(get_current_claims)) -> Claims:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin.

    Reads the role the request gate attached to request.state.
    """
    return ensure_admin(getattr(request.state, "claims", None))

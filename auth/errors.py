"""
auth/errors.py -- Exception hierarchy for the authentication core.

Every error is terminal for the current request; nothing in auth/ retries.
Each class carries an HTTP status_code and a stable machine-readable code so
api/main.py can map any AuthError onto the shared error envelope without a
per-class handler.

Messages are written for end users. They never include token values,
authorization codes, or signing material.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all authentication and authorization failures."""

    status_code: int = 401
    code: str = "unauthorized"
    message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# OAuth handshake
# ---------------------------------------------------------------------------


class InvalidOrExpiredState(AuthError):
    code = "invalid_state"
    message = "Invalid or expired state. Please start the login again."


class CodeExchangeFailed(AuthError):
    code = "code_exchange_failed"
    message = "Failed to exchange the authorization code."


class ProfileFetchFailed(AuthError):
    status_code = 502
    code = "profile_fetch_failed"
    message = "Failed to get user info from the identity provider."


class MalformedProfile(AuthError):
    status_code = 502
    code = "malformed_profile"
    message = "The identity provider returned an unreadable profile."


# ---------------------------------------------------------------------------
# Session credentials
# ---------------------------------------------------------------------------


class CredentialError(AuthError):
    """Any reason a presented session credential is not accepted."""

    code = "invalid_token"
    message = "Invalid token."


class CredentialSignatureInvalid(CredentialError):
    code = "invalid_token"
    message = "Invalid token."


class CredentialExpired(CredentialError):
    code = "token_expired"
    message = "Token has expired."


class CredentialAlgorithmMismatch(CredentialError):
    code = "algorithm_mismatch"
    message = "Token signing algorithm is not accepted."


class MissingCredential(AuthError):
    code = "unauthorized"
    message = "Authorization header required."


class MalformedAuthorizationHeader(AuthError):
    code = "invalid_authorization_header"
    message = "Invalid authorization header format. Expected 'Bearer <token>'."


# ---------------------------------------------------------------------------
# Authorization and account lifecycle
# ---------------------------------------------------------------------------


class InsufficientRole(AuthError):
    status_code = 403
    code = "forbidden"
    message = "Admin access required."


class AccountNotApproved(AuthError):
    status_code = 403
    code = "account_not_approved"
    message = "Account is not approved."


class InvalidRoleValue(AuthError):
    status_code = 400
    code = "invalid_role"
    message = "Invalid role. Must be 'user' or 'admin'."


class AccountNotFound(AuthError):
    status_code = 404
    code = "not_found"
    message = "User not found."


class InvalidStatusTransition(AuthError):
    status_code = 409
    code = "invalid_transition"
    message = "Account status does not allow this change."


class EmailInUse(AuthError):
    status_code = 409
    code = "email_in_use"
    message = "This email address is already linked to another account."

"""
API request and response models for Surfer REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Account, ExternalIdentity

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginURLResponse(BaseModel):
    """Response for GET /api/v1/auth/google/login."""

    url: str


class IdentityResponse(BaseModel):
    """The provider profile, as shown to a caller still awaiting approval."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    picture: str

    @classmethod
    def from_identity(cls, identity: ExternalIdentity) -> "IdentityResponse":
        return cls(id=identity.subject_id, email=identity.email, name=identity.name, picture=identity.picture)


class AccountResponse(BaseModel):
    """Public view of an account. Mirrors the persisted fields the core owns."""

    id: int
    email: str
    name: str
    picture: str
    google_id: str
    role: str
    status: str
    approved_by: Optional[int] = None
    approved_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        """Factory Method -- keeps the domain-to-transport mapping beside the model."""
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            picture=account.picture,
            google_id=account.google_id,
            role=account.role,
            status=account.status,
            approved_by=account.approved_by,
            approved_at=account.approved_at,
            created_at=account.created_at or "",
            updated_at=account.updated_at or "",
        )


class SessionResponse(BaseModel):
    """Callback response for an approved account: a usable bearer credential."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: AccountResponse


class PendingApprovalResponse(BaseModel):
    """Callback response for a pending account. Carries no credential."""

    user: IdentityResponse
    account: AccountResponse
    message: str = "Authentication successful. Please wait for admin approval."


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class RoleUpdate(BaseModel):
    """Request body for PUT /api/v1/admin/users/{id}/role.

    role is validated by AccountService.set_role so an unknown value surfaces
    as invalid_role rather than a generic 422.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    role: str = Field(min_length=1, max_length=20)

"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, no I/O). Stores, services and
routes do the work; these types only own shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# Role axis. "pending" is the only role a non-approved account may hold.
ROLE_PENDING = "pending"
ROLE_USER = "user"
ROLE_ADMIN = "admin"
ASSIGNABLE_ROLES = frozenset({ROLE_USER, ROLE_ADMIN})

# Status axis.
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"


@dataclass(frozen=True)
class CorrelationToken:
    """Single-use CSRF token binding a login attempt to its OAuth callback."""

    value: str
    expires_at: datetime


@dataclass(frozen=True)
class ExternalIdentity:
    """Normalized profile returned by the identity provider.

    Transient: handed to lifecycle reconciliation and never persisted as-is.
    """

    subject_id: str
    email: str
    name: str = ""
    picture: str = ""


@dataclass(frozen=True)
class Claims:
    """Verified contents of a session credential.

    email and role are a snapshot from issuance time, not re-read from the
    account on each request.
    """

    subject_id: int
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime


@dataclass
class Account:
    """An application user as seen by the auth core.

    google_id is the provider subject id and the identity key. role and
    status are separate axes: only an approved account may hold role "user"
    or "admin".
    """

    google_id: str
    email: str
    name: str = ""
    picture: str = ""
    role: str = ROLE_PENDING
    status: str = STATUS_PENDING
    id: int | None = None
    approved_by: int | None = None
    approved_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_approved(self) -> bool:
        return self.status == STATUS_APPROVED and self.role in ASSIGNABLE_ROLES

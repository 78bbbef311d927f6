"""
auth/lifecycle.py -- Map external identities onto accounts and gate access.

Two orthogonal axes, coupled by policy:
  status: pending -> approved | pending -> rejected | approved -> approved
  role:   pending (any non-approved account), user, admin

Rules enforced here:
  [L1] A previously unseen subject id gets a pending/pending account and no
       credential.
  [L2] approve() moves pending -> approved with role "user"; it never grants
       admin. Re-approving an approved account only restamps approver and
       instant.
  [L3] reject() moves pending -> rejected and leaves role alone. There is no
       path out of rejected, and an approved account cannot be rejected.
  [L4] set_role() accepts only "user" or "admin", and only on approved
       accounts.
  [L5] issue_session() is the only way to a credential and refuses anything
       that is not approved.
  [L6] email is unique. A new subject whose email another account holds is
       refused with EmailInUse; a known subject whose email moved onto
       another account keeps its stored email.

All writes go through AccountStore.transition() so the status precondition is
checked in the same statement as the write.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    AccountNotApproved,
    AccountNotFound,
    EmailInUse,
    InvalidRoleValue,
    InvalidStatusTransition,
)
from auth.models import (
    ASSIGNABLE_ROLES,
    ROLE_USER,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Account,
    ExternalIdentity,
)
from auth.store import AccountStore
from auth.tokens import CredentialService

logger = logging.getLogger("surfer.auth.lifecycle")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountService:
    """Account lifecycle operations used by the callback and admin routes."""

    def __init__(
        self,
        store: AccountStore,
        credentials: CredentialService,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self._clock = clock

    # ------------------------------------------------------------------
    # Login path
    # ------------------------------------------------------------------

    def reconcile(self, identity: ExternalIdentity) -> Account:
        """Return the account for identity, creating it on first sighting [L1].

        Known accounts get their display fields refreshed; role and status are
        never changed here.
        """
        account = self.store.get_by_google_id(identity.subject_id)
        if account is None:
            return self._create_pending(identity)

        if (account.email, account.name, account.picture) != (identity.email, identity.name, identity.picture):
            try:
                self.store.update_profile(account.id, identity.email, identity.name, identity.picture)
                account.email = identity.email
            except IntegrityError:
                # [L6] the new email belongs to another account; keep ours.
                logger.warning("Account id=%d email refresh skipped: address in use", account.id)
                self.store.update_profile(account.id, account.email, identity.name, identity.picture)
            account.name = identity.name
            account.picture = identity.picture
        return account

    def _create_pending(self, identity: ExternalIdentity) -> Account:
        try:
            account_id = self.store.create_account(
                Account(
                    google_id=identity.subject_id,
                    email=identity.email,
                    name=identity.name,
                    picture=identity.picture,
                )
            )
        except IntegrityError:
            # A concurrent callback for the same subject won the insert.
            existing = self.store.get_by_google_id(identity.subject_id)
            if existing is None:
                logger.warning("Sign-in refused: email already bound to another account")
                raise EmailInUse()
            return existing
        logger.info("Created pending account id=%d", account_id)
        return self.store.get_by_id(account_id)

    def issue_session(self, account: Account) -> str:
        """Issue a session credential for an approved account [L5]."""
        if not account.is_approved:
            raise AccountNotApproved(
                "Account is awaiting admin approval."
                if account.status == STATUS_PENDING
                else "Account access has been rejected."
            )
        return self.credentials.issue(account.id, account.email, account.role)

    # ------------------------------------------------------------------
    # Admin actions
    # ------------------------------------------------------------------

    def approve(self, account_id: int, approver_id: int) -> Account:
        """Approve an account [L2]."""
        approved_at = self._clock().isoformat()
        if self.store.transition(
            account_id,
            {STATUS_PENDING},
            status=STATUS_APPROVED,
            role=ROLE_USER,
            approved_by=approver_id,
            approved_at=approved_at,
        ):
            logger.info("Account id=%d approved by id=%d", account_id, approver_id)
        elif self.store.transition(account_id, {STATUS_APPROVED}, approved_by=approver_id, approved_at=approved_at):
            logger.info("Account id=%d re-approved by id=%d", account_id, approver_id)
        else:
            self._raise_for(account_id, InvalidStatusTransition, "Rejected accounts cannot be approved.")
        return self.get(account_id)

    def reject(self, account_id: int) -> Account:
        """Reject a pending account [L3]. Rejecting twice is a no-op."""
        if not self.store.transition(account_id, {STATUS_PENDING, STATUS_REJECTED}, status=STATUS_REJECTED):
            self._raise_for(account_id, InvalidStatusTransition, "Approved accounts cannot be rejected.")
        logger.info("Account id=%d rejected", account_id)
        return self.get(account_id)

    def set_role(self, account_id: int, role: str) -> Account:
        """Change the role of an approved account [L4]."""
        if role not in ASSIGNABLE_ROLES:
            raise InvalidRoleValue()
        if not self.store.transition(account_id, {STATUS_APPROVED}, role=role):
            self._raise_for(account_id, AccountNotApproved, "Only approved accounts can be assigned a role.")
        logger.info("Account id=%d role set to %s", account_id, role)
        return self.get(account_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, account_id: int) -> Account:
        account = self.store.get_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        return account

    def list_accounts(self) -> list[Account]:
        return self.store.list_accounts()

    def list_pending(self) -> list[Account]:
        return self.store.list_accounts(status=STATUS_PENDING)

    def _raise_for(self, account_id: int, error: type, message: str) -> None:
        """Explain a transition that matched no row: missing account or wrong status."""
        if self.store.get_by_id(account_id) is None:
            raise AccountNotFound()
        raise error(message)

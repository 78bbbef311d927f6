#!/usr/bin/env python3
"""Promote the first administrator.

Nobody can use the admin routes until some account holds the admin role, and
only an admin can grant it. This script breaks that loop from the server host.
The person must have signed in with Google once so their account exists.

Usage:
    python scripts/bootstrap_admin.py --email admin@example.com
    python scripts/bootstrap_admin.py --email admin@example.com --dry-run

Environment Variables:
    DATABASE_URL: SQLAlchemy URL of the account database (same as the API)
    JWT_SECRET / DEBUG: required by the shared settings loader
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def bootstrap_admin(email: str, dry_run: bool = False) -> dict:
    """Approve the account for email (if needed) and give it the admin role.

    Returns:
        dict with user_id, email, and status
        ('already_admin', 'promoted', 'dry_run', or 'not_found')
    """
    # Import here to avoid loading config before env vars are set
    from auth.lifecycle import AccountService
    from auth.models import ROLE_ADMIN, STATUS_PENDING
    from auth.store import AccountStore
    from auth.tokens import CredentialService
    from core.config import get_settings

    settings = get_settings()
    store = AccountStore(settings.database_url)
    try:
        accounts = AccountService(store, CredentialService.from_settings(settings))
        account = store.get_by_email(email)
        if account is None:
            print(f"No account for {email}. Sign in with Google once, then re-run.")
            return {"user_id": None, "email": email, "status": "not_found"}

        if account.is_approved and account.role == ROLE_ADMIN:
            print(f"User {email} already exists as admin (id: {account.id})")
            return {"user_id": account.id, "email": email, "status": "already_admin"}

        if dry_run:
            print(f"[DRY RUN] Would promote {email} (status: {account.status}) to admin")
            return {"user_id": account.id, "email": email, "status": "dry_run"}

        if account.status == STATUS_PENDING:
            accounts.approve(account.id, approver_id=account.id)
        accounts.set_role(account.id, ROLE_ADMIN)
        print(f"Promoted {email} to admin (id: {account.id})")
        return {"user_id": account.id, "email": email, "status": "promoted"}
    finally:
        store.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Promote a signed-in account to admin.")
    parser.add_argument("--email", required=True, help="Email of the account to promote")
    parser.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    args = parser.parse_args(argv)

    from auth.errors import AuthError

    try:
        result = bootstrap_admin(args.email, dry_run=args.dry_run)
    except AuthError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    return 1 if result["status"] == "not_found" else 0


if __name__ == "__main__":
    sys.exit(main())

"""
auth/store.py -- SQLAlchemy Core persistence for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. Services never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  [DB1] Lifecycle changes go through transition(), a single conditional
        UPDATE ... WHERE id = :id AND status IN (...). The status check and
        the write are one statement, so two concurrent admin actions cannot
        both observe "pending" and both win.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import Pool, SingletonThreadPool

from auth.models import Account

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", Text),
    Column("picture", Text),
    Column("google_id", String(255), nullable=False, unique=True),  # provider subject id
    Column("role", String(20), nullable=False, server_default="pending"),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("approved_by", Integer),
    Column("approved_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block on writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account records.

    Usage:
        store = AccountStore("sqlite:///:memory:")
        account_id = store.create_account(Account(google_id="g-1", email="a@example.com"))
        store.transition(account_id, {"pending"}, status="approved", role="user")
        store.close()
    """

    def __init__(self, db_url: str, poolclass: type[Pool] | None = None) -> None:
        connect_args: dict = {}
        in_memory = db_url.startswith("sqlite") and "memory" in db_url
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        if poolclass is None and in_memory:
            # One connection per thread keeps a shared-cache memory DB alive.
            poolclass = SingletonThreadPool
        engine_kwargs: dict = {"connect_args": connect_args}
        if poolclass is not None:
            engine_kwargs["poolclass"] = poolclass
        self.engine: Engine = create_engine(db_url, **engine_kwargs)
        if db_url.startswith("sqlite") and not in_memory:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its id.

        Raises sqlalchemy.exc.IntegrityError if the google_id or email is
        already taken. Callers tell a concurrent first login apart from an
        email held by another account.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    email=account.email,
                    name=account.name,
                    picture=account.picture,
                    google_id=account.google_id,
                    role=account.role,
                    status=account.status,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, account_id: int) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_google_id(self, google_id: str) -> Account | None:
        """Look up an account by provider subject id. Returns None if unseen."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.google_id == google_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self, status: str | None = None) -> list[Account]:
        """Return accounts ordered by id, optionally filtered by status."""
        query = _accounts.select().order_by(_accounts.c.id)
        if status is not None:
            query = query.where(_accounts.c.status == status)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_account(r) for r in rows]

    def update_profile(self, account_id: int, email: str, name: str, picture: str) -> bool:
        """Refresh provider-owned display fields. Never touches role or status."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(email=email, name=name, picture=picture, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def transition(self, account_id: int, from_statuses: Iterable[str], **fields) -> bool:
        """Apply fields only if the account's current status is in from_statuses [DB1].

        Accepted fields: role, status, approved_by, approved_at.
        Returns True if a row was updated, False if the account is missing or
        its status did not match.
        """
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where((_accounts.c.id == account_id) & (_accounts.c.status.in_(list(from_statuses))))
                .values(**fields)
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        google_id=row.google_id,
        email=row.email,
        name=row.name or "",
        picture=row.picture or "",
        role=row.role,
        status=row.status,
        approved_by=row.approved_by,
        approved_at=row.approved_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

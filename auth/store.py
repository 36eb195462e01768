"""
auth/store.py -- SQLAlchemy Core persistence layer for organizations, accounts
and sessions.

Pattern: Repository + Data Mapper (same as vault/store.py).
AccountStore is the repository; the _row_to_* functions are the mappers.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  users.email is UNIQUE at the SQL level. Two concurrent signups with the same
  email race on the INSERT, and the loser gets IntegrityError, which
  create_user() turns into DuplicateEmail. A read-then-insert check in the
  route would leave that window open.

  sessions.token_hash is UNIQUE and is the only lookup key; raw tokens are
  never written.

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Organization, SessionRecord, User
from core.config import get_settings
from core.db import create_store_engine
from core.errors import DuplicateEmail

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_organizations = Table(
    "organizations",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
)

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("organization_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # HMAC-SHA256 hex
    Column("user_id", Integer, nullable=False, index=True),
    Column("organization_id", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Organization, User and SessionRecord entities.

    Usage:
        store = AccountStore()
        org_id = store.create_organization("Acme QA")
        user_id = store.create_user(User(email="a@acme.io", organization_id=org_id, hashed_password=h))
        user = store.get_user_by_email("a@acme.io")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = create_store_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(select(1)).scalar() == 1

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    def create_organization(self, name: str) -> int:
        """Insert a new organization and return its ID. name must already be trimmed."""
        with self.engine.connect() as conn:
            result = conn.execute(_organizations.insert().values(name=name, created_at=_now_iso()))
            conn.commit()
            return result.inserted_primary_key[0]

    def get_organization(self, org_id: int) -> Organization | None:
        with self.engine.connect() as conn:
            row = conn.execute(_organizations.select().where(_organizations.c.id == org_id)).fetchone()
        return _row_to_organization(row) if row is not None else None

    def list_organizations(self) -> list[Organization]:
        """Return every organization, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _organizations.select().order_by(_organizations.c.created_at.desc(), _organizations.c.id.desc())
            ).fetchall()
        return [_row_to_organization(r) for r in rows]

    def delete_organization(self, org_id: int) -> bool:
        """Delete an organization row. Returns True if deleted, False if not found.

        Callers must check that no accounts or test-user records still
        reference the organization -- the store does not cascade.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_organizations.delete().where(_organizations.c.id == org_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new account and return its ID.

        Raises DuplicateEmail if the email is already registered (UNIQUE
        constraint, so concurrent signups cannot both succeed).
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=user.email,
                        hashed_password=user.hashed_password,
                        organization_id=user.organization_id,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateEmail() from exc

    def get_user_by_email(self, email: str) -> User | None:
        """Look up an account by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_users_by_ids(self, user_ids: set[int]) -> dict[int, User]:
        """Return {id: User} for every ID that exists. One query regardless of size.

        Used to embed holder identity into test-user listings.
        """
        if not user_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(sorted(user_ids)))).fetchall()
        return {row.id: _row_to_user(row) for row in rows}

    def list_users(self, organization_id: int) -> list[User]:
        """Return the accounts of one organization ordered by email."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.organization_id == organization_id).order_by(_users.c.email)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_users(self, organization_id: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.organization_id == organization_id)
            ).scalar()
        return result or 0

    def delete_user(self, user_id: int, precondition: Optional[Callable[[Connection], None]] = None) -> bool:
        """Permanently delete an account and all of its sessions.

        The store cannot see test-user records, so lease checks come in as
        precondition(conn). It runs inside the same write transaction as the
        deletes; raising from it rolls everything back. Returns True if deleted.
        """
        with self.engine.begin() as conn:
            if precondition is not None:
                precondition(conn)
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, record: SessionRecord) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.insert().values(
                    token_hash=record.token_hash,
                    user_id=record.user_id,
                    organization_id=record.organization_id,
                    created_at=_now_iso(),
                    expires_at=record.expires_at,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_session(self, token_hash: str) -> SessionRecord | None:
        """Look up a session by token digest. O(1) via UNIQUE index."""
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.token_hash == token_hash)).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_session(self, token_hash: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.token_hash == token_hash))
            conn.commit()
        return result.rowcount > 0

    def purge_expired_sessions(self, now_iso: str | None = None) -> int:
        """Delete every session whose expires_at is in the past. Returns the count.

        expires_at is always written by SessionAuthority as a UTC isoformat()
        string, so lexical comparison matches chronological order.
        """
        cutoff = now_iso or _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= cutoff))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_organization(row) -> Organization:
    return Organization(id=row.id, name=row.name, created_at=row.created_at)


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        organization_id=row.organization_id,
        created_at=row.created_at,
    )


def _row_to_session(row) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        token_hash=row.token_hash,
        user_id=row.user_id,
        organization_id=row.organization_id,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )

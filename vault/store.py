"""
vault/store.py -- SQLAlchemy-backed persistence for test-user records.

Uses SQLAlchemy Core (not ORM) so the dataclasses in vault/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. TestUserStore is the repository; the
row_to_test_user function is the mapper. Route handlers never touch SQL.

This store has no lease logic. It inserts records with the lease cleared and
reads them back; the lease columns are written only by vault/leases.py, which
shares the table definition and engine with this module. Deletion also goes
through LeaseManager so it can be scoped to the caller's organization in the
same statement.

Every list query filters on organization_id. There is deliberately no
"list all records" method.

Usage:
    store = TestUserStore()
    record_id = store.create_test_user(TestUser(first_name="Alice", ...))
    records = store.list_test_users(organization_id=1)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Connection, Engine

from core.config import get_settings
from core.db import create_store_engine
from vault.models import TestUser

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

test_users = Table(
    "test_users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("password", Text, nullable=False),  # shared staging credential, stored as entered
    Column("organization_id", Integer, nullable=False, index=True),
    Column("is_checked_out", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("checked_out_by", Integer),  # users.id, NULL iff is_checked_out = 0
    Column("checked_out_at", String(32)),  # NULL iff is_checked_out = 0
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TestUserStore:
    # Not a pytest test class despite the name.
    __test__ = False

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = create_store_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def create_test_user(self, record: TestUser) -> int:
        """Insert a new record with the lease cleared and return its ID.

        Any lease fields set on the dataclass are ignored: a record is always
        born AVAILABLE.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                test_users.insert().values(
                    first_name=record.first_name,
                    last_name=record.last_name,
                    email=record.email,
                    password=record.password,
                    organization_id=record.organization_id,
                    is_checked_out=0,
                    checked_out_by=None,
                    checked_out_at=None,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_test_user(self, record_id: int) -> Optional[TestUser]:
        """Return the record or None. Not org-scoped -- callers check organization_id."""
        with self.engine.connect() as conn:
            row = conn.execute(test_users.select().where(test_users.c.id == record_id)).fetchone()
        return row_to_test_user(row) if row is not None else None

    def list_test_users(self, organization_id: int) -> list[TestUser]:
        """Return one organization's records, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                test_users.select()
                .where(test_users.c.organization_id == organization_id)
                .order_by(test_users.c.created_at.desc(), test_users.c.id.desc())
            ).fetchall()
        return [row_to_test_user(r) for r in rows]

    def list_held_by(self, user_id: int) -> list[TestUser]:
        """Return every record currently checked out by user_id."""
        with self.engine.connect() as conn:
            return held_by(conn, user_id)

    def count_test_users(self, organization_id: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(test_users).where(test_users.c.organization_id == organization_id)
            ).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def row_to_test_user(row) -> TestUser:
    return TestUser(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        password=row.password,
        organization_id=row.organization_id,
        is_checked_out=bool(row.is_checked_out),
        checked_out_by=row.checked_out_by,
        checked_out_at=row.checked_out_at,
        created_at=row.created_at,
    )


def held_by(conn: Connection, user_id: int) -> list[TestUser]:
    """Records checked out by user_id, read on a caller's connection.

    Lets a caller on another store's engine check leases inside its own
    transaction; the tables must live in the same database.
    """
    rows = conn.execute(
        test_users.select()
        .where((test_users.c.checked_out_by == user_id) & (test_users.c.is_checked_out == 1))
        .order_by(test_users.c.checked_out_at)
    ).fetchall()
    return [row_to_test_user(r) for r in rows]

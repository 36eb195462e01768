"""
core/db.py -- Engine factory shared by the auth and vault stores.

Both stores talk to the same database URL but own their own engines and
tables (auth/ never imports vault/ and vice versa). This module holds the
connection setup they have in common.

SQLite transaction handling:
  pysqlite starts transactions lazily with a plain deferred BEGIN. Two
  deferred writers that both read before writing can deadlock, and SQLite
  resolves that by failing one of them with "database is locked" instead of
  waiting. Lease transitions must never fail that way, so every transaction
  starts with BEGIN IMMEDIATE: the write lock is taken up front and competing
  writers wait on the busy timeout. This is the recipe from the SQLAlchemy
  pysqlite dialect docs (disable the driver's BEGIN, emit our own).

  WAL journal mode keeps readers from blocking on the writer.

Layer rule: no imports from api/, auth/, or vault/.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

# Seconds a writer waits for the lock before sqlite3 gives up.
_SQLITE_BUSY_TIMEOUT = 15


def _on_sqlite_connect(dbapi_conn, connection_record) -> None:
    """Per-connection setup. PRAGMAs are not inherited from the pool."""
    # Stop pysqlite from emitting its own deferred BEGIN; _on_sqlite_begin does it.
    dbapi_conn.isolation_level = None
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _on_sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_store_engine(db_url: str) -> Engine:
    """Return an Engine for db_url with LeaseDesk's SQLite settings applied.

    Non-SQLite URLs get a stock engine; conditional UPDATEs are atomic there
    without extra help.
    """
    connect_args: dict = {}
    is_sqlite = db_url.startswith("sqlite")
    if is_sqlite:
        # FastAPI runs sync handlers in a thread pool, so a pooled connection
        # may be used from a thread other than the one that opened it.
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = _SQLITE_BUSY_TIMEOUT
    engine = create_engine(db_url, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _on_sqlite_connect)
        event.listen(engine, "begin", _on_sqlite_begin)
    return engine

"""
vault/leases.py -- Checkout / checkin state machine for test-user records.

States per record:
  AVAILABLE                    is_checked_out = 0, holder and timestamp NULL
  CHECKED_OUT(by, at)          is_checked_out = 1, holder and timestamp set

Transitions:
  checkout  AVAILABLE -> CHECKED_OUT(caller, now)
  checkin   CHECKED_OUT(caller, _) -> AVAILABLE      (holder only)
  delete    any -> (gone)                           (any member of the org)

A lease never expires and is never reclaimed by force. It ends when the
holder checks in or the record is deleted.

Atomicity:
  Each transition is ONE conditional UPDATE whose WHERE clause is the
  transition's precondition (compare-and-swap). The database decides the
  winner: of two concurrent checkouts on an AVAILABLE row, exactly one sees
  rowcount == 1. There is no read-then-write window to race through.

  Only when the guard misses do we re-read the row -- inside the same
  transaction, so the state we report is the state that beat us -- to pick
  the right error. Under SQLite every transaction is BEGIN IMMEDIATE (see
  core/db.py), so the re-read cannot interleave with another writer either.

  organization_id is part of every guard, which keeps the holder in the
  record's organization at the SQL level, not just in the route layer.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from core.errors import AlreadyCheckedOut, ConflictError, ForbiddenError, NotCheckedOut, NotFoundError, NotLeaseHolder
from core.models import Principal
from vault.models import TestUser
from vault.store import TestUserStore, row_to_test_user, test_users

logger = logging.getLogger("leasedesk.vault")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _fetch(conn, record_id: int) -> Optional[TestUser]:
    row = conn.execute(test_users.select().where(test_users.c.id == record_id)).fetchone()
    return row_to_test_user(row) if row is not None else None


def _check_scope(current: Optional[TestUser], record_id: int, principal: Principal) -> TestUser:
    """Raise NotFoundError / ForbiddenError unless current is visible to principal."""
    if current is None:
        raise NotFoundError(f"Test user {record_id} not found.")
    if current.organization_id != principal.organization_id:
        raise ForbiddenError()
    return current


class LeaseManager:
    """The only writer of a test-user record's lease columns.

    Usage:
        leases = LeaseManager(test_user_store)
        record = leases.checkout(record_id, principal)
        record = leases.checkin(record_id, principal)
        leases.delete(record_id, principal)
    """

    def __init__(self, store: TestUserStore) -> None:
        self._store = store

    def checkout(self, record_id: int, principal: Principal) -> TestUser:
        """Take the lease on an AVAILABLE record and return the updated record.

        Raises:
            NotFoundError     -- no such record
            ForbiddenError    -- record belongs to another organization
            AlreadyCheckedOut -- someone holds it (the caller included)
        """
        now = _now_iso()
        with self._store.engine.begin() as conn:
            result = conn.execute(
                test_users.update()
                .where(
                    (test_users.c.id == record_id)
                    & (test_users.c.organization_id == principal.organization_id)
                    & (test_users.c.is_checked_out == 0)
                )
                .values(is_checked_out=1, checked_out_by=principal.user_id, checked_out_at=now)
            )
            current = _check_scope(_fetch(conn, record_id), record_id, principal)
            if result.rowcount == 1:
                logger.info("Test user %d checked out by user %d", record_id, principal.user_id)
                return current
            if current.is_checked_out:
                logger.debug(
                    "Checkout of test user %d by user %d refused: held by %s",
                    record_id,
                    principal.user_id,
                    current.checked_out_by,
                )
                raise AlreadyCheckedOut(current.checked_out_by, current.checked_out_at)
            # Guard missed but the row is AVAILABLE and in scope -- cannot happen
            # inside one serialized transaction.
            raise ConflictError(f"Test user {record_id} changed during checkout.")

    def checkin(self, record_id: int, principal: Principal) -> TestUser:
        """Release a lease held by the caller and return the updated record.

        Raises:
            NotFoundError  -- no such record
            ForbiddenError -- record belongs to another organization
            NotCheckedOut  -- record is already AVAILABLE
            NotLeaseHolder -- someone else holds it
        """
        with self._store.engine.begin() as conn:
            result = conn.execute(
                test_users.update()
                .where(
                    (test_users.c.id == record_id)
                    & (test_users.c.organization_id == principal.organization_id)
                    & (test_users.c.is_checked_out == 1)
                    & (test_users.c.checked_out_by == principal.user_id)
                )
                .values(is_checked_out=0, checked_out_by=None, checked_out_at=None)
            )
            current = _check_scope(_fetch(conn, record_id), record_id, principal)
            if result.rowcount == 1:
                logger.info("Test user %d checked in by user %d", record_id, principal.user_id)
                return current
            if not current.is_checked_out:
                raise NotCheckedOut()
            logger.debug(
                "Checkin of test user %d by user %d refused: held by %s",
                record_id,
                principal.user_id,
                current.checked_out_by,
            )
            raise NotLeaseHolder()

    def delete(self, record_id: int, principal: Principal) -> None:
        """Delete a record whatever its lease state. Any lease is discarded with it.

        Raises NotFoundError / ForbiddenError exactly like checkout.
        """
        with self._store.engine.begin() as conn:
            current = _check_scope(_fetch(conn, record_id), record_id, principal)
            conn.execute(
                test_users.delete().where(
                    (test_users.c.id == record_id) & (test_users.c.organization_id == principal.organization_id)
                )
            )
        if current.is_checked_out:
            logger.info(
                "Test user %d deleted by user %d while held by user %s",
                record_id,
                principal.user_id,
                current.checked_out_by,
            )
        else:
            logger.info("Test user %d deleted by user %d", record_id, principal.user_id)

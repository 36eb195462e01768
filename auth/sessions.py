"""
auth/sessions.py -- Session authority: issue, resolve and destroy sessions.

A session maps an opaque token to (user_id, organization_id) for a fixed
lifetime (SESSION_EXPIRE_SECONDS, 7 days by default). State lives in the
sessions table, never in process memory, so the authority is safe to share
across worker threads and processes.

Failure model:
  validate() raises SessionInvalid with a reason. resolve_session() is the
  soft variant used on every request: any invalid token becomes None
  (anonymous), never an error. Either way, a row that turned out to be
  stale (expired, or pointing at a deleted account) is deleted on sight.

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from auth.models import SessionRecord
from auth.store import AccountStore
from auth.tokens import generate_session_token, hash_session_token
from core.config import get_settings
from core.errors import SessionInvalid
from core.models import Principal

logger = logging.getLogger("leasedesk.auth.sessions")


class SessionAuthority:
    """Token-keyed session store on top of AccountStore.

    Usage:
        sessions = SessionAuthority(account_store)
        token = sessions.create_session(user_id, organization_id)
        principal = sessions.resolve_session(token)   # Principal or None
        sessions.destroy_session(token)
    """

    def __init__(self, store: AccountStore, expire_seconds: int | None = None) -> None:
        self._store = store
        self.expire_seconds = expire_seconds or get_settings().session_expire_seconds

    def create_session(self, user_id: int, organization_id: int) -> str:
        """Issue a new session and return the raw token (shown to the client once).

        Expired rows are purged here rather than by a background task; login
        traffic is enough to keep the table small.
        """
        now = datetime.now(timezone.utc)
        self._store.purge_expired_sessions(now.isoformat())
        token = generate_session_token()
        self._store.create_session(
            SessionRecord(
                token_hash=hash_session_token(token),
                user_id=user_id,
                organization_id=organization_id,
                expires_at=(now + timedelta(seconds=self.expire_seconds)).isoformat(),
            )
        )
        logger.info("Session issued for user %d (org %d)", user_id, organization_id)
        return token

    def validate(self, token: str | None) -> Principal:
        """Return the Principal for token or raise SessionInvalid."""
        if not token:
            raise SessionInvalid("No session token supplied.")
        token_hash = hash_session_token(token)
        record = self._store.get_session(token_hash)
        if record is None:
            raise SessionInvalid("Unknown session token.")

        if _parse_iso(record.expires_at) <= datetime.now(timezone.utc):
            self._store.delete_session(token_hash)
            raise SessionInvalid("Session expired.")

        user = self._store.get_user_by_id(record.user_id)
        if user is None or user.organization_id != record.organization_id:
            # Dangling reference -- the account was deleted after login.
            self._store.delete_session(token_hash)
            raise SessionInvalid("Session account no longer exists.")

        return Principal(user_id=user.id, organization_id=user.organization_id, email=user.email)

    def resolve_session(self, token: str | None) -> Principal | None:
        try:
            return self.validate(token)
        except SessionInvalid as exc:
            if token:
                logger.debug("Session rejected: %s", exc.message)
            return None

    def destroy_session(self, token: str | None) -> None:
        """Remove the session if it exists. Idempotent."""
        if token:
            self._store.delete_session(hash_session_token(token))


def _parse_iso(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

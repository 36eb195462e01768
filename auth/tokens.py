"""
auth/tokens.py -- Password hashing, session token and cookie utilities.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

  Session tokens: secrets.token_urlsafe(32) gives 256 bits of entropy. The
       store keeps HMAC-SHA256(SECRET_KEY, token) so lookup is O(1) and a
       copy of the database alone cannot be replayed as cookies. Tokens are
       opaque: all meaning lives in the sessions table, which makes logout
       and revocation a plain DELETE.

  SECRET_KEY: sourced from core.config.get_settings(). Dev mode (DEBUG=true)
       auto-generates a random key with a warning; production mode refuses to
       start without one.

Layer rule: no imports from api/ or vault/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import TYPE_CHECKING

import bcrypt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import AccountStore

logger = logging.getLogger("leasedesk.auth")

_settings = get_settings()

SESSION_COOKIE = "session_token"
# Informational only. The server never reads it -- the session row is the
# source of truth for the caller's organization.
ORGANIZATION_COOKIE = "organization_id"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes; the API layer caps passwords at
    255 characters (Pydantic field), which bcrypt 4.x accepts after encoding.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the DB
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("leasedesk_timing_dummy")


def authenticate_user(store: AccountStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_user_by_email(email)
    if user is None or not user.hashed_password:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def hash_session_token(raw_token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_token) as a hex string."""
    return hmac.new(
        _settings.secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookies(response, token: str, organization_id: int) -> None:
    """Write the session cookies on a response.

    httponly=True: JS cannot read the cookies (XSS mitigation).
    samesite="lax": sent on same-site requests and top-level GET navigations,
        not on cross-site POST -- CSRF mitigation for the lease mutations.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the session row's expiry so both end together.
    """
    for name, value in ((SESSION_COOKIE, token), (ORGANIZATION_COOKIE, str(organization_id))):
        response.set_cookie(
            name,
            value=value,
            httponly=True,
            samesite="lax",
            secure=_settings.secure_cookies,
            max_age=_settings.session_expire_seconds,
        )


def clear_session_cookies(response) -> None:
    response.delete_cookie(SESSION_COOKIE)
    response.delete_cookie(ORGANIZATION_COOKIE)

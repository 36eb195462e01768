"""
auth/models.py -- Domain dataclasses for organizations, accounts and sessions.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in vault/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Organization:
    """A tenant. Every account, session and test-user record belongs to one."""

    name: str
    id: int | None = None
    created_at: str | None = None


@dataclass
class User:
    """An account holder -- the identity behind sessions and lease ownership.

    email is unique across all organizations (UNIQUE constraint in the store).
    hashed_password is a bcrypt hash; the plaintext is never stored.
    organization_id never changes after signup.
    """

    email: str
    organization_id: int
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None


@dataclass
class SessionRecord:
    """A stored session row.

    token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token lives only
    in the client's cookie; a leaked DB does not leak usable sessions.
    """

    token_hash: str
    user_id: int
    organization_id: int
    expires_at: str  # ISO 8601 UTC
    id: int | None = None
    created_at: str | None = None

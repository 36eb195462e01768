"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

Two token sources are checked in priority order:
  1. "session_token" cookie -- set by POST /auth/login and /auth/signup.
  2. Authorization: Bearer <token> header -- scripts and API clients.

Both resolve through the SessionAuthority on app.state, so a token works the
same way regardless of how it was presented.

try_get_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises AuthError (401) if unauthenticated.

Layer rule: no imports from api/ or vault/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.sessions import SessionAuthority
from auth.tokens import SESSION_COOKIE
from core.errors import AuthError
from core.models import Principal


def get_session_token(request: Request) -> str | None:
    """Return the raw session token from the cookie or Bearer header, if any."""
    token: str | None = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def try_get_principal(request: Request) -> Principal | None:
    """Authenticate the request. Returns None on any failure, never raises."""
    sessions: SessionAuthority = request.app.state.sessions
    return sessions.resolve_session(get_session_token(request))


def get_current_principal(request: Request) -> Principal:
    """Require a valid session. Raises AuthError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_principal(request)
    if principal is None:
        raise AuthError()
    return principal

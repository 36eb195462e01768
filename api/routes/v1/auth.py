"""
api/routes/v1/auth.py -- Login, signup, session and logout endpoints.

Routes:
  POST /api/v1/auth/login    -- password login; sets session cookies
  POST /api/v1/auth/signup   -- create account in an existing org; sets session cookies
  GET  /api/v1/auth/session  -- current account or {"user": null}; never fails
  POST /api/v1/auth/logout   -- destroys the session; clears cookies

Security:
  POST /login and /signup are rate-limited per IP (LOGIN_RATE_LIMIT,
  SIGNUP_RATE_LIMIT).
  authenticate_user() provides timing equalization -- use it, never inline
  get_user_by_email() + verify_password().
  Cache-Control: no-store on every response that carries a session token.
  Duplicate signups get no session. The email pre-check only orders the
  errors; two racing signups are settled by the UNIQUE(email) constraint.
  Limits are read from settings on each request (slowapi dynamic limits).
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import AccountResponse, AuthResponse, LoginRequest, SessionResponse, SignupRequest, SuccessResponse
from auth.dependencies import get_session_token
from auth.models import User
from auth.sessions import SessionAuthority
from auth.store import AccountStore
from auth.tokens import authenticate_user, clear_session_cookies, hash_password, set_session_cookies
from core.config import get_settings
from core.errors import AuthError, DuplicateEmail, NotFoundError, SessionInvalid

logger = logging.getLogger("leasedesk.api.auth")

# Auth policy: every route here is public. /session and /logout read the
# session themselves so they can degrade to "logged out" instead of 401.
router = APIRouter()


def _session_response(user: User, token: str, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(user=AccountResponse.from_user(user), session_token=token).model_dump(by_alias=True),
    )
    set_session_cookies(resp, token, user.organization_id)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(lambda: get_settings().login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and start a session.

    The same error is returned for an unknown email and a wrong password.
    """
    user_store: AccountStore = request.app.state.user_store
    sessions: SessionAuthority = request.app.state.sessions

    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        raise AuthError("Invalid email or password.")

    token = sessions.create_session(user.id, user.organization_id)
    return _session_response(user, token, 200)


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
@limiter.limit(lambda: get_settings().signup_rate_limit)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create an account in an existing organization and start a session.

    Email already registered -> 400 duplicate_email, checked before the
    organization so a taken email reports the same way whatever org is sent.
    Unknown organization -> 404. The UNIQUE(email) constraint still decides
    concurrent signups (create_user raises DuplicateEmail).
    """
    user_store: AccountStore = request.app.state.user_store
    sessions: SessionAuthority = request.app.state.sessions

    if user_store.get_user_by_email(body.email) is not None:
        raise DuplicateEmail()
    if user_store.get_organization(body.organization_id) is None:
        raise NotFoundError("Organization not found.")

    user = User(
        email=body.email,
        organization_id=body.organization_id,
        hashed_password=hash_password(body.password),
    )
    user.id = user_store.create_user(user)
    logger.info("Account %d created in org %d", user.id, user.organization_id)

    token = sessions.create_session(user.id, user.organization_id)
    return _session_response(user, token, 201)


@router.get("/auth/session", response_model=SessionResponse)
def get_session(request: Request) -> JSONResponse:
    """Return the account behind the current session, or {"user": null}.

    A token that no longer resolves (expired, revoked, account deleted) has
    its cookies cleared on the way out so the client stops sending it.
    """
    sessions: SessionAuthority = request.app.state.sessions
    token = get_session_token(request)
    if token is None:
        return JSONResponse(content=SessionResponse().model_dump(by_alias=True))

    try:
        principal = sessions.validate(token)
    except SessionInvalid as exc:
        logger.debug("Clearing invalid session: %s", exc.message)
        resp = JSONResponse(content=SessionResponse().model_dump(by_alias=True))
        clear_session_cookies(resp)
        return resp
    except SQLAlchemyError:
        # Store down: report logged-out but keep the cookies, the token may still be good.
        logger.exception("Session lookup failed; answering as logged out")
        return JSONResponse(content=SessionResponse().model_dump(by_alias=True))

    return JSONResponse(
        content=SessionResponse(user=AccountResponse.from_principal(principal)).model_dump(by_alias=True)
    )


@router.post("/auth/logout", response_model=SuccessResponse)
def logout(request: Request) -> JSONResponse:
    """Destroy the session (if any) and clear the cookies. Always succeeds."""
    sessions: SessionAuthority = request.app.state.sessions
    sessions.destroy_session(get_session_token(request))
    resp = JSONResponse(content=SuccessResponse().model_dump(by_alias=True))
    clear_session_cookies(resp)
    return resp

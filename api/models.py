"""
API request and response models for LeaseDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
vault/models.py, which own the internal domain representation. Route handlers
map between the two.

Wire format: field names are camelCase on the wire (alias_generator=to_camel)
and snake_case in Python. Request models forbid unknown fields, so a typo in
a client payload is a 400 rather than a silently ignored key.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import Organization, User
from core.models import Principal
from vault.models import TestUser

# ---------------------------------------------------------------------------
# Base models
# ---------------------------------------------------------------------------


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class _ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(_RequestModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class SignupRequest(_RequestModel):
    """Request body for POST /api/v1/auth/signup. The organization must already exist."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    organization_id: int


class AccountResponse(_ResponseModel):
    id: int
    email: str
    organization_id: int

    @classmethod
    def from_user(cls, user: User) -> "AccountResponse":
        return cls(id=user.id, email=user.email, organization_id=user.organization_id)

    @classmethod
    def from_principal(cls, principal: Principal) -> "AccountResponse":
        return cls(id=principal.user_id, email=principal.email, organization_id=principal.organization_id)


class AuthResponse(_ResponseModel):
    """Response for login and signup.

    session_token is the same opaque value written to the session_token
    cookie; API clients that cannot keep cookies send it as a Bearer token.
    """

    user: AccountResponse
    session_token: str


class SessionResponse(_ResponseModel):
    """Response for GET /api/v1/auth/session. user is null when logged out."""

    user: Optional[AccountResponse] = None


class SuccessResponse(_ResponseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


class OrganizationCreate(_RequestModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)


class OrganizationResponse(_ResponseModel):
    id: int
    name: str
    created_at: str

    @classmethod
    def from_organization(cls, org: Organization) -> "OrganizationResponse":
        return cls(id=org.id, name=org.name, created_at=org.created_at or "")


class AccountSummary(_ResponseModel):
    """Public identity of an account: who holds a lease, who is in an org."""

    id: int
    email: str


# ---------------------------------------------------------------------------
# Test users
# ---------------------------------------------------------------------------


class TestUserCreate(_RequestModel):
    """Request body for POST /api/v1/test-users.

    password is the staging credential being shared. It is stored and
    returned as entered, so no whitespace stripping here.
    """

    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1000)
    organization_id: int


class TestUserResponse(_ResponseModel):
    """One test-user record with its lease state and embedded holder."""

    id: int
    first_name: str
    last_name: str
    email: str
    password: str
    organization_id: int
    is_checked_out: bool
    checked_out_by_user_id: Optional[int] = None
    checked_out_by: Optional[AccountSummary] = None
    checked_out_at: Optional[str] = None
    created_at: str

    @classmethod
    def from_record(
        cls,
        record: TestUser,
        holder: Optional[User] = None,
        viewer: Optional[Principal] = None,
        redact_unheld: bool = False,
    ) -> "TestUserResponse":
        """Build a response from a TestUser.

        With redact_unheld=True the email and password are blanked unless
        viewer is the current holder. The holder's identity is never hidden.
        """
        held_by_viewer = viewer is not None and record.is_checked_out and record.checked_out_by == viewer.user_id
        hide = redact_unheld and not held_by_viewer
        return cls(
            id=record.id,
            first_name=record.first_name,
            last_name=record.last_name,
            email="" if hide else record.email,
            password="" if hide else record.password,
            organization_id=record.organization_id,
            is_checked_out=record.is_checked_out,
            checked_out_by_user_id=record.checked_out_by,
            checked_out_by=AccountSummary(id=holder.id, email=holder.email) if holder is not None else None,
            checked_out_at=record.checked_out_at,
            created_at=record.created_at,
        )


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)

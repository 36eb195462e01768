"""
core/errors.py -- Exception taxonomy shared by every LeaseDesk layer.

Stores, the session authority and the lease manager raise these; the API
layer has exactly one exception handler that renders any LeaseDeskError as
the standard error envelope. Nothing below api/ knows about HTTP, but each
class carries the status code it maps to so the handler stays a one-liner.

Lease conflicts (AlreadyCheckedOut, NotLeaseHolder, NotCheckedOut) are
expected and frequent. They share the ConflictError base so clients and logs
can tell them apart from genuine faults (InternalError).

Layer rule: no imports from api/, auth/, or vault/.
"""

from __future__ import annotations

from typing import Optional


class LeaseDeskError(Exception):
    """Base class. Subclasses override status_code / code / default message."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


class ValidationError(LeaseDeskError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class AuthError(LeaseDeskError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class SessionInvalid(AuthError):
    """Token unknown, expired, or pointing at an account that no longer exists.

    Only ever raised by SessionAuthority.validate(). Callers that just want a
    logged-out state use resolve_session(), which swallows it and returns None.
    """

    code = "session_invalid"
    message = "Session is no longer valid."


class ForbiddenError(LeaseDeskError):
    status_code = 403
    code = "forbidden"
    message = "This resource belongs to another organization."


class NotFoundError(LeaseDeskError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class ConflictError(LeaseDeskError):
    status_code = 409
    code = "conflict"
    message = "The request conflicts with the current state."


class AlreadyCheckedOut(ConflictError):
    code = "already_checked_out"
    message = "This test user is already checked out."

    def __init__(
        self,
        holder_id: Optional[int] = None,
        checked_out_at: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.holder_id = holder_id
        self.checked_out_at = checked_out_at
        detail = f"held by user {holder_id} since {checked_out_at}" if holder_id is not None else None
        super().__init__(message, detail)


class NotLeaseHolder(ConflictError):
    code = "not_lease_holder"
    message = "Only the user who checked out this test user can check it in."


class NotCheckedOut(ConflictError):
    code = "not_checked_out"
    message = "This test user is not checked out."


class DuplicateEmail(ConflictError):
    # 400 rather than 409 -- signup clients already treat this as a form error.
    status_code = 400
    code = "duplicate_email"
    message = "User with this email already exists."


class InternalError(LeaseDeskError):
    pass

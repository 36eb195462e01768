from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Lease states of a test-user record. Derived from is_checked_out; never stored.
LEASE_AVAILABLE = "AVAILABLE"
LEASE_CHECKED_OUT = "CHECKED_OUT"


@dataclass(frozen=True)
class Principal:
    """The caller behind a valid session.

    Produced by auth.sessions.SessionAuthority and consumed by the vault layer,
    which is why it lives in core/: vault/ must not import auth/.
    """

    user_id: int
    organization_id: int
    email: str = ""

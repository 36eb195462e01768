"""
vault/models.py -- Domain dataclasses for shared test-user records.

These are plain data containers. Lease transitions live in
vault/leases.py; persistence lives in vault/store.py.
"""

from dataclasses import dataclass
from typing import Optional

from core.models import LEASE_AVAILABLE, LEASE_CHECKED_OUT


@dataclass
class TestUser:
    """A shared staging credential owned by one organization.

    Lease fields (is_checked_out, checked_out_by, checked_out_at) are set
    together or cleared together, and only by LeaseManager. checked_out_by
    is the ID of an account in the same organization.

    id is None before the record is written to the database.
    """

    # Not a pytest test class despite the name.
    __test__ = False

    first_name: str
    last_name: str
    email: str
    password: str
    organization_id: int
    is_checked_out: bool = False
    checked_out_by: Optional[int] = None
    checked_out_at: Optional[str] = None  # ISO 8601
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert

    @property
    def lease_state(self) -> str:
        return LEASE_CHECKED_OUT if self.is_checked_out else LEASE_AVAILABLE

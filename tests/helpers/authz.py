"""
Authorization test helpers.

Usage:
    from tests.helpers.authz import FakeClock, make_subject, TENANT_A
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from rbac import Role, Subject

TENANT_A = "tenant-a"
TENANT_B = "tenant-b"
LOCATION_1 = "loc-1"
LOCATION_2 = "loc-2"


class FakeClock:
    """Controllable UTC clock for time-dependent tests."""

    def __init__(self, start: datetime = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


def make_subject(
    role: Role,
    subject_id: str = "user-1",
    tenant_id: str = TENANT_A,
    location_id: Optional[str] = LOCATION_1,
) -> Subject:
    return Subject(subject_id=subject_id, role=role, tenant_id=tenant_id, location_id=location_id)

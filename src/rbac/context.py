"""
KGC ERP - Authorization Context

Subject is the already-authenticated caller as seen by the engine: an
identifier, a role, a mandatory tenant and an optional location. Resource
context describes what the caller is touching.

Usage:
    subject = Subject(subject_id="user-1", role=Role.BOLTVEZETO,
                      tenant_id="tenant-abc", location_id="loc-1")
    resource = ResourceContext(tenant_id="tenant-abc", location_id="loc-1")
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .roles import Role, coerce_role


@dataclass(frozen=True)
class Subject:
    """Authenticated caller identity."""

    subject_id: str
    """Unique identifier for the caller (user id)."""

    role: Role
    """The caller's single role."""

    tenant_id: str
    """Tenant the caller belongs to."""

    location_id: Optional[str] = None
    """Location for LOCATION-scoped roles; absent for TENANT/GLOBAL roles."""

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Subject":
        """
        Build a subject from authenticated-identity claims.

        Accepts either camelCase (id, tenantId, locationId) or snake_case
        keys. Unknown role names raise UnknownRoleError.
        """
        subject_id = claims.get("subject_id") or claims.get("id") or claims.get("sub") or ""
        tenant_id = claims.get("tenant_id") or claims.get("tenantId") or ""
        location_id = claims.get("location_id") or claims.get("locationId")
        return cls(
            subject_id=str(subject_id),
            role=coerce_role(claims.get("role")),
            tenant_id=str(tenant_id),
            location_id=str(location_id) if location_id else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "role": self.role.value,
            "tenant_id": self.tenant_id,
            "location_id": self.location_id,
        }


@dataclass(frozen=True)
class ResourceContext:
    """Declared tenant/location of the resource being accessed."""

    tenant_id: Optional[str] = None
    location_id: Optional[str] = None
    resource_type: str = "ENDPOINT"
    resource_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "location_id": self.location_id,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
        }


EMPTY_RESOURCE = ResourceContext()

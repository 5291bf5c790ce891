"""
KGC ERP - Scope Evaluator

Tenant and location isolation for authorization decisions.

Checks run in order and stop at the first failure:
    1. Minimum scope   - the role's scope must reach the required scope
    2. Tenant          - same tenant, unless the role is GLOBAL
    3. Location        - LOCATION roles must match the resource location
    4. Global write    - GLOBAL roles may read any tenant but only write
                         another tenant with an explicit override

Diagnostics carry identifiers only, never credentials.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .context import ResourceContext, Subject
from .decisions import DenialKind
from .roles import RoleHierarchy, RoleScope

logger = logging.getLogger(__name__)


WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def is_write_method(method: Optional[str]) -> bool:
    """Classify an HTTP verb. Only the transport adapter needs this."""
    return (method or "").upper() in WRITE_METHODS


@dataclass(frozen=True)
class ScopeCheckResult:
    """Outcome of a scope evaluation."""

    allowed: bool
    denial_kind: Optional[DenialKind] = None
    reason: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **details: Any) -> "ScopeCheckResult":
        return cls(allowed=True, reason="Scope check passed", details=details)

    @classmethod
    def fail(cls, kind: DenialKind, reason: str, **details: Any) -> "ScopeCheckResult":
        return cls(allowed=False, denial_kind=kind, reason=reason, details=details)


class ScopeEvaluator:
    """Decides whether a subject may touch a resource at a required scope."""

    def __init__(self, hierarchy: Optional[RoleHierarchy] = None):
        self.hierarchy = hierarchy if hierarchy is not None else RoleHierarchy()

    # =========================================================================
    # ROLE SCOPE HELPERS
    # =========================================================================

    def scope_for_role(self, role) -> RoleScope:
        return self.hierarchy.scope_of(role)

    def requires_location_scope(self, role) -> bool:
        return self.hierarchy.requires_location_scope(role)

    def has_global_scope(self, role) -> bool:
        return self.hierarchy.has_global_scope(role)

    # =========================================================================
    # BOOLEAN CHECKS
    # =========================================================================

    def can_access_tenant(self, subject: Subject, tenant_id: Optional[str]) -> bool:
        """Tenant isolation. GLOBAL roles may read across tenants."""
        if not tenant_id:
            return True
        if self.has_global_scope(subject.role):
            return True
        return subject.tenant_id == tenant_id

    def can_access_location(
        self,
        subject: Subject,
        tenant_id: Optional[str],
        location_id: Optional[str],
    ) -> bool:
        """Location isolation. Implies the tenant check."""
        if not self.can_access_tenant(subject, tenant_id):
            return False
        if not location_id:
            return True
        if not self.requires_location_scope(subject.role):
            return True
        return subject.location_id is not None and subject.location_id == location_id

    # =========================================================================
    # FULL EVALUATION
    # =========================================================================

    def evaluate(
        self,
        subject: Subject,
        resource: ResourceContext,
        minimum_scope: RoleScope,
        is_write: bool = False,
        allow_global_write: bool = False,
    ) -> ScopeCheckResult:
        """
        Run the four scope checks in order.

        Args:
            subject: Authenticated caller
            resource: Declared tenant/location of the resource
            minimum_scope: Scope the operation requires
            is_write: Whether the operation mutates state
            allow_global_write: Override permitting GLOBAL cross-tenant writes

        Returns:
            ScopeCheckResult with the first failing denial kind, if any
        """
        minimum_scope = RoleScope(minimum_scope)
        user_scope = self.scope_for_role(subject.role)

        # 1. Minimum scope
        if user_scope.ordinal < minimum_scope.ordinal:
            return ScopeCheckResult.fail(
                DenialKind.INSUFFICIENT_SCOPE,
                f"Insufficient scope: {subject.role.value} has {user_scope.value} scope, "
                f"{minimum_scope.value} required",
                user_scope=user_scope.value,
                required_scope=minimum_scope.value,
            )

        # 2. Tenant
        if not self.can_access_tenant(subject, resource.tenant_id):
            return ScopeCheckResult.fail(
                DenialKind.TENANT_MISMATCH,
                f"Tenant access denied: subject tenant {subject.tenant_id} "
                f"!= resource tenant {resource.tenant_id}",
                subject_tenant_id=subject.tenant_id,
                resource_tenant_id=resource.tenant_id,
            )

        # 3. Location (LOCATION-scoped roles only)
        if user_scope == RoleScope.LOCATION and resource.location_id:
            if subject.location_id is None or subject.location_id != resource.location_id:
                return ScopeCheckResult.fail(
                    DenialKind.LOCATION_MISMATCH,
                    f"Location access denied: subject location {subject.location_id} "
                    f"!= resource location {resource.location_id}",
                    subject_location_id=subject.location_id,
                    resource_location_id=resource.location_id,
                )

        # 4. Cross-tenant writes by GLOBAL roles
        if (
            user_scope == RoleScope.GLOBAL
            and is_write
            and resource.tenant_id
            and resource.tenant_id != subject.tenant_id
            and not allow_global_write
        ):
            return ScopeCheckResult.fail(
                DenialKind.CROSS_TENANT_WRITE_DENIED,
                f"Cross-tenant write denied: {subject.role.value} in tenant "
                f"{subject.tenant_id} cannot write tenant {resource.tenant_id} "
                f"without a global write override",
                subject_tenant_id=subject.tenant_id,
                resource_tenant_id=resource.tenant_id,
            )

        return ScopeCheckResult.ok(
            user_scope=user_scope.value,
            required_scope=minimum_scope.value,
        )

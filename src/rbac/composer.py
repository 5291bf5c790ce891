"""
KGC ERP - Permission Composer

Composite permissions: a role's effective set is its direct permissions plus
the direct permissions of every ancestor in its inheritance chain.

Constraint resolution takes the MAXIMUM value defined anywhere in the chain,
not the first one found. A role that inherits from an ancestor with a looser
limit is never held to a tighter one:

    BOLTVEZETO     rental:discount  discount_limit = 20
    PARTNER_OWNER  rental:discount  discount_limit = 100
    => resolve_constraint(PARTNER_OWNER, RENTAL_DISCOUNT, "discount_limit") == 100
"""

import logging
from typing import Dict, FrozenSet, List, Optional

from .permissions import Permission, PermissionCatalog
from .roles import Role, RoleHierarchy, coerce_role

logger = logging.getLogger(__name__)


class PermissionComposer:
    """Combines the role hierarchy with the permission catalog."""

    def __init__(
        self,
        hierarchy: Optional[RoleHierarchy] = None,
        catalog: Optional[PermissionCatalog] = None,
    ):
        self.hierarchy = hierarchy if hierarchy is not None else RoleHierarchy()
        self.catalog = catalog if catalog is not None else PermissionCatalog()
        # Policy is compiled in, so composed sets never change after startup
        self._cache: Dict[Role, FrozenSet[Permission]] = {}

    def direct_permissions(self, role: Role) -> FrozenSet[Permission]:
        return self.catalog.direct_permissions(role)

    def all_permissions(self, role: Role) -> FrozenSet[Permission]:
        """Direct plus inherited permissions, deduplicated."""
        role = coerce_role(role)
        cached = self._cache.get(role)
        if cached is not None:
            return cached

        combined = set(self.catalog.direct_permissions(role))
        for ancestor in self.hierarchy.inherited_chain(role):
            combined.update(self.catalog.direct_permissions(ancestor))

        result = frozenset(combined)
        self._cache[role] = result
        return result

    def has_permission(self, role: Role, permission: Permission) -> bool:
        return Permission(permission) in self.all_permissions(role)

    def missing_permissions(self, role: Role, permissions: List[Permission]) -> List[Permission]:
        """The subset of `permissions` the role does not hold, in request order."""
        held = self.all_permissions(role)
        return [p for p in permissions if Permission(p) not in held]

    def resolve_constraint(
        self,
        role: Role,
        permission: Permission,
        key: str,
    ) -> Optional[float]:
        """
        Maximum constraint value for (permission, key) across the role's chain.

        Returns None when the role lacks the permission entirely, and also
        when no role in the chain constrains it (the permission is then
        unconstrained). Callers must check has_permission() to tell the two
        apart.
        """
        if not self.has_permission(role, permission):
            return None

        role = coerce_role(role)
        values: List[float] = []
        for candidate in [role, *self.hierarchy.inherited_chain(role)]:
            value = self.catalog.constraint(candidate, permission, key)
            if value is not None:
                values.append(value)

        if not values:
            return None
        return max(values)

    def roles_with_permission(self, permission: Permission) -> List[Role]:
        """Every role that holds the permission, directly or through inheritance."""
        return [
            role for role in self.hierarchy.roles
            if self.has_permission(role, permission)
        ]

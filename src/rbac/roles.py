"""
KGC ERP - Role Definitions

8 roles organized in two parallel hierarchies:

    OPERATIONAL CHAIN (inherits permissions upward)
    OPERATOR (1) <- TECHNIKUS (2) <- BOLTVEZETO (3) <- PARTNER_OWNER (4) <- SUPER_ADMIN (8)

    STANDALONE ROLES (no inheritance)
    ACCOUNTANT (3), CENTRAL_ADMIN (5), DEVOPS_ADMIN (6)

Scopes:
    LOCATION - single site (OPERATOR, TECHNIKUS, BOLTVEZETO)
    TENANT   - every site of one tenant (ACCOUNTANT, PARTNER_OWNER)
    GLOBAL   - cross-tenant (CENTRAL_ADMIN, DEVOPS_ADMIN, SUPER_ADMIN)

Levels are used for grant checks: a role may grant any role at or below its
own level. Equal levels are mutually grantable regardless of lineage.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .exceptions import PolicyConfigurationError, UnknownRoleError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """
    All 8 roles in the reference policy.

    Values equal the names so roles travel unchanged through tokens and
    audit records.
    """

    OPERATOR = "OPERATOR"
    """Counter staff at a single location."""

    TECHNIKUS = "TECHNIKUS"
    """Service technician. Adds warranty and worksheet handling."""

    BOLTVEZETO = "BOLTVEZETO"
    """Store manager. Adds discounts (up to 20%), cancellations and finance views."""

    ACCOUNTANT = "ACCOUNTANT"
    """Tenant-wide finance role, read-focused. Not part of the operational chain."""

    PARTNER_OWNER = "PARTNER_OWNER"
    """Franchise owner. Full control of their tenant, discounts up to 100%."""

    CENTRAL_ADMIN = "CENTRAL_ADMIN"
    """Headquarters read access across tenants."""

    DEVOPS_ADMIN = "DEVOPS_ADMIN"
    """System configuration and audit export."""

    SUPER_ADMIN = "SUPER_ADMIN"
    """Everything. Inherits the complete operational chain."""


class RoleScope(str, Enum):
    """Breadth of resource access. Ordered LOCATION < TENANT < GLOBAL."""

    LOCATION = "LOCATION"
    TENANT = "TENANT"
    GLOBAL = "GLOBAL"

    @property
    def ordinal(self) -> int:
        return _SCOPE_ORDER[self]


_SCOPE_ORDER: Dict[RoleScope, int] = {
    RoleScope.LOCATION: 0,
    RoleScope.TENANT: 1,
    RoleScope.GLOBAL: 2,
}


def scope_ordinal(scope: RoleScope) -> int:
    """Position of a scope in the LOCATION < TENANT < GLOBAL ordering."""
    return _SCOPE_ORDER[RoleScope(scope)]


@dataclass(frozen=True)
class RoleInfo:
    """Complete information about a role."""
    role: Role
    name: str
    description: str
    level: int
    scope: RoleScope
    parents: Tuple[Role, ...] = ()  # Nearest ancestors; empty for roots

    @property
    def parent(self) -> Optional[Role]:
        return self.parents[0] if self.parents else None


# =============================================================================
# ROLE REGISTRY
# =============================================================================

ROLES: Dict[Role, RoleInfo] = {
    # -------------------------------------------------------------------------
    # Operational chain (LOCATION scope)
    # -------------------------------------------------------------------------
    Role.OPERATOR: RoleInfo(
        role=Role.OPERATOR,
        name="Operator",
        description="Counter staff - rentals, sales, service intake",
        level=1,
        scope=RoleScope.LOCATION,
    ),
    Role.TECHNIKUS: RoleInfo(
        role=Role.TECHNIKUS,
        name="Technician",
        description="Service technician - warranty and worksheets",
        level=2,
        scope=RoleScope.LOCATION,
        parents=(Role.OPERATOR,),
    ),
    Role.BOLTVEZETO: RoleInfo(
        role=Role.BOLTVEZETO,
        name="Store Manager",
        description="Store manager - discounts, cancellations, local users",
        level=3,
        scope=RoleScope.LOCATION,
        parents=(Role.TECHNIKUS,),
    ),

    # -------------------------------------------------------------------------
    # Tenant roles
    # -------------------------------------------------------------------------
    Role.ACCOUNTANT: RoleInfo(
        role=Role.ACCOUNTANT,
        name="Accountant",
        description="Tenant finance - reports and audit, read-only operations",
        level=3,
        scope=RoleScope.TENANT,
    ),
    Role.PARTNER_OWNER: RoleInfo(
        role=Role.PARTNER_OWNER,
        name="Partner Owner",
        description="Franchise owner - full control of own tenant",
        level=4,
        scope=RoleScope.TENANT,
        parents=(Role.BOLTVEZETO,),
    ),

    # -------------------------------------------------------------------------
    # Global roles
    # -------------------------------------------------------------------------
    Role.CENTRAL_ADMIN: RoleInfo(
        role=Role.CENTRAL_ADMIN,
        name="Central Admin",
        description="Headquarters - cross-tenant reporting",
        level=5,
        scope=RoleScope.GLOBAL,
    ),
    Role.DEVOPS_ADMIN: RoleInfo(
        role=Role.DEVOPS_ADMIN,
        name="DevOps Admin",
        description="System configuration, tenant administration, audit export",
        level=6,
        scope=RoleScope.GLOBAL,
    ),
    Role.SUPER_ADMIN: RoleInfo(
        role=Role.SUPER_ADMIN,
        name="Super Admin",
        description="Full system access",
        level=8,
        scope=RoleScope.GLOBAL,
        parents=(Role.PARTNER_OWNER,),
    ),
}


def coerce_role(value: Any) -> Role:
    """Turn a role or role name into a Role, raising UnknownRoleError otherwise."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise UnknownRoleError(value) from None


def get_role_info(role: Role) -> RoleInfo:
    """Get information about a role from the compiled registry."""
    try:
        return ROLES[coerce_role(role)]
    except KeyError:
        raise UnknownRoleError(role) from None


def requires_location_scope(role: Role) -> bool:
    """LOCATION-scoped roles must match the resource location."""
    return get_role_info(role).scope == RoleScope.LOCATION


def has_global_scope(role: Role) -> bool:
    return get_role_info(role).scope == RoleScope.GLOBAL


# =============================================================================
# HIERARCHY RESOLVER
# =============================================================================

class RoleHierarchy:
    """
    Resolves levels, scopes and inheritance chains over a role table.

    The table is validated once at construction: every parent must be
    defined and the parent graph must be acyclic. Chains are precomputed, so
    per-call lookups never walk an unvalidated graph.
    """

    def __init__(self, roles: Optional[Mapping[Role, RoleInfo]] = None):
        self._roles: Dict[Role, RoleInfo] = dict(ROLES if roles is None else roles)
        self._validate()
        self._chains: Dict[Role, Tuple[Role, ...]] = {
            role: self._walk(role) for role in self._roles
        }
        logger.debug(f"Role hierarchy loaded: {len(self._roles)} roles")

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate(self) -> None:
        for role, info in self._roles.items():
            if info.role != role:
                raise PolicyConfigurationError(
                    f"Role table key {role.value} holds info for {info.role.value}", role
                )
            if info.level < 1:
                raise PolicyConfigurationError(
                    f"Role {role.value} has non-positive level {info.level}", role
                )
            for parent in info.parents:
                if parent not in self._roles:
                    raise PolicyConfigurationError(
                        f"Role {role.value} inherits from undefined role {parent}", role
                    )

        # Depth-first search, three colours
        visiting, done = set(), set()

        def visit(role: Role, path: List[Role]) -> None:
            if role in done:
                return
            if role in visiting:
                cycle = " -> ".join(r.value for r in path + [role])
                raise PolicyConfigurationError(f"Inheritance cycle: {cycle}", role)
            visiting.add(role)
            for parent in self._roles[role].parents:
                visit(parent, path + [role])
            visiting.discard(role)
            done.add(role)

        for role in self._roles:
            visit(role, [])

    def _walk(self, role: Role) -> Tuple[Role, ...]:
        # Breadth-first so the nearest ancestors come first; a role reachable
        # through several branches is listed once.
        chain: List[Role] = []
        seen = {role}
        frontier = list(self._roles[role].parents)
        while frontier:
            next_frontier: List[Role] = []
            for ancestor in frontier:
                if ancestor in seen:
                    continue
                seen.add(ancestor)
                chain.append(ancestor)
                next_frontier.extend(self._roles[ancestor].parents)
            frontier = next_frontier
        return tuple(chain)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def info(self, role: Role) -> RoleInfo:
        try:
            return self._roles[coerce_role(role)]
        except KeyError:
            raise UnknownRoleError(role) from None

    def level_of(self, role: Role) -> int:
        return self.info(role).level

    def scope_of(self, role: Role) -> RoleScope:
        return self.info(role).scope

    def can_grant(self, grantor: Role, target: Role) -> bool:
        """True iff the grantor's level is at or above the target's level."""
        return self.level_of(grantor) >= self.level_of(target)

    def inherited_chain(self, role: Role) -> List[Role]:
        """Ancestors of a role, nearest first, excluding the role itself."""
        self.info(role)
        return list(self._chains[coerce_role(role)])

    def requires_location_scope(self, role: Role) -> bool:
        return self.scope_of(role) == RoleScope.LOCATION

    def has_global_scope(self, role: Role) -> bool:
        return self.scope_of(role) == RoleScope.GLOBAL

    @property
    def roles(self) -> List[Role]:
        return list(self._roles)

    def __contains__(self, role: object) -> bool:
        return role in self._roles

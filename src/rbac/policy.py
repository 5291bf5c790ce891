"""
KGC ERP - Operation Policies

Each protected operation declares its requirements as an explicit,
inspectable OperationPolicy registered under the operation's name:

    registry.register(OperationPolicy(
        name="rental.discount",
        required_permissions=(Permission.RENTAL_DISCOUNT,),
        scope=ScopeRequirement(RoleScope.LOCATION),
        constraint=ConstraintSpec(Permission.RENTAL_DISCOUNT, DISCOUNT_LIMIT,
                                  value_field="discountPercent",
                                  use_absolute_value=True),
    ))

Invalid declarations (bad TTLs, duplicate names, cyclic role tables) fail
when the policy is declared or loaded, never while a request is checked.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple

from .composer import PermissionComposer
from .elevated_access import DEFAULT_ELEVATED_ACCESS_TTL, TTLValue, validate_ttl
from .exceptions import PolicyConfigurationError, UnknownOperationError
from .permissions import (
    DISCOUNT_LIMIT,
    ROLE_CONSTRAINTS,
    ROLE_PERMISSIONS,
    Permission,
    PermissionCatalog,
    is_elevated_permission,
)
from .roles import ROLES, Role, RoleHierarchy, RoleInfo, RoleScope

logger = logging.getLogger(__name__)


class PermissionLogic(str, Enum):
    """How multiple required permissions combine."""
    ALL = "ALL"  # every permission must hold
    ANY = "ANY"  # at least one must hold


# =============================================================================
# REQUIREMENTS
# =============================================================================

@dataclass(frozen=True)
class ScopeRequirement:
    """Minimum scope plus the GLOBAL cross-tenant write override."""
    minimum_scope: RoleScope = RoleScope.LOCATION
    allow_global_write: bool = False

    def __post_init__(self):
        object.__setattr__(self, "minimum_scope", RoleScope(self.minimum_scope))


@dataclass(frozen=True)
class ElevatedAccessRequirement:
    """Freshness window required for a sensitive operation."""
    ttl: timedelta = DEFAULT_ELEVATED_ACCESS_TTL

    def __post_init__(self):
        object.__setattr__(self, "ttl", validate_ttl(self.ttl))

    @classmethod
    def seconds(cls, seconds: TTLValue) -> "ElevatedAccessRequirement":
        return cls(ttl=validate_ttl(seconds))


@dataclass(frozen=True)
class ConstraintCheck:
    """A concrete value to validate against a role's constraint limit."""
    permission: Permission
    key: str
    value: float
    use_absolute_value: bool = False
    message: Optional[str] = None

    @property
    def effective_value(self) -> float:
        return abs(self.value) if self.use_absolute_value else self.value


@dataclass(frozen=True)
class ConstraintSpec:
    """
    Declared constraint for an operation.

    `value_field` names the payload field that carries the value at request
    time. bind() returns None when the payload lacks it, which skips the
    check.
    """
    permission: Permission
    key: str
    value_field: str
    use_absolute_value: bool = False
    message: Optional[str] = None

    def bind(self, payload: Optional[Mapping]) -> Optional[ConstraintCheck]:
        if not payload or payload.get(self.value_field) is None:
            return None
        raw = payload[self.value_field]
        try:
            value = float(raw)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric constraint value for {self.value_field}")
            return None
        return ConstraintCheck(
            permission=self.permission,
            key=self.key,
            value=value,
            use_absolute_value=self.use_absolute_value,
            message=self.message,
        )


@dataclass(frozen=True)
class OperationPolicy:
    """Everything the guard needs to know about one operation."""
    name: str
    required_permissions: Tuple[Permission, ...] = ()
    permission_logic: PermissionLogic = PermissionLogic.ALL
    scope: Optional[ScopeRequirement] = None
    elevated_access: Optional[ElevatedAccessRequirement] = None
    constraint: Optional[ConstraintSpec] = None

    def __post_init__(self):
        if not self.name:
            raise PolicyConfigurationError("Operation policy needs a name")
        object.__setattr__(
            self, "required_permissions",
            tuple(Permission(p) for p in self.required_permissions),
        )
        object.__setattr__(self, "permission_logic", PermissionLogic(self.permission_logic))


# =============================================================================
# REGISTRY
# =============================================================================

class OperationRegistry:
    """Static registration table keyed by operation name."""

    def __init__(self, policies: Optional[List[OperationPolicy]] = None):
        self._policies: Dict[str, OperationPolicy] = {}
        for policy in policies or []:
            self.register(policy)

    def register(self, policy: OperationPolicy) -> OperationPolicy:
        if policy.name in self._policies:
            raise PolicyConfigurationError(f"Operation already registered: {policy.name}")
        self._policies[policy.name] = policy
        return policy

    def get(self, name: str) -> OperationPolicy:
        try:
            return self._policies[name]
        except KeyError:
            raise UnknownOperationError(name) from None

    def names(self) -> List[str]:
        return sorted(self._policies)

    def __contains__(self, name: object) -> bool:
        return name in self._policies

    def __iter__(self) -> Iterator[OperationPolicy]:
        return iter(self._policies.values())

    def __len__(self) -> int:
        return len(self._policies)


def _operation(
    name: str,
    *permissions: Permission,
    minimum_scope: RoleScope = RoleScope.LOCATION,
    logic: PermissionLogic = PermissionLogic.ALL,
    constraint: Optional[ConstraintSpec] = None,
    elevated_ttl: TTLValue = DEFAULT_ELEVATED_ACCESS_TTL,
) -> OperationPolicy:
    # Elevated permissions always carry a freshness window
    elevated = (
        ElevatedAccessRequirement.seconds(elevated_ttl)
        if any(is_elevated_permission(p) for p in permissions)
        else None
    )
    return OperationPolicy(
        name=name,
        required_permissions=permissions,
        permission_logic=logic,
        scope=ScopeRequirement(minimum_scope),
        elevated_access=elevated,
        constraint=constraint,
    )


def default_registry(elevated_ttl: TTLValue = DEFAULT_ELEVATED_ACCESS_TTL) -> OperationRegistry:
    """
    The reference operations of the rental/service business.

    Args:
        elevated_ttl: Freshness window for operations on elevated permissions
    """
    ttl = validate_ttl(elevated_ttl)
    return OperationRegistry([
        _operation("rental.view", Permission.RENTAL_VIEW),
        _operation("rental.create", Permission.RENTAL_CREATE),
        _operation(
            "rental.discount",
            Permission.RENTAL_DISCOUNT,
            constraint=ConstraintSpec(
                permission=Permission.RENTAL_DISCOUNT,
                key=DISCOUNT_LIMIT,
                value_field="discountPercent",
                use_absolute_value=True,
            ),
        ),
        _operation("rental.cancel", Permission.RENTAL_CANCEL, elevated_ttl=ttl),
        _operation("inventory.transfer", Permission.INVENTORY_TRANSFER),
        _operation("inventory.adjust", Permission.INVENTORY_ADJUST, elevated_ttl=ttl),
        _operation("user.delete", Permission.USER_DELETE, minimum_scope=RoleScope.TENANT, elevated_ttl=ttl),
        _operation("user.role_assign", Permission.USER_ROLE_ASSIGN, minimum_scope=RoleScope.TENANT),
        _operation("finance.close", Permission.FINANCE_CLOSE, minimum_scope=RoleScope.TENANT),
        _operation(
            "audit.read",
            Permission.AUDIT_VIEW,
            Permission.AUDIT_EXPORT,
            minimum_scope=RoleScope.TENANT,
            logic=PermissionLogic.ANY,
        ),
        _operation("report.cross_tenant", Permission.REPORT_CROSS_TENANT, minimum_scope=RoleScope.GLOBAL),
        _operation("admin.config", Permission.ADMIN_CONFIG, minimum_scope=RoleScope.GLOBAL, elevated_ttl=ttl),
    ])


# =============================================================================
# POLICY TABLES
# =============================================================================

@dataclass(frozen=True)
class PolicyTables:
    """
    The compiled-in role, permission and constraint tables.

    An external layer may hand in overridden tables; compile() validates
    them before anything is evaluated.
    """
    roles: Mapping[Role, RoleInfo] = field(default_factory=lambda: dict(ROLES))
    role_permissions: Mapping[Role, FrozenSet[Permission]] = field(
        default_factory=lambda: dict(ROLE_PERMISSIONS)
    )
    role_constraints: Mapping[Role, Mapping[Permission, Mapping[str, float]]] = field(
        default_factory=lambda: dict(ROLE_CONSTRAINTS)
    )

    def validate(self) -> None:
        """
        Raises:
            PolicyConfigurationError: a role lacks a permission entry, or
                permissions/constraints reference roles that do not exist
        """
        for role in self.roles:
            if role not in self.role_permissions:
                raise PolicyConfigurationError(f"Role {role.value} has no permission entry", role)
        for role in self.role_permissions:
            if role not in self.roles:
                raise PolicyConfigurationError(f"Permissions defined for unknown role {role}", role)
        for role, per_role in self.role_constraints.items():
            if role not in self.roles:
                raise PolicyConfigurationError(f"Constraints defined for unknown role {role}", role)
            for values in per_role.values():
                for key, value in values.items():
                    if value < 0:
                        raise PolicyConfigurationError(
                            f"Constraint {key} for {role.value} must not be negative", role
                        )

    def compile(self) -> PermissionComposer:
        """Validate and build the composer (hierarchy validation checks for cycles)."""
        self.validate()
        hierarchy = RoleHierarchy(self.roles)
        catalog = PermissionCatalog(self.role_permissions, self.role_constraints)
        return PermissionComposer(hierarchy, catalog)

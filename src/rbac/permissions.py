"""
KGC ERP - Permission Definitions

Permissions are `module:action` pairs mapped to roles. Each role lists only
its DIRECT permissions here; inherited permissions are composed at runtime
by PermissionComposer from the role hierarchy.

Modules:
    - rental, service, inventory, sales, partner, quote, worksheet, warranty
    - finance, report, audit
    - user, admin

Constraints are numeric limits attached to a (role, permission) pair, for
example the maximum discount a store manager may give.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Set

from .exceptions import UnknownRoleError
from .roles import Role, coerce_role


class Permission(str, Enum):
    """
    All permissions in the system.

    Naming: MODULE_ACTION = "module:action"
    """

    # Rental
    RENTAL_VIEW = "rental:view"
    RENTAL_CREATE = "rental:create"
    RENTAL_RETURN = "rental:return"
    RENTAL_DISCOUNT = "rental:discount"
    RENTAL_CANCEL = "rental:cancel"

    # Service
    SERVICE_VIEW = "service:view"
    SERVICE_CREATE = "service:create"
    SERVICE_UPDATE = "service:update"
    SERVICE_WARRANTY = "service:warranty"
    SERVICE_CLOSE = "service:close"

    # Inventory
    INVENTORY_VIEW = "inventory:view"
    INVENTORY_UPDATE = "inventory:update"
    INVENTORY_TRANSFER = "inventory:transfer"
    INVENTORY_ADJUST = "inventory:adjust"

    # Sales
    SALES_VIEW = "sales:view"
    SALES_CREATE = "sales:create"
    SALES_REFUND = "sales:refund"

    # Partners (customers)
    PARTNER_VIEW = "partner:view"
    PARTNER_CREATE = "partner:create"
    PARTNER_UPDATE = "partner:update"
    PARTNER_DELETE = "partner:delete"

    # Quotes
    QUOTE_VIEW = "quote:view"
    QUOTE_CREATE = "quote:create"
    QUOTE_CONVERT = "quote:convert"

    # Worksheets
    WORKSHEET_VIEW = "worksheet:view"
    WORKSHEET_CREATE = "worksheet:create"
    WORKSHEET_UPDATE = "worksheet:update"
    WORKSHEET_CLOSE = "worksheet:close"

    # Warranty claims
    WARRANTY_VIEW = "warranty:view"
    WARRANTY_CREATE = "warranty:create"
    WARRANTY_PROCESS = "warranty:process"

    # Finance
    FINANCE_VIEW = "finance:view"
    FINANCE_REPORTS = "finance:reports"
    FINANCE_CLOSE = "finance:close"

    # Reports
    REPORT_OPERATIONAL = "report:operational"
    REPORT_FINANCIAL = "report:financial"
    REPORT_CROSS_TENANT = "report:cross_tenant"

    # Users
    USER_VIEW = "user:view"
    USER_CREATE = "user:create"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_ROLE_ASSIGN = "user:role_assign"

    # Audit
    AUDIT_VIEW = "audit:view"
    AUDIT_EXPORT = "audit:export"

    # Administration
    ADMIN_CONFIG = "admin:config"
    ADMIN_TENANT = "admin:tenant"
    ADMIN_SYSTEM = "admin:system"

    @property
    def module(self) -> str:
        return self.value.split(":", 1)[0]

    @property
    def action(self) -> str:
        return self.value.split(":", 1)[1]


@dataclass(frozen=True)
class PermissionInfo:
    """Complete information about a permission."""
    permission: Permission
    description: str
    elevated: bool = False  # Requires recent re-authentication

    @property
    def module(self) -> str:
        return self.permission.module


# =============================================================================
# ELEVATED PERMISSIONS
# =============================================================================

# Operations behind these permissions require a fresh re-verification
ELEVATED_PERMISSIONS: FrozenSet[Permission] = frozenset({
    Permission.RENTAL_CANCEL,
    Permission.INVENTORY_ADJUST,
    Permission.USER_DELETE,
    Permission.ADMIN_CONFIG,
})


def is_elevated_permission(permission: Permission) -> bool:
    return Permission(permission) in ELEVATED_PERMISSIONS


# =============================================================================
# PERMISSION REGISTRY
# =============================================================================

_DESCRIPTIONS: Dict[Permission, str] = {
    Permission.RENTAL_VIEW: "View rentals",
    Permission.RENTAL_CREATE: "Start a rental",
    Permission.RENTAL_RETURN: "Take back rented equipment",
    Permission.RENTAL_DISCOUNT: "Give a rental discount (bounded by discount_limit)",
    Permission.RENTAL_CANCEL: "Cancel a rental",
    Permission.SERVICE_VIEW: "View service jobs",
    Permission.SERVICE_CREATE: "Open a service job",
    Permission.SERVICE_UPDATE: "Update a service job",
    Permission.SERVICE_WARRANTY: "Handle a service job under warranty",
    Permission.SERVICE_CLOSE: "Close a service job",
    Permission.INVENTORY_VIEW: "View stock",
    Permission.INVENTORY_UPDATE: "Update stock records",
    Permission.INVENTORY_TRANSFER: "Transfer stock between locations",
    Permission.INVENTORY_ADJUST: "Adjust stock levels (inventory correction)",
    Permission.SALES_VIEW: "View sales",
    Permission.SALES_CREATE: "Record a sale",
    Permission.SALES_REFUND: "Refund a sale",
    Permission.PARTNER_VIEW: "View customers",
    Permission.PARTNER_CREATE: "Create customers",
    Permission.PARTNER_UPDATE: "Edit customers",
    Permission.PARTNER_DELETE: "Delete customers",
    Permission.QUOTE_VIEW: "View quotes",
    Permission.QUOTE_CREATE: "Create quotes",
    Permission.QUOTE_CONVERT: "Convert a quote into an order",
    Permission.WORKSHEET_VIEW: "View worksheets",
    Permission.WORKSHEET_CREATE: "Create worksheets",
    Permission.WORKSHEET_UPDATE: "Edit worksheets",
    Permission.WORKSHEET_CLOSE: "Close worksheets",
    Permission.WARRANTY_VIEW: "View warranty claims",
    Permission.WARRANTY_CREATE: "File warranty claims",
    Permission.WARRANTY_PROCESS: "Process warranty claims",
    Permission.FINANCE_VIEW: "View financial data",
    Permission.FINANCE_REPORTS: "Run finance reports",
    Permission.FINANCE_CLOSE: "Close a financial period",
    Permission.REPORT_OPERATIONAL: "Operational reports",
    Permission.REPORT_FINANCIAL: "Financial reports",
    Permission.REPORT_CROSS_TENANT: "Reports spanning several tenants",
    Permission.USER_VIEW: "View users",
    Permission.USER_CREATE: "Create users",
    Permission.USER_UPDATE: "Edit users",
    Permission.USER_DELETE: "Delete users",
    Permission.USER_ROLE_ASSIGN: "Assign roles to users",
    Permission.AUDIT_VIEW: "View the audit log",
    Permission.AUDIT_EXPORT: "Export the audit log",
    Permission.ADMIN_CONFIG: "Change system configuration",
    Permission.ADMIN_TENANT: "Administer tenants",
    Permission.ADMIN_SYSTEM: "Full system administration",
}

PERMISSIONS: Dict[Permission, PermissionInfo] = {
    permission: PermissionInfo(
        permission=permission,
        description=_DESCRIPTIONS[permission],
        elevated=permission in ELEVATED_PERMISSIONS,
    )
    for permission in Permission
}


def get_permission_info(permission: Permission) -> PermissionInfo:
    """Get information about a permission."""
    return PERMISSIONS[Permission(permission)]


def permissions_for_module(module: str) -> List[Permission]:
    """All permissions of a module, in declaration order."""
    return [p for p in Permission if p.module == module]


# =============================================================================
# ROLE -> DIRECT PERMISSION MAPPING
# =============================================================================

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    # -------------------------------------------------------------------------
    # OPERATOR: base operations at one location
    # -------------------------------------------------------------------------
    Role.OPERATOR: frozenset({
        Permission.RENTAL_VIEW,
        Permission.RENTAL_CREATE,
        Permission.RENTAL_RETURN,
        Permission.SERVICE_VIEW,
        Permission.SERVICE_CREATE,
        Permission.SERVICE_UPDATE,
        Permission.INVENTORY_VIEW,
        Permission.SALES_VIEW,
        Permission.SALES_CREATE,
        Permission.PARTNER_VIEW,
        Permission.QUOTE_VIEW,
        Permission.QUOTE_CREATE,
        Permission.WORKSHEET_VIEW,
        Permission.WORKSHEET_CREATE,
    }),

    # -------------------------------------------------------------------------
    # TECHNIKUS: + warranty, worksheet closing, stock updates
    # -------------------------------------------------------------------------
    Role.TECHNIKUS: frozenset({
        Permission.SERVICE_WARRANTY,
        Permission.SERVICE_CLOSE,
        Permission.WARRANTY_VIEW,
        Permission.WARRANTY_CREATE,
        Permission.WARRANTY_PROCESS,
        Permission.WORKSHEET_UPDATE,
        Permission.WORKSHEET_CLOSE,
        Permission.INVENTORY_UPDATE,
    }),

    # -------------------------------------------------------------------------
    # BOLTVEZETO: + discounts, cancellations, finance views, local users
    # -------------------------------------------------------------------------
    Role.BOLTVEZETO: frozenset({
        Permission.RENTAL_DISCOUNT,
        Permission.RENTAL_CANCEL,
        Permission.FINANCE_VIEW,
        Permission.FINANCE_REPORTS,
        Permission.INVENTORY_TRANSFER,
        Permission.USER_VIEW,
        Permission.USER_CREATE,
        Permission.USER_UPDATE,
        Permission.SALES_REFUND,
        Permission.REPORT_OPERATIONAL,
        Permission.PARTNER_CREATE,
        Permission.PARTNER_UPDATE,
        Permission.QUOTE_CONVERT,
    }),

    # -------------------------------------------------------------------------
    # ACCOUNTANT: read-only operations, finance and audit
    # -------------------------------------------------------------------------
    Role.ACCOUNTANT: frozenset({
        Permission.RENTAL_VIEW,
        Permission.SERVICE_VIEW,
        Permission.SALES_VIEW,
        Permission.INVENTORY_VIEW,
        Permission.PARTNER_VIEW,
        Permission.FINANCE_VIEW,
        Permission.FINANCE_REPORTS,
        Permission.REPORT_OPERATIONAL,
        Permission.REPORT_FINANCIAL,
        Permission.AUDIT_VIEW,
        Permission.QUOTE_VIEW,
        Permission.WORKSHEET_VIEW,
        Permission.WARRANTY_VIEW,
    }),

    # -------------------------------------------------------------------------
    # PARTNER_OWNER: + full user management, period close, stock adjust
    # -------------------------------------------------------------------------
    Role.PARTNER_OWNER: frozenset({
        Permission.RENTAL_DISCOUNT,
        Permission.USER_VIEW,
        Permission.USER_CREATE,
        Permission.USER_UPDATE,
        Permission.USER_DELETE,
        Permission.USER_ROLE_ASSIGN,
        Permission.FINANCE_CLOSE,
        Permission.AUDIT_VIEW,
        Permission.INVENTORY_ADJUST,
        Permission.PARTNER_DELETE,
        Permission.REPORT_FINANCIAL,
    }),

    # -------------------------------------------------------------------------
    # CENTRAL_ADMIN: cross-tenant reads and reporting
    # -------------------------------------------------------------------------
    Role.CENTRAL_ADMIN: frozenset({
        Permission.RENTAL_VIEW,
        Permission.SERVICE_VIEW,
        Permission.INVENTORY_VIEW,
        Permission.INVENTORY_TRANSFER,
        Permission.SALES_VIEW,
        Permission.PARTNER_VIEW,
        Permission.FINANCE_VIEW,
        Permission.FINANCE_REPORTS,
        Permission.REPORT_OPERATIONAL,
        Permission.REPORT_FINANCIAL,
        Permission.REPORT_CROSS_TENANT,
        Permission.USER_VIEW,
        Permission.USER_CREATE,
        Permission.AUDIT_VIEW,
        Permission.QUOTE_VIEW,
        Permission.WORKSHEET_VIEW,
        Permission.WARRANTY_VIEW,
    }),

    # -------------------------------------------------------------------------
    # DEVOPS_ADMIN: configuration, tenants, audit export
    # -------------------------------------------------------------------------
    Role.DEVOPS_ADMIN: frozenset({
        Permission.ADMIN_CONFIG,
        Permission.ADMIN_TENANT,
        Permission.AUDIT_VIEW,
        Permission.AUDIT_EXPORT,
        Permission.USER_VIEW,
        Permission.USER_CREATE,
        Permission.USER_UPDATE,
        Permission.USER_ROLE_ASSIGN,
    }),

    # -------------------------------------------------------------------------
    # SUPER_ADMIN: administration on top of the inherited operational chain
    # -------------------------------------------------------------------------
    Role.SUPER_ADMIN: frozenset({
        Permission.ADMIN_SYSTEM,
        Permission.ADMIN_TENANT,
        Permission.ADMIN_CONFIG,
        Permission.USER_VIEW,
        Permission.USER_CREATE,
        Permission.USER_UPDATE,
        Permission.USER_DELETE,
        Permission.USER_ROLE_ASSIGN,
        Permission.AUDIT_VIEW,
        Permission.AUDIT_EXPORT,
        Permission.REPORT_OPERATIONAL,
        Permission.REPORT_FINANCIAL,
        Permission.REPORT_CROSS_TENANT,
        Permission.FINANCE_VIEW,
        Permission.FINANCE_REPORTS,
        Permission.FINANCE_CLOSE,
    }),
}


# =============================================================================
# ROLE -> CONSTRAINTS
# =============================================================================

DISCOUNT_LIMIT = "discount_limit"

# Format: {role: {permission: {constraint_key: value}}}
ROLE_CONSTRAINTS: Dict[Role, Dict[Permission, Dict[str, float]]] = {
    Role.BOLTVEZETO: {
        Permission.RENTAL_DISCOUNT: {DISCOUNT_LIMIT: 20},
    },
    Role.PARTNER_OWNER: {
        Permission.RENTAL_DISCOUNT: {DISCOUNT_LIMIT: 100},
    },
    Role.SUPER_ADMIN: {
        Permission.RENTAL_DISCOUNT: {DISCOUNT_LIMIT: 100},
    },
}


# =============================================================================
# CATALOG
# =============================================================================

class PermissionCatalog:
    """
    Read-only lookup over the direct permission and constraint tables.

    Knows nothing about inheritance; see PermissionComposer for that.
    """

    def __init__(
        self,
        role_permissions: Optional[Mapping[Role, FrozenSet[Permission]]] = None,
        role_constraints: Optional[Mapping[Role, Mapping[Permission, Mapping[str, float]]]] = None,
    ):
        source = ROLE_PERMISSIONS if role_permissions is None else role_permissions
        self._permissions: Dict[Role, FrozenSet[Permission]] = {
            role: frozenset(perms) for role, perms in source.items()
        }
        constraints = ROLE_CONSTRAINTS if role_constraints is None else role_constraints
        self._constraints: Dict[Role, Dict[Permission, Dict[str, float]]] = {
            role: {perm: dict(values) for perm, values in per_role.items()}
            for role, per_role in constraints.items()
        }

    def direct_permissions(self, role: Role) -> FrozenSet[Permission]:
        """Permissions granted to the role itself, without inheritance."""
        role = coerce_role(role)
        try:
            return self._permissions[role]
        except KeyError:
            raise UnknownRoleError(role) from None

    def constraint(self, role: Role, permission: Permission, key: str) -> Optional[float]:
        """The constraint the role itself defines, or None."""
        return self._constraints.get(coerce_role(role), {}).get(permission, {}).get(key)

    def constrained_roles(self) -> Set[Role]:
        return set(self._constraints)

    @property
    def roles(self) -> List[Role]:
        return list(self._permissions)

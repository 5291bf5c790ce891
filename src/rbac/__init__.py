"""
KGC ERP - Role-Based Access Control (RBAC)

Authorization decision engine for a multi-tenant rental/service business.

Hierarchy (level, scope, parent):
    OPERATOR       1  LOCATION
    TECHNIKUS      2  LOCATION  -> OPERATOR
    BOLTVEZETO     3  LOCATION  -> TECHNIKUS
    ACCOUNTANT     3  TENANT
    PARTNER_OWNER  4  TENANT    -> BOLTVEZETO
    CENTRAL_ADMIN  5  GLOBAL
    DEVOPS_ADMIN   6  GLOBAL
    SUPER_ADMIN    8  GLOBAL    -> PARTNER_OWNER

Usage:
    from rbac import build_guard, Subject, ResourceContext, Role

    guard = build_guard()
    subject = Subject("user-1", Role.BOLTVEZETO, tenant_id="t-1", location_id="loc-1")
    decision = guard.authorize_operation("rental.view", subject)

The FastAPI adapter lives in rbac.dependencies and is imported on demand.
"""

from .roles import (
    Role,
    RoleScope,
    RoleInfo,
    ROLES,
    RoleHierarchy,
    coerce_role,
    get_role_info,
    has_global_scope,
    requires_location_scope,
    scope_ordinal,
)
from .permissions import (
    Permission,
    PermissionInfo,
    PERMISSIONS,
    ROLE_PERMISSIONS,
    ROLE_CONSTRAINTS,
    DISCOUNT_LIMIT,
    ELEVATED_PERMISSIONS,
    PermissionCatalog,
    get_permission_info,
    is_elevated_permission,
    permissions_for_module,
)
from .composer import PermissionComposer
from .context import Subject, ResourceContext
from .decisions import AuthorizationDecision, DenialKind
from .scope import ScopeEvaluator, ScopeCheckResult, is_write_method
from .elevated_access import (
    DEFAULT_ELEVATED_ACCESS_TTL,
    ElevatedAccessStore,
    sweep_expired,
)
from .policy import (
    ConstraintCheck,
    ConstraintSpec,
    ElevatedAccessRequirement,
    OperationPolicy,
    OperationRegistry,
    PermissionLogic,
    PolicyTables,
    ScopeRequirement,
    default_registry,
)
from .guard import AuthorizationGuard, RequestIntent, build_guard
from .exceptions import (
    RbacError,
    UnknownRoleError,
    UnknownOperationError,
    PolicyConfigurationError,
    AuthorizationDenied,
)

__all__ = [
    # Roles
    "Role",
    "RoleScope",
    "RoleInfo",
    "ROLES",
    "RoleHierarchy",
    "coerce_role",
    "get_role_info",
    "has_global_scope",
    "requires_location_scope",
    "scope_ordinal",

    # Permissions
    "Permission",
    "PermissionInfo",
    "PERMISSIONS",
    "ROLE_PERMISSIONS",
    "ROLE_CONSTRAINTS",
    "DISCOUNT_LIMIT",
    "ELEVATED_PERMISSIONS",
    "PermissionCatalog",
    "PermissionComposer",
    "get_permission_info",
    "is_elevated_permission",
    "permissions_for_module",

    # Context and decisions
    "Subject",
    "ResourceContext",
    "AuthorizationDecision",
    "DenialKind",

    # Scope
    "ScopeEvaluator",
    "ScopeCheckResult",
    "is_write_method",

    # Elevated access
    "DEFAULT_ELEVATED_ACCESS_TTL",
    "ElevatedAccessStore",
    "sweep_expired",

    # Policy
    "ConstraintCheck",
    "ConstraintSpec",
    "ElevatedAccessRequirement",
    "OperationPolicy",
    "OperationRegistry",
    "PermissionLogic",
    "PolicyTables",
    "ScopeRequirement",
    "default_registry",

    # Guard
    "AuthorizationGuard",
    "RequestIntent",
    "build_guard",

    # Errors
    "RbacError",
    "UnknownRoleError",
    "UnknownOperationError",
    "PolicyConfigurationError",
    "AuthorizationDenied",
]

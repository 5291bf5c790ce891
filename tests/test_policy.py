"""
Operation Policy Tests

Declared operation requirements, the registry, and policy table validation.
"""

from datetime import timedelta

import pytest

from rbac import (
    DISCOUNT_LIMIT,
    ConstraintSpec,
    ElevatedAccessRequirement,
    OperationPolicy,
    OperationRegistry,
    Permission,
    PermissionLogic,
    PolicyConfigurationError,
    PolicyTables,
    Role,
    RoleScope,
    ScopeRequirement,
    UnknownOperationError,
    default_registry,
)
from rbac.policy import ConstraintCheck
from rbac.roles import ROLES, RoleInfo


# =============================================================================
# REQUIREMENTS
# =============================================================================

class TestElevatedAccessRequirement:

    def test_default_ttl(self):
        assert ElevatedAccessRequirement().ttl == timedelta(minutes=5)

    def test_seconds_constructor(self):
        assert ElevatedAccessRequirement.seconds(120).ttl == timedelta(minutes=2)

    @pytest.mark.parametrize("ttl", [timedelta(0), timedelta(hours=1, seconds=1)])
    def test_rejected_at_declaration(self, ttl):
        with pytest.raises(PolicyConfigurationError):
            ElevatedAccessRequirement(ttl=ttl)


class TestConstraintSpec:

    @pytest.fixture
    def spec(self):
        return ConstraintSpec(
            permission=Permission.RENTAL_DISCOUNT,
            key=DISCOUNT_LIMIT,
            value_field="discountPercent",
            use_absolute_value=True,
            message="Discount too high",
        )

    def test_bind(self, spec):
        check = spec.bind({"discountPercent": -25})
        assert check == ConstraintCheck(
            permission=Permission.RENTAL_DISCOUNT,
            key=DISCOUNT_LIMIT,
            value=-25.0,
            use_absolute_value=True,
            message="Discount too high",
        )
        assert check.effective_value == 25

    @pytest.mark.parametrize("payload", [None, {}, {"other": 5}, {"discountPercent": None}])
    def test_missing_value_skips(self, spec, payload):
        assert spec.bind(payload) is None

    def test_non_numeric_value_skips(self, spec):
        assert spec.bind({"discountPercent": "lots"}) is None

    def test_numeric_string(self, spec):
        assert spec.bind({"discountPercent": "15"}).value == 15.0

    def test_signed_value_without_absolute(self):
        check = ConstraintCheck(Permission.RENTAL_DISCOUNT, DISCOUNT_LIMIT, -25)
        assert check.effective_value == -25


class TestOperationPolicy:

    def test_coerces_values(self):
        policy = OperationPolicy(
            name="rental.view",
            required_permissions=["rental:view"],
            permission_logic="ANY",
        )
        assert policy.required_permissions == (Permission.RENTAL_VIEW,)
        assert policy.permission_logic == PermissionLogic.ANY

    def test_name_required(self):
        with pytest.raises(PolicyConfigurationError):
            OperationPolicy(name="")

    def test_scope_requirement_coerces(self):
        assert ScopeRequirement("GLOBAL").minimum_scope == RoleScope.GLOBAL
        assert not ScopeRequirement().allow_global_write


# =============================================================================
# REGISTRY
# =============================================================================

class TestOperationRegistry:

    def test_register_and_get(self):
        registry = OperationRegistry()
        policy = registry.register(OperationPolicy(name="custom.op"))
        assert registry.get("custom.op") is policy
        assert "custom.op" in registry
        assert len(registry) == 1

    def test_duplicate_rejected(self):
        registry = OperationRegistry([OperationPolicy(name="custom.op")])
        with pytest.raises(PolicyConfigurationError):
            registry.register(OperationPolicy(name="custom.op"))

    def test_unknown_operation(self):
        with pytest.raises(UnknownOperationError) as exc_info:
            OperationRegistry().get("missing.op")
        assert exc_info.value.operation == "missing.op"

    def test_default_registry_operations(self):
        registry = default_registry()
        assert registry.names() == sorted([
            "rental.view", "rental.create", "rental.discount", "rental.cancel",
            "inventory.transfer", "inventory.adjust", "user.delete", "user.role_assign",
            "finance.close", "audit.read", "report.cross_tenant", "admin.config",
        ])

    def test_elevated_operations_carry_requirement(self):
        registry = default_registry()
        elevated = {p.name for p in registry if p.elevated_access is not None}
        assert elevated == {"rental.cancel", "inventory.adjust", "user.delete", "admin.config"}

    def test_default_registry_ttl(self):
        registry = default_registry(elevated_ttl=120)
        assert registry.get("rental.cancel").elevated_access.ttl == timedelta(minutes=2)

    def test_default_registry_rejects_bad_ttl(self):
        with pytest.raises(PolicyConfigurationError):
            default_registry(elevated_ttl=7200)

    def test_discount_constraint_declared(self):
        policy = default_registry().get("rental.discount")
        assert policy.constraint.value_field == "discountPercent"
        assert policy.constraint.use_absolute_value

    def test_scope_requirements(self):
        registry = default_registry()
        assert registry.get("rental.view").scope.minimum_scope == RoleScope.LOCATION
        assert registry.get("user.delete").scope.minimum_scope == RoleScope.TENANT
        assert registry.get("report.cross_tenant").scope.minimum_scope == RoleScope.GLOBAL


# =============================================================================
# POLICY TABLES
# =============================================================================

class TestPolicyTables:

    def test_reference_tables_compile(self):
        composer = PolicyTables().compile()
        assert set(composer.hierarchy.roles) == set(Role)

    def test_missing_permission_entry(self):
        permissions = {role: frozenset() for role in Role if role != Role.ACCOUNTANT}
        with pytest.raises(PolicyConfigurationError) as exc_info:
            PolicyTables(role_permissions=permissions).validate()
        assert exc_info.value.role == Role.ACCOUNTANT

    def test_permissions_for_unknown_role(self):
        roles = {role: info for role, info in ROLES.items() if role != Role.DEVOPS_ADMIN}
        with pytest.raises(PolicyConfigurationError):
            PolicyTables(roles=roles).validate()

    def test_negative_constraint(self):
        constraints = {Role.BOLTVEZETO: {Permission.RENTAL_DISCOUNT: {DISCOUNT_LIMIT: -1}}}
        with pytest.raises(PolicyConfigurationError):
            PolicyTables(role_constraints=constraints).validate()

    def test_cycle_fails_compile(self):
        roles = dict(ROLES)
        roles[Role.OPERATOR] = RoleInfo(
            role=Role.OPERATOR, name="Operator", description="", level=1,
            scope=RoleScope.LOCATION, parents=(Role.SUPER_ADMIN,),
        )
        with pytest.raises(PolicyConfigurationError, match="cycle"):
            PolicyTables(roles=roles).compile()

"""
Decision and Context Value Tests
"""

import pytest

from rbac import (
    AuthorizationDecision,
    DenialKind,
    ResourceContext,
    Role,
    Subject,
    UnknownRoleError,
)


class TestDenialKind:

    @pytest.mark.parametrize("kind,code", [
        (DenialKind.PERMISSION_DENIED, "PERMISSION_DENIED"),
        (DenialKind.INSUFFICIENT_SCOPE, "SCOPE_VIOLATION"),
        (DenialKind.TENANT_MISMATCH, "SCOPE_VIOLATION"),
        (DenialKind.LOCATION_MISMATCH, "SCOPE_VIOLATION"),
        (DenialKind.CROSS_TENANT_WRITE_DENIED, "CROSS_TENANT_WRITE_DENIED"),
        (DenialKind.ELEVATED_ACCESS_REQUIRED, "ELEVATED_ACCESS_REQUIRED"),
        (DenialKind.CONSTRAINT_EXCEEDED, "CONSTRAINT_EXCEEDED"),
        (DenialKind.MISSING_SUBJECT, "UNAUTHENTICATED"),
        (DenialKind.UNKNOWN_ROLE, "UNKNOWN_ROLE"),
    ])
    def test_error_codes(self, kind, code):
        assert kind.error_code == code

    def test_scope_denials(self):
        assert DenialKind.CROSS_TENANT_WRITE_DENIED.is_scope_denial
        assert not DenialKind.PERMISSION_DENIED.is_scope_denial


class TestAuthorizationDecision:

    def test_allow(self):
        decision = AuthorizationDecision.allow(operation="rental.view")
        assert decision
        assert not decision.denied
        assert decision.error_code is None
        assert decision.details == {"operation": "rental.view"}

    def test_deny(self):
        decision = AuthorizationDecision.deny(
            DenialKind.TENANT_MISMATCH, "Tenant access denied", resource_tenant_id="t-2",
        )
        assert not decision
        assert decision.to_dict() == {
            "allowed": False,
            "denial_kind": "TENANT_MISMATCH",
            "code": "SCOPE_VIOLATION",
            "message": "Tenant access denied",
            "details": {"resource_tenant_id": "t-2"},
        }


class TestSubject:

    def test_from_camel_case_claims(self):
        subject = Subject.from_claims(
            {"id": "u-1", "role": "TECHNIKUS", "tenantId": "t-1", "locationId": "loc-1"}
        )
        assert subject == Subject("u-1", Role.TECHNIKUS, "t-1", "loc-1")

    def test_from_snake_case_claims(self):
        subject = Subject.from_claims({"sub": "u-2", "role": Role.ACCOUNTANT, "tenant_id": "t-1"})
        assert subject.subject_id == "u-2"
        assert subject.location_id is None

    def test_unknown_role_claims(self):
        with pytest.raises(UnknownRoleError):
            Subject.from_claims({"id": "u-1", "role": "JANITOR", "tenantId": "t-1"})

    def test_missing_id_becomes_empty(self):
        assert Subject.from_claims({"role": "OPERATOR", "tenantId": "t-1"}).subject_id == ""

    def test_to_dict(self):
        assert Subject("u-1", Role.OPERATOR, "t-1").to_dict() == {
            "subject_id": "u-1", "role": "OPERATOR", "tenant_id": "t-1", "location_id": None,
        }


class TestResourceContext:

    def test_defaults(self):
        resource = ResourceContext()
        assert resource.resource_type == "ENDPOINT"
        assert resource.to_dict()["tenant_id"] is None

"""Pytest configuration and fixtures for the authorization engine test suite."""

import os
import sys
from pathlib import Path

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("RBAC_ENVIRONMENT", "test")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from audit import InMemoryAuditSink
from rbac import (
    AuthorizationGuard,
    ElevatedAccessStore,
    PermissionComposer,
    ResourceContext,
    Role,
    RoleHierarchy,
    ScopeEvaluator,
)
from tests.helpers.authz import LOCATION_1, TENANT_A, FakeClock, make_subject


# =============================================================================
# CLOCK
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# ENGINE COMPONENTS
# =============================================================================

@pytest.fixture
def hierarchy():
    return RoleHierarchy()


@pytest.fixture
def composer(hierarchy):
    return PermissionComposer(hierarchy)


@pytest.fixture
def scope_evaluator(hierarchy):
    return ScopeEvaluator(hierarchy)


@pytest.fixture
def session_store(clock):
    return ElevatedAccessStore(clock=clock)


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def guard(composer, scope_evaluator, session_store, audit_sink):
    """Fresh guard with a fake clock and an in-memory audit sink."""
    return AuthorizationGuard(
        composer=composer,
        scope_evaluator=scope_evaluator,
        session_store=session_store,
        audit_sink=audit_sink,
    )


# =============================================================================
# SUBJECTS
# =============================================================================

@pytest.fixture
def operator():
    return make_subject(Role.OPERATOR, subject_id="operator-1")


@pytest.fixture
def store_manager():
    """BOLTVEZETO at location 1 of tenant A."""
    return make_subject(Role.BOLTVEZETO, subject_id="manager-1")


@pytest.fixture
def partner_owner():
    return make_subject(Role.PARTNER_OWNER, subject_id="owner-1", location_id=None)


@pytest.fixture
def super_admin():
    return make_subject(Role.SUPER_ADMIN, subject_id="admin-1", location_id=None)


@pytest.fixture
def home_resource():
    return ResourceContext(tenant_id=TENANT_A, location_id=LOCATION_1)

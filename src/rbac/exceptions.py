"""
KGC ERP - RBAC Exceptions

Configuration defects (unknown roles, cyclic inheritance, invalid TTLs) are
raised as exceptions at policy-load time. Per-request outcomes are never
exceptions: the guard returns an AuthorizationDecision instead, and
AuthorizationDenied only exists for callers who ask for one via enforce().
"""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .decisions import AuthorizationDecision


class RbacError(Exception):
    """Base class for all RBAC engine errors."""


class UnknownRoleError(RbacError, KeyError):
    """Raised when a role is not present in the compiled policy tables."""

    def __init__(self, role: Any):
        super().__init__(f"Unknown role: {role!r}")
        self.role = role

    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable
        return self.args[0]


class UnknownOperationError(RbacError, KeyError):
    """Raised when an operation name has no registered policy."""

    def __init__(self, operation: str):
        super().__init__(f"No policy registered for operation: {operation!r}")
        self.operation = operation

    def __str__(self) -> str:
        return self.args[0]


class PolicyConfigurationError(RbacError, ValueError):
    """
    Raised when the compiled policy is inconsistent.

    Examples: inheritance cycles, parents that are not defined, roles without
    a permission entry, elevated-access TTLs outside the allowed range.
    """

    def __init__(self, message: str, role: Optional[Any] = None):
        super().__init__(message)
        self.role = role


class AuthorizationDenied(RbacError):
    """Raised by AuthorizationGuard.enforce() when a decision is a denial."""

    def __init__(self, decision: "AuthorizationDecision"):
        super().__init__(decision.message)
        self.decision = decision

    @property
    def kind(self):
        return self.decision.denial_kind

"""
Audit Event Types for authorization decisions.

Dotted values group events by concern:
- authz.permission.* - permission checks
- authz.scope.*      - tenant/location scope checks
- authz.elevated.*   - elevated access (recent re-verification)
- authz.constraint.* - numeric constraint limits
"""

from enum import Enum


class AuditAction(str, Enum):
    """Authorization events written to the audit sink."""

    PERMISSION_DENIED = "authz.permission.denied"
    SCOPE_GRANTED = "authz.scope.granted"
    SCOPE_DENIED = "authz.scope.denied"
    ELEVATED_ACCESS_GRANTED = "authz.elevated.granted"
    ELEVATED_ACCESS_DENIED = "authz.elevated.denied"
    CONSTRAINT_VIOLATION = "authz.constraint.violation"
    AUTHORIZATION_FAILED = "authz.failed"  # no subject, or a role outside the policy

    @property
    def is_denial(self) -> bool:
        return self not in (AuditAction.SCOPE_GRANTED, AuditAction.ELEVATED_ACCESS_GRANTED)


class AuditSeverity(str, Enum):
    """Severity levels for audit events."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def from_action(cls, action: AuditAction) -> "AuditSeverity":
        """Get default severity for an action."""
        if action == AuditAction.AUTHORIZATION_FAILED:
            return cls.ERROR
        if action.is_denial:
            return cls.WARNING
        return cls.INFO

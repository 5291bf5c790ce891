"""
KGC ERP - Authorization Decisions

Every evaluation produces exactly one AuthorizationDecision: allowed, or
denied with a specific DenialKind plus structured details for the audit
trail and the transport layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class DenialKind(str, Enum):
    """Exhaustive list of denial reasons."""

    UNKNOWN_ROLE = "UNKNOWN_ROLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INSUFFICIENT_SCOPE = "INSUFFICIENT_SCOPE"
    TENANT_MISMATCH = "TENANT_MISMATCH"
    LOCATION_MISMATCH = "LOCATION_MISMATCH"
    CROSS_TENANT_WRITE_DENIED = "CROSS_TENANT_WRITE_DENIED"
    ELEVATED_ACCESS_REQUIRED = "ELEVATED_ACCESS_REQUIRED"
    CONSTRAINT_EXCEEDED = "CONSTRAINT_EXCEEDED"
    MISSING_SUBJECT = "MISSING_SUBJECT"

    @property
    def error_code(self) -> str:
        """Machine-readable code surfaced to API clients."""
        return _ERROR_CODES.get(self, self.value)

    @property
    def is_scope_denial(self) -> bool:
        return self in SCOPE_DENIALS


SCOPE_DENIALS = frozenset({
    DenialKind.INSUFFICIENT_SCOPE,
    DenialKind.TENANT_MISMATCH,
    DenialKind.LOCATION_MISMATCH,
    DenialKind.CROSS_TENANT_WRITE_DENIED,
})

# Scope failures share one client-facing code, except the cross-tenant write
_ERROR_CODES: Dict[DenialKind, str] = {
    DenialKind.INSUFFICIENT_SCOPE: "SCOPE_VIOLATION",
    DenialKind.TENANT_MISMATCH: "SCOPE_VIOLATION",
    DenialKind.LOCATION_MISMATCH: "SCOPE_VIOLATION",
    DenialKind.MISSING_SUBJECT: "UNAUTHENTICATED",
}


@dataclass(frozen=True)
class AuthorizationDecision:
    """Result of one authorization evaluation."""

    allowed: bool
    denial_kind: Optional[DenialKind] = None
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def allow(cls, message: str = "Access granted", **details: Any) -> "AuthorizationDecision":
        return cls(allowed=True, message=message, details=details)

    @classmethod
    def deny(cls, kind: DenialKind, message: str, **details: Any) -> "AuthorizationDecision":
        return cls(allowed=False, denial_kind=kind, message=message, details=details)

    @property
    def denied(self) -> bool:
        return not self.allowed

    @property
    def error_code(self) -> Optional[str]:
        return self.denial_kind.error_code if self.denial_kind else None

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses and audit details."""
        return {
            "allowed": self.allowed,
            "denial_kind": self.denial_kind.value if self.denial_kind else None,
            "code": self.error_code,
            "message": self.message,
            "details": dict(self.details),
        }

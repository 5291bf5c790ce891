"""
Audit Entry Model

One record per authorization event: who, in which tenant, against which
resource, what happened, and the structured details of the decision.

Details are redacted on construction. Any key that looks like it carries a
credential (password, PIN, token, secret...) is replaced, at any nesting
depth, so raw secrets never reach a sink.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import re
import uuid

from .event_types import AuditAction, AuditSeverity


REDACTED = "[REDACTED]"

# Words in a field name that mark it as secret material
SENSITIVE_WORDS = frozenset({
    "password", "passwd", "pin", "token", "secret", "credential", "credentials",
    "otp", "apikey", "authorization", "cookie",
})

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_WORD = re.compile(r"[a-z0-9]+")


def _is_sensitive_field(name: str) -> bool:
    # accessToken, access_token and ACCESS-TOKEN all split to [access, token]
    words = _WORD.findall(_CAMEL_BOUNDARY.sub(r"\1_\2", name).lower())
    if SENSITIVE_WORDS.intersection(words):
        return True
    return "api_key" in "_".join(words)


def redact(value: Any) -> Any:
    """Return a copy of `value` with sensitive dict keys replaced."""
    if isinstance(value, dict):
        return {
            key: REDACTED if _is_sensitive_field(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def _serialize_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_serialize_value(v) for v in value]
    if hasattr(value, "value"):  # enums
        return value.value
    return str(value)


@dataclass
class AuditEntry:
    """A single authorization audit event."""

    action: AuditAction
    subject_id: Optional[str] = None
    tenant_id: Optional[str] = None
    resource_type: str = "ENDPOINT"
    resource_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        self.action = AuditAction(self.action)
        self.details = redact(dict(self.details))

    @property
    def severity(self) -> AuditSeverity:
        return AuditSeverity.from_action(self.action)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "entry_id": self.entry_id,
            "action": self.action.value,
            "severity": self.severity.value,
            "subject_id": self.subject_id,
            "tenant_id": self.tenant_id,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "details": _serialize_value(self.details),
            "timestamp": self.timestamp.isoformat(),
        }

    def get_summary(self) -> str:
        """Get human-readable summary."""
        return (
            f"{self.action.value} | subject={self.subject_id} | tenant={self.tenant_id} | "
            f"resource={self.resource_type}:{self.resource_id}"
        )

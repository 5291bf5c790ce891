"""
Authorization Audit Trail.

Every grant or denial that matters for compliance is written as an
AuditEntry to an AuditSink:

    from audit import AuditAction, AuditEntry, InMemoryAuditSink

    sink = InMemoryAuditSink()
    sink.record(AuditEntry(action=AuditAction.PERMISSION_DENIED, subject_id="user-1"))

Details are redacted on construction so credentials never reach a sink.
"""

from audit.event_types import AuditAction, AuditSeverity
from audit.entry import REDACTED, AuditEntry, redact
from audit.sinks import AuditSink, InMemoryAuditSink, LoggingAuditSink

__all__ = [
    # Event types
    "AuditAction",
    "AuditSeverity",
    # Entry model
    "AuditEntry",
    "REDACTED",
    "redact",
    # Sinks
    "AuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
]

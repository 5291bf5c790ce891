"""
Audit Sinks

Destinations for authorization audit entries. The guard writes through the
AuditSink interface and never lets a sink failure change a decision.

- InMemoryAuditSink: thread-safe, queryable, for tests and development
- LoggingAuditSink:  writes each entry to the "audit" logger
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from .entry import AuditEntry
from .event_types import AuditAction, AuditSeverity


class AuditSink(ABC):
    """Abstract base class for audit destinations."""

    @abstractmethod
    def record(self, entry: AuditEntry) -> None:
        """Persist or forward an audit entry."""
        pass


class InMemoryAuditSink(AuditSink):
    """
    In-memory audit sink for testing and development.

    Thread-safe but not persistent - data lost on restart.
    """

    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()

    def record(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    @property
    def entries(self) -> List[AuditEntry]:
        """Snapshot of all entries in arrival order."""
        with self._lock:
            return list(self._entries)

    def by_action(self, action: AuditAction) -> List[AuditEntry]:
        action = AuditAction(action)
        with self._lock:
            return [e for e in self._entries if e.action == action]

    def for_subject(self, subject_id: str, action: Optional[AuditAction] = None) -> List[AuditEntry]:
        """All entries for a subject, optionally filtered by action."""
        with self._lock:
            entries = [e for e in self._entries if e.subject_id == subject_id]
        if action is not None:
            action = AuditAction(action)
            entries = [e for e in entries if e.action == action]
        return entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_LEVELS = {
    AuditSeverity.INFO: logging.INFO,
    AuditSeverity.WARNING: logging.WARNING,
    AuditSeverity.ERROR: logging.ERROR,
}


class LoggingAuditSink(AuditSink):
    """Forwards entries to a logger; denials at WARNING, grants at INFO."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("audit")

    def record(self, entry: AuditEntry) -> None:
        payload = entry.to_dict()
        self.logger.log(
            _LEVELS[entry.severity],
            f"AUDIT {entry.get_summary()} | details={json.dumps(payload['details'], sort_keys=True, default=str)}",
            extra={"extra_data": {"audit_entry_id": entry.entry_id, "audit_action": entry.action.value}},
        )

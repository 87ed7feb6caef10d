"""Audit sinks and the best-effort recording helper.

Audit is never allowed to affect an authorization or promotion outcome:
callers go through ``record_best_effort``, which logs and swallows sink
failures.
"""

import logging
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from adoption.app.db.models import AuditLog
from adoption.app.models.audit import AuditEntry
from adoption.app.utils.metrics import audit_failures_total

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    """Audit emission collaborator."""

    def record(self, entry: AuditEntry) -> None:
        """Record an audit entry. May raise; callers treat failures as best effort."""
        ...


class LoggingAuditSink:
    """Writes audit entries to the application log."""

    def __init__(self, logger_name: str = "adoption.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def record(self, entry: AuditEntry) -> None:
        """Record an audit entry as a structured log line."""
        self._logger.info(
            f"Audit: {entry.action} - {entry.outcome}",
            extra={"structured": entry.model_dump(mode="json")},
        )


class InMemoryAuditSink:
    """Keeps audit entries in a list."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        """Append an audit entry."""
        self.entries.append(entry)

    def by_action(self, action: str) -> list[AuditEntry]:
        """Entries recorded for an action."""
        return [entry for entry in self.entries if entry.action == action]


class SqlAuditSink:
    """Persists audit entries to the audit_log table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def record(self, entry: AuditEntry) -> None:
        """Insert an audit row."""
        with self._session_factory() as session:
            session.add(
                AuditLog(
                    action=entry.action,
                    outcome=entry.outcome,
                    subject_id=entry.subject_id,
                    role=entry.role,
                    org_id=entry.org_id,
                    policy=entry.policy,
                    resource_path=entry.resource_path,
                    target_type=entry.target_type,
                    target_id=entry.target_id,
                    details=entry.model_dump(mode="json")["details"],
                    timestamp=entry.timestamp,
                )
            )
            session.commit()


def record_best_effort(sink: AuditSink, entry: AuditEntry) -> bool:
    """Record an entry, never raising.

    Returns:
        True if the sink accepted the entry, False otherwise
    """
    try:
        sink.record(entry)
        return True
    except Exception as e:
        audit_failures_total.labels(sink=type(sink).__name__).inc()
        logger.error(
            f"Audit sink {type(sink).__name__} failed for {entry.action}: {type(e).__name__}",
            extra={"structured": {"action": entry.action, "error": str(e)}},
        )
        return False

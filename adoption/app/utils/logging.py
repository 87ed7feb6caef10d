"""Structured logging for access decisions and scheduled task execution."""

import logging
from typing import Any

from adoption.app.authz.context import IdentityContext
from adoption.app.db.repositories import ScheduledTaskRecord
from adoption.app.models.decision import Decision

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


class StructuredDecisionLogger:
    """Structured logger for access decisions."""

    def log_decision(
        self,
        decision: Decision,
        identity: IdentityContext | None,
        resource_path: str | None = None,
    ) -> None:
        """Log a decision with identity summary and resource path."""
        log_data: dict[str, Any] = {
            "check": decision.check,
            "outcome": decision.outcome,
            "reason": decision.reason,
            "resource_path": resource_path,
        }

        if identity is not None:
            log_data.update(identity.summary())

        if decision.denial is not None:
            log_data["denial"] = decision.denial.value

        log_msg = f"Access check: {decision.check} - {decision.outcome}"

        if decision.allowed:
            logger.debug(log_msg, extra={"structured": log_data})
        else:
            logger.info(log_msg, extra={"structured": log_data})


class StructuredTaskLogger:
    """Structured logger for scheduled task execution."""

    def log_execution(
        self,
        task: ScheduledTaskRecord,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log one task execution attempt."""
        log_data: dict[str, Any] = {
            "task_id": task.task_id,
            "kind": task.kind,
            "subject_id": task.subject_id,
            "request_id": task.request_id,
            "due_at": task.due_at.isoformat(),
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Scheduled task: {task.kind} {task.task_id} - {outcome}"

        if error_reason:
            logger.warning(log_msg, extra={"structured": log_data})
        else:
            logger.info(log_msg, extra={"structured": log_data})

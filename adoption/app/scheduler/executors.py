"""Executors for scheduled task kinds.

An executor returns an outcome label when the task is finished (including
"nothing to do") and raises when the task should stay pending and be retried
on the next poll.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

from adoption.app.audit.sinks import AuditSink, record_best_effort
from adoption.app.db.repositories import (
    IdentityDirectory,
    PromotionPlan,
    PromotionStore,
    ScheduledTaskRecord,
)
from adoption.app.models.audit import AuditEntry
from adoption.app.models.common import Role

logger = logging.getLogger(__name__)

TEMPORARY_ORG_PREFIX = "Temporary Rescue - "
TEMPORARY_ORG_DESCRIPTION = "Temporary rescue account. Please update your details in the Manage Rescue page."
AUTO_APPROVAL_NOTES = "Automatically approved and temporary rescue created"


class TaskExecutor(Protocol):
    """Runs one scheduled task."""

    def execute(self, task: ScheduledTaskRecord) -> str:
        """Execute a task.

        Returns:
            Outcome label (e.g. "applied", "skipped")

        Raises:
            Exception: Any failure; the task stays pending
        """
        ...


class PromoteToOrgExecutor:
    """Promotes a user to org member of a freshly created provisional org."""

    def __init__(
        self,
        promotions: PromotionStore,
        identities: IdentityDirectory,
        audit: AuditSink | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._promotions = promotions
        self._identities = identities
        self._audit = audit
        self._clock = clock

    def execute(self, task: ScheduledTaskRecord) -> str:
        """Apply a deferred promotion.

        Returns:
            "missing" if the request or subject is gone, "skipped" if the
            subject is no longer a plain user, "applied" otherwise

        Raises:
            StoreUnavailableError: If a store cannot be reached
        """
        request = self._promotions.get_request(task.request_id)
        if request is None:
            logger.error(f"Promotion request {task.request_id} not found for task {task.task_id}")
            return "missing"

        subject = self._identities.get_identity(task.subject_id)
        if subject is None:
            logger.error(f"Subject {task.subject_id} not found for task {task.task_id}")
            return "missing"

        # Already promoted (by an earlier attempt or by hand)
        if subject.role != Role.user:
            logger.info(
                f"Subject {task.subject_id} already has role {subject.role.value}, skipping promotion",
                extra={"structured": {"task_id": task.task_id, "request_id": task.request_id}},
            )
            return "skipped"

        now = self._clock()
        org = self._promotions.apply_promotion(
            PromotionPlan(
                request_id=request.request_id,
                subject_id=subject.subject_id,
                org_name=f"{TEMPORARY_ORG_PREFIX}{request.org_name}",
                org_location=request.org_location,
                contact_email=subject.email,
                description=TEMPORARY_ORG_DESCRIPTION,
                admin_notes=AUTO_APPROVAL_NOTES,
                approved_at=now,
            )
        )

        if org is None:
            # An overlapping attempt promoted the subject between the read above and the write
            logger.info(
                f"Subject {task.subject_id} was promoted concurrently, skipping promotion",
                extra={"structured": {"task_id": task.task_id, "request_id": task.request_id}},
            )
            return "skipped"

        logger.info(
            f"Created temporary org {org.org_id} for subject {subject.subject_id}",
            extra={"structured": {"task_id": task.task_id, "org_id": org.org_id}},
        )

        if self._audit is not None:
            record_best_effort(
                self._audit,
                AuditEntry(
                    action="temporary_org_created",
                    outcome="applied",
                    subject_id=subject.subject_id,
                    role=Role.org_member.value,
                    org_id=org.org_id,
                    target_type="org",
                    target_id=org.org_id,
                    details={
                        "previous_role": subject.role.value,
                        "new_role": Role.org_member.value,
                        "org_id": org.org_id,
                        "request_id": request.request_id,
                        "automatic": True,
                    },
                    timestamp=now,
                ),
            )

        return "applied"

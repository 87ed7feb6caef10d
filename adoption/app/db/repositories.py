"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from adoption.app.models.common import PromotionStatus, ResourceKind, Role


class StoreUnavailableError(Exception):
    """Transient collaborator failure (unreachable store, timeout)."""

    pass


@dataclass
class IdentityRecord:
    """Stored view of a subject's current role."""

    subject_id: str
    role: Role
    org_id: str | None
    email: str | None = None


@dataclass
class OwnershipRecord:
    """Owning subject/org of a resource, derived on demand."""

    resource_kind: ResourceKind
    resource_id: str
    owner_subject_id: str | None
    owner_org_id: str | None


@dataclass
class OrgRecord:
    """Rescue organization record."""

    org_id: str
    name: str
    location: str
    contact_email: str | None
    description: str
    provisional: bool
    created_at: datetime


@dataclass
class PromotionRequestRecord:
    """Request by a subject to become an org member of a new rescue."""

    request_id: str
    subject_id: str
    org_name: str
    org_location: str
    status: PromotionStatus
    created_at: datetime
    approval_date: datetime | None = None
    admin_notes: str | None = None


@dataclass
class ScheduledTaskRecord:
    """Durable time-triggered task."""

    task_id: str
    kind: str  # TaskKind value; stored rows may carry kinds with no executor
    subject_id: str
    request_id: str
    due_at: datetime
    executed: bool
    created_at: datetime
    executed_at: datetime | None = None


@dataclass
class PromotionPlan:
    """Everything an atomic promotion writes."""

    request_id: str
    subject_id: str
    org_name: str
    org_location: str
    contact_email: str | None
    description: str
    admin_notes: str
    approved_at: datetime


class IdentityDirectory(Protocol):
    """Identity lookup collaborator."""

    def get_identity(self, subject_id: str) -> IdentityRecord | None:
        """Get a subject's current role and org.

        Args:
            subject_id: Subject ID

        Returns:
            Identity record or None if the subject does not exist

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        ...


class OwnershipStore(Protocol):
    """Ownership lookup collaborator."""

    def get_owner(self, kind: ResourceKind, resource_id: str) -> OwnershipRecord | None:
        """Get the owning subject/org of a resource.

        Args:
            kind: Resource kind
            resource_id: Resource ID

        Returns:
            Ownership record or None if the resource does not exist

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        ...


class TaskStore(Protocol):
    """Scheduled task persistence with at-least-once semantics."""

    def insert_task(self, task: ScheduledTaskRecord) -> None:
        """Insert a new pending task."""
        ...

    def get_task(self, task_id: str) -> ScheduledTaskRecord | None:
        """Get task by ID."""
        ...

    def list_due_tasks(self, now: datetime) -> list[ScheduledTaskRecord]:
        """List pending tasks with due_at <= now, ascending by due_at."""
        ...

    def list_pending_tasks(self) -> list[ScheduledTaskRecord]:
        """List all pending tasks regardless of due_at, ascending by due_at."""
        ...

    def mark_executed(self, task_id: str, executed_at: datetime) -> None:
        """Flip executed to true. Calling it again is a no-op."""
        ...


class PromotionStore(Protocol):
    """Promotion requests and the cross-entity promotion write."""

    def create_request(
        self, subject_id: str, org_name: str, org_location: str, created_at: datetime
    ) -> PromotionRequestRecord:
        """Create a pending promotion request."""
        ...

    def get_request(self, request_id: str) -> PromotionRequestRecord | None:
        """Get promotion request by ID."""
        ...

    def reject_request(self, request_id: str, admin_notes: str) -> None:
        """Mark a still-pending request rejected. No-op for any other status."""
        ...

    def apply_promotion(self, plan: PromotionPlan) -> OrgRecord | None:
        """Create the org, promote the subject and approve the request.

        Implementations apply all three writes or none of them, and re-check
        the subject's role under the same lock as the writes so overlapping
        attempts promote at most once.

        Returns:
            The newly created org, or None if the subject is no longer a user
        """
        ...

    def get_org(self, org_id: str) -> OrgRecord | None:
        """Get org by ID."""
        ...

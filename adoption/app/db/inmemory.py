"""In-memory implementations of repository interfaces."""

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone

from adoption.app.db.repositories import (
    IdentityRecord,
    OrgRecord,
    OwnershipRecord,
    PromotionPlan,
    PromotionRequestRecord,
    ScheduledTaskRecord,
)
from adoption.app.models.common import PromotionStatus, ResourceKind, Role


class InMemoryAdoptionStore:
    """In-memory implementation of IdentityDirectory, OwnershipStore and PromotionStore.

    Records are copied on the way out so callers never hold live references
    to stored state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, IdentityRecord] = {}
        self._orgs: dict[str, OrgRecord] = {}
        self._pets: dict[str, str] = {}
        self._applications: dict[str, tuple[str, str]] = {}
        self._requests: dict[str, PromotionRequestRecord] = {}

    # Seeding helpers

    def add_user(
        self,
        subject_id: str,
        role: Role = Role.user,
        org_id: str | None = None,
        email: str | None = None,
    ) -> IdentityRecord:
        """Add or replace a user."""
        record = IdentityRecord(subject_id=subject_id, role=role, org_id=org_id, email=email)
        self._users[subject_id] = record
        return replace(record)

    def set_role(self, subject_id: str, role: Role, org_id: str | None = None) -> None:
        """Change a user's role out of band."""
        with self._lock:
            record = self._users[subject_id]
            self._users[subject_id] = replace(record, role=role, org_id=org_id)

    def add_org(self, org_id: str, name: str, location: str = "", created_at: datetime | None = None) -> OrgRecord:
        """Add a non-provisional org."""
        record = OrgRecord(
            org_id=org_id,
            name=name,
            location=location,
            contact_email=None,
            description="",
            provisional=False,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self._orgs[org_id] = record
        return replace(record)

    def add_pet(self, pet_id: str, org_id: str) -> None:
        """Add a pet owned by an org."""
        self._pets[pet_id] = org_id

    def add_application(self, application_id: str, subject_id: str, pet_id: str) -> None:
        """Add an adoption application by a subject for a pet."""
        self._applications[application_id] = (subject_id, pet_id)

    def list_orgs(self) -> list[OrgRecord]:
        """List all orgs."""
        return [replace(org) for org in self._orgs.values()]

    def get_org(self, org_id: str) -> OrgRecord | None:
        """Get org by ID."""
        org = self._orgs.get(org_id)
        return replace(org) if org else None

    # IdentityDirectory

    def get_identity(self, subject_id: str) -> IdentityRecord | None:
        """Get a subject's current role and org."""
        record = self._users.get(subject_id)
        return replace(record) if record else None

    # OwnershipStore

    def get_owner(self, kind: ResourceKind, resource_id: str) -> OwnershipRecord | None:
        """Get the owning subject/org of a resource."""
        if kind == ResourceKind.pet:
            pet_org = self._pets.get(resource_id)
            if pet_org is None:
                return None
            return OwnershipRecord(
                resource_kind=kind,
                resource_id=resource_id,
                owner_subject_id=None,
                owner_org_id=pet_org,
            )

        application = self._applications.get(resource_id)
        if application is None:
            return None
        applicant_id, pet_id = application
        return OwnershipRecord(
            resource_kind=kind,
            resource_id=resource_id,
            owner_subject_id=applicant_id,
            owner_org_id=self._pets.get(pet_id),
        )

    # PromotionStore

    def create_request(
        self, subject_id: str, org_name: str, org_location: str, created_at: datetime
    ) -> PromotionRequestRecord:
        """Create a pending promotion request."""
        record = PromotionRequestRecord(
            request_id=str(uuid.uuid4()),
            subject_id=subject_id,
            org_name=org_name,
            org_location=org_location,
            status=PromotionStatus.pending,
            created_at=created_at,
        )
        self._requests[record.request_id] = record
        return replace(record)

    def get_request(self, request_id: str) -> PromotionRequestRecord | None:
        """Get promotion request by ID."""
        record = self._requests.get(request_id)
        return replace(record) if record else None

    def reject_request(self, request_id: str, admin_notes: str) -> None:
        """Mark a pending request rejected."""
        with self._lock:
            record = self._requests.get(request_id)
            if record is not None and record.status == PromotionStatus.pending:
                self._requests[request_id] = replace(record, status=PromotionStatus.rejected, admin_notes=admin_notes)

    def apply_promotion(self, plan: PromotionPlan) -> OrgRecord | None:
        """Create the org, promote the subject and approve the request."""
        with self._lock:
            user = self._users.get(plan.subject_id)
            request = self._requests.get(plan.request_id)
            if user is None or request is None:
                raise KeyError("promotion target disappeared")

            if user.role != Role.user:
                return None

            org = OrgRecord(
                org_id=str(uuid.uuid4()),
                name=plan.org_name,
                location=plan.org_location,
                contact_email=plan.contact_email,
                description=plan.description,
                provisional=True,
                created_at=plan.approved_at,
            )
            self._orgs[org.org_id] = org
            self._users[plan.subject_id] = replace(user, role=Role.org_member, org_id=org.org_id)
            self._requests[plan.request_id] = replace(
                request,
                status=PromotionStatus.approved,
                approval_date=plan.approved_at,
                admin_notes=plan.admin_notes,
            )
            return replace(org)


class InMemoryTaskStore:
    """In-memory implementation of TaskStore."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: dict[str, ScheduledTaskRecord] = {}

    def insert_task(self, task: ScheduledTaskRecord) -> None:
        """Insert a new pending task."""
        with self._lock:
            self._tasks[task.task_id] = replace(task)

    def get_task(self, task_id: str) -> ScheduledTaskRecord | None:
        """Get task by ID."""
        task = self._tasks.get(task_id)
        return replace(task) if task else None

    def list_due_tasks(self, now: datetime) -> list[ScheduledTaskRecord]:
        """List pending tasks that are due, oldest due first."""
        return [task for task in self.list_pending_tasks() if task.due_at <= now]

    def list_pending_tasks(self) -> list[ScheduledTaskRecord]:
        """List all pending tasks, oldest due first."""
        with self._lock:
            pending = [replace(task) for task in self._tasks.values() if not task.executed]
        pending.sort(key=lambda task: (task.due_at, task.created_at))
        return pending

    def mark_executed(self, task_id: str, executed_at: datetime) -> None:
        """Flip executed to true once."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.executed:
                return
            self._tasks[task_id] = replace(task, executed=True, executed_at=executed_at)

"""SQL implementations of repository interfaces."""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from adoption.app.db.models import Application, Org, Pet, PromotionRequest, ScheduledTask, User
from adoption.app.db.repositories import (
    IdentityRecord,
    OrgRecord,
    OwnershipRecord,
    PromotionPlan,
    PromotionRequestRecord,
    ScheduledTaskRecord,
    StoreUnavailableError,
)
from adoption.app.models.common import PromotionStatus, ResourceKind, Role


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Open a session, translating connectivity failures into StoreUnavailableError."""
    try:
        with session_factory() as session:
            yield session
    except (OperationalError, InterfaceError, PoolTimeoutError) as e:
        raise StoreUnavailableError(f"store unavailable: {type(e).__name__}") from e


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends that drop tzinfo."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _task_record(row: ScheduledTask) -> ScheduledTaskRecord:
    return ScheduledTaskRecord(
        task_id=row.task_id,
        kind=row.kind,
        subject_id=row.subject_id,
        request_id=row.request_id,
        due_at=as_utc(row.due_at),  # type: ignore[arg-type]
        executed=row.executed,
        created_at=as_utc(row.created_at),  # type: ignore[arg-type]
        executed_at=as_utc(row.executed_at),
    )


def _org_record(row: Org) -> OrgRecord:
    return OrgRecord(
        org_id=row.org_id,
        name=row.name,
        location=row.location,
        contact_email=row.contact_email,
        description=row.description,
        provisional=row.provisional,
        created_at=as_utc(row.created_at),  # type: ignore[arg-type]
    )


def _request_record(row: PromotionRequest) -> PromotionRequestRecord:
    return PromotionRequestRecord(
        request_id=row.request_id,
        subject_id=row.user_id,
        org_name=row.org_name,
        org_location=row.org_location,
        status=PromotionStatus(row.status),
        created_at=as_utc(row.created_at),  # type: ignore[arg-type]
        approval_date=as_utc(row.approval_date),
        admin_notes=row.admin_notes,
    )


class SqlIdentityDirectory:
    """SQL implementation of IdentityDirectory."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get_identity(self, subject_id: str) -> IdentityRecord | None:
        """Get a subject's current role and org."""
        with session_scope(self._session_factory) as session:
            user = session.get(User, subject_id)

            if user is None:
                return None

            return IdentityRecord(
                subject_id=user.user_id,
                role=Role(user.role),
                org_id=user.org_id,
                email=user.email,
            )


class SqlOwnershipStore:
    """SQL implementation of OwnershipStore - one query per lookup."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get_owner(self, kind: ResourceKind, resource_id: str) -> OwnershipRecord | None:
        """Get the owning subject/org of a resource."""
        with session_scope(self._session_factory) as session:
            if kind == ResourceKind.pet:
                org_id = session.execute(
                    select(Pet.org_id).where(Pet.pet_id == resource_id)
                ).scalar_one_or_none()

                if org_id is None:
                    return None

                return OwnershipRecord(
                    resource_kind=kind,
                    resource_id=resource_id,
                    owner_subject_id=None,
                    owner_org_id=org_id,
                )

            row = session.execute(
                select(Application.user_id, Pet.org_id)
                .outerjoin(Pet, Pet.pet_id == Application.pet_id)
                .where(Application.application_id == resource_id)
            ).first()

            if row is None:
                return None

            return OwnershipRecord(
                resource_kind=kind,
                resource_id=resource_id,
                owner_subject_id=row[0],
                owner_org_id=row[1],
            )


class SqlPromotionStore:
    """SQL implementation of PromotionStore."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create_request(
        self, subject_id: str, org_name: str, org_location: str, created_at: datetime
    ) -> PromotionRequestRecord:
        """Create a pending promotion request."""
        with session_scope(self._session_factory) as session:
            row = PromotionRequest(
                request_id=str(uuid.uuid4()),
                user_id=subject_id,
                org_name=org_name,
                org_location=org_location,
                status=PromotionStatus.pending.value,
                created_at=created_at,
            )
            session.add(row)
            session.commit()

            return _request_record(row)

    def get_request(self, request_id: str) -> PromotionRequestRecord | None:
        """Get promotion request by ID."""
        with session_scope(self._session_factory) as session:
            row = session.get(PromotionRequest, request_id)

            if row is None:
                return None

            return _request_record(row)

    def reject_request(self, request_id: str, admin_notes: str) -> None:
        """Mark a pending request rejected."""
        with session_scope(self._session_factory) as session:
            session.execute(
                update(PromotionRequest)
                .where(PromotionRequest.request_id == request_id)
                .where(PromotionRequest.status == PromotionStatus.pending.value)
                .values(status=PromotionStatus.rejected.value, admin_notes=admin_notes)
            )
            session.commit()

    def apply_promotion(self, plan: PromotionPlan) -> OrgRecord | None:
        """Create the org, promote the subject and approve the request in one transaction."""
        with session_scope(self._session_factory) as session:
            with session.begin():
                user = session.execute(
                    select(User).where(User.user_id == plan.subject_id).with_for_update()
                ).scalar_one()
                request = session.execute(
                    select(PromotionRequest)
                    .where(PromotionRequest.request_id == plan.request_id)
                    .with_for_update()
                ).scalar_one()

                # Re-read under the row lock; a concurrent attempt may have committed first
                if user.role != Role.user.value:
                    return None

                org = Org(
                    org_id=str(uuid.uuid4()),
                    name=plan.org_name,
                    location=plan.org_location,
                    contact_email=plan.contact_email,
                    description=plan.description,
                    website_url="",
                    registration_number="",
                    provisional=True,
                    created_at=plan.approved_at,
                )
                session.add(org)
                session.flush()

                user.role = Role.org_member.value
                user.org_id = org.org_id

                request.status = PromotionStatus.approved.value
                request.approval_date = plan.approved_at
                request.admin_notes = plan.admin_notes

            return _org_record(org)

    def get_org(self, org_id: str) -> OrgRecord | None:
        """Get org by ID."""
        with session_scope(self._session_factory) as session:
            row = session.get(Org, org_id)

            if row is None:
                return None

            return _org_record(row)


class SqlTaskStore:
    """SQL implementation of TaskStore."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def insert_task(self, task: ScheduledTaskRecord) -> None:
        """Insert a new pending task."""
        with session_scope(self._session_factory) as session:
            session.add(
                ScheduledTask(
                    task_id=task.task_id,
                    kind=task.kind,
                    subject_id=task.subject_id,
                    request_id=task.request_id,
                    due_at=task.due_at,
                    executed=task.executed,
                    executed_at=task.executed_at,
                    created_at=task.created_at,
                )
            )
            session.commit()

    def get_task(self, task_id: str) -> ScheduledTaskRecord | None:
        """Get task by ID."""
        with session_scope(self._session_factory) as session:
            row = session.get(ScheduledTask, task_id)

            if row is None:
                return None

            return _task_record(row)

    def list_due_tasks(self, now: datetime) -> list[ScheduledTaskRecord]:
        """List pending tasks that are due, oldest due first."""
        with session_scope(self._session_factory) as session:
            rows = session.execute(
                select(ScheduledTask)
                .where(ScheduledTask.executed.is_(False))
                .where(ScheduledTask.due_at <= now)
                .order_by(ScheduledTask.due_at.asc(), ScheduledTask.created_at.asc())
            ).scalars()

            return [_task_record(row) for row in rows]

    def list_pending_tasks(self) -> list[ScheduledTaskRecord]:
        """List all pending tasks, oldest due first."""
        with session_scope(self._session_factory) as session:
            rows = session.execute(
                select(ScheduledTask)
                .where(ScheduledTask.executed.is_(False))
                .order_by(ScheduledTask.due_at.asc(), ScheduledTask.created_at.asc())
            ).scalars()

            return [_task_record(row) for row in rows]

    def mark_executed(self, task_id: str, executed_at: datetime) -> None:
        """Flip executed to true; already-executed rows are left untouched."""
        with session_scope(self._session_factory) as session:
            session.execute(
                update(ScheduledTask)
                .where(ScheduledTask.task_id == task_id)
                .where(ScheduledTask.executed.is_(False))
                .values(executed=True, executed_at=executed_at)
            )
            session.commit()

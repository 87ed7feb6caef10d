"""Operator endpoints for the deferred task scheduler."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from adoption.app.api.guards import get_services, require
from adoption.app.authz.engine import AccessCheck
from adoption.app.db.repositories import StoreUnavailableError
from adoption.app.services import Services

router = APIRouter(
    prefix="/admin/scheduler",
    tags=["scheduler"],
    dependencies=[Depends(require(AccessCheck.admin))],
)


class PollResponse(BaseModel):
    """Response for poll endpoints."""

    executed: int


class TaskResponse(BaseModel):
    """Pending task view."""

    task_id: str
    kind: str
    subject_id: str
    request_id: str
    due_at: datetime
    created_at: datetime


@router.post("/poll", response_model=PollResponse)
async def poll(services: Annotated[Services, Depends(get_services)]) -> PollResponse:
    """Run one poll over due tasks now."""
    return PollResponse(executed=await services.scheduler.poll_once())


@router.post("/force-poll", response_model=PollResponse)
async def force_poll(services: Annotated[Services, Depends(get_services)]) -> PollResponse:
    """Run every pending task now, ignoring due times."""
    return PollResponse(executed=await services.scheduler.force_poll_all())


@router.get("/tasks", response_model=list[TaskResponse])
async def list_pending_tasks(services: Annotated[Services, Depends(get_services)]) -> list[TaskResponse]:
    """List pending tasks, oldest due first."""
    try:
        tasks = await run_in_threadpool(services.scheduler.pending_tasks)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable") from e

    return [
        TaskResponse(
            task_id=task.task_id,
            kind=task.kind,
            subject_id=task.subject_id,
            request_id=task.request_id,
            due_at=task.due_at,
            created_at=task.created_at,
        )
        for task in tasks
    ]

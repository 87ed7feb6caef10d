"""Promotion request endpoint - a user asks to run a rescue org."""

import logging
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from adoption.app.api.guards import get_services, require
from adoption.app.audit.sinks import record_best_effort
from adoption.app.authz.context import IdentityContext
from adoption.app.authz.engine import AccessCheck
from adoption.app.db.repositories import StoreUnavailableError
from adoption.app.models.audit import AuditEntry
from adoption.app.models.common import Role, TaskKind
from adoption.app.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/promotion-requests", tags=["promotions"])

UNSCHEDULED_NOTES = "Rejected automatically: the promotion could not be scheduled"


class CreatePromotionRequest(BaseModel):
    """Request body for POST /promotion-requests."""

    org_name: str = Field(..., min_length=1, description="Name of the rescue to create")
    org_location: str = Field(..., min_length=1, description="Where the rescue operates")


class CreatePromotionResponse(BaseModel):
    """Response for POST /promotion-requests."""

    request_id: str
    task_id: str
    status: str
    due_at: datetime


async def _reject_unscheduled(services: Services, request_id: str) -> None:
    """Reject a request whose promotion task could not be stored."""
    try:
        await run_in_threadpool(services.promotions.reject_request, request_id, UNSCHEDULED_NOTES)
    except StoreUnavailableError as e:
        logger.error(f"Request {request_id} left pending without a task: {e}")


@router.post("", response_model=CreatePromotionResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_promotion_request(
    body: CreatePromotionRequest,
    identity: Annotated[IdentityContext | None, Depends(require(AccessCheck.authenticated))],
    services: Annotated[Services, Depends(get_services)],
) -> CreatePromotionResponse:
    """Record a promotion request and schedule the automatic promotion.

    Args:
        body: Org details
        identity: Requesting caller
        services: Application services

    Returns:
        Request and task IDs with the time the promotion becomes due
    """
    if identity is None:
        # Authentication switched off still leaves no subject to promote
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Identity required to request a promotion",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if identity.role != Role.user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Role {identity.role.value} cannot request a promotion",
        )

    delay = timedelta(minutes=services.settings.promotion_delay_minutes)

    try:
        request = await run_in_threadpool(
            services.promotions.create_request,
            identity.subject_id,
            body.org_name,
            body.org_location,
            services.clock(),
        )
    except StoreUnavailableError as e:
        logger.error(f"Promotion request failed for {identity.subject_id}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable") from e

    await run_in_threadpool(
        record_best_effort,
        services.audit,
        AuditEntry(
            action="promotion_request_submitted",
            outcome="pending",
            subject_id=identity.subject_id,
            role=identity.role.value,
            target_type="promotion_request",
            target_id=request.request_id,
            details={"org_name": body.org_name, "org_location": body.org_location},
            timestamp=request.created_at,
        ),
    )

    try:
        task_id = await run_in_threadpool(
            services.scheduler.schedule,
            TaskKind.promote_to_org,
            identity.subject_id,
            request.request_id,
            delay,
        )
    except StoreUnavailableError as e:
        logger.error(f"Could not schedule promotion for request {request.request_id}: {e}")
        await _reject_unscheduled(services, request.request_id)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable") from e

    return CreatePromotionResponse(
        request_id=request.request_id,
        task_id=task_id,
        status=request.status.value,
        due_at=request.created_at + delay,
    )

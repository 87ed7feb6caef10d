"""Guarded resource reads.

Each route is protected by one access check; the handler only runs once
the check allowed the caller.
"""

from collections.abc import Callable
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from adoption.app.api.guards import get_services, require
from adoption.app.authz.engine import AccessCheck
from adoption.app.db.repositories import StoreUnavailableError
from adoption.app.models.common import ResourceKind
from adoption.app.services import Services

router = APIRouter(tags=["resources"])

T = TypeVar("T")


async def _load(fn: Callable[..., T | None], *args: Any, missing: str) -> T:
    try:
        record = await run_in_threadpool(fn, *args)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable") from e

    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=missing)

    return record


@router.get("/users/{user_id}", dependencies=[Depends(require(AccessCheck.admin_or_self))])
async def get_user(user_id: str, services: Annotated[Services, Depends(get_services)]) -> dict[str, Any]:
    """Get a user's role and org membership (admin or the user themselves)."""
    record = await _load(services.identities.get_identity, user_id, missing="User not found")
    return {
        "user_id": record.subject_id,
        "role": record.role.value,
        "org_id": record.org_id,
        "email": record.email,
    }


@router.get("/orgs/{org_id}", dependencies=[Depends(require(AccessCheck.org_or_own_org))])
async def get_org(org_id: str, services: Annotated[Services, Depends(get_services)]) -> dict[str, Any]:
    """Get an org (admin or a member of that org)."""
    record = await _load(services.promotions.get_org, org_id, missing="Org not found")
    return {
        "org_id": record.org_id,
        "name": record.name,
        "location": record.location,
        "contact_email": record.contact_email,
        "description": record.description,
        "provisional": record.provisional,
        "created_at": record.created_at.isoformat(),
    }


@router.get("/pets/{pet_id}", dependencies=[Depends(require(AccessCheck.own_pet))])
async def get_pet(pet_id: str, services: Annotated[Services, Depends(get_services)]) -> dict[str, Any]:
    """Get a pet's owning org (admin or a member of the owning org)."""
    record = await _load(services.ownership.resolve_owner, ResourceKind.pet, pet_id, missing="Pet not found")
    return {"pet_id": record.resource_id, "org_id": record.owner_org_id}


@router.get("/applications/{application_id}", dependencies=[Depends(require(AccessCheck.own_application))])
async def get_application(
    application_id: str, services: Annotated[Services, Depends(get_services)]
) -> dict[str, Any]:
    """Get an application's applicant and pet org (admin, applicant, or the pet's org)."""
    record = await _load(
        services.ownership.resolve_owner,
        ResourceKind.application,
        application_id,
        missing="Application not found",
    )
    return {
        "application_id": record.resource_id,
        "user_id": record.owner_subject_id,
        "org_id": record.owner_org_id,
    }

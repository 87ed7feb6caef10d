"""Read-only view of the access control switches."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from adoption.app.api.guards import get_services, require
from adoption.app.authz.engine import AccessCheck
from adoption.app.services import Services

router = APIRouter(prefix="/admin", tags=["access"])


@router.get("/access-control", dependencies=[Depends(require(AccessCheck.admin))])
async def access_control(services: Annotated[Services, Depends(get_services)]) -> dict[str, Any]:
    """Current policy switches. The bypass is never togglable over HTTP."""
    policies = services.policies
    return {
        "environment": policies.environment,
        "policies": policies.snapshot(),
        "enabled": policies.enabled_policies(),
    }

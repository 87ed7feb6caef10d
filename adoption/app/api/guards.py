"""Access check dependencies - the only place decisions become HTTP status codes."""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from adoption.app.api.auth import get_identity_context
from adoption.app.authz.context import IdentityContext, ResourceRef
from adoption.app.authz.engine import AccessCheck
from adoption.app.models.common import DenialReason
from adoption.app.services import Services

logger = logging.getLogger(__name__)

DENIAL_STATUS: dict[DenialReason, int] = {
    DenialReason.unauthenticated: status.HTTP_401_UNAUTHORIZED,
    DenialReason.forbidden: status.HTTP_403_FORBIDDEN,
    DenialReason.missing_resource_reference: status.HTTP_403_FORBIDDEN,
    DenialReason.not_found: status.HTTP_404_NOT_FOUND,
    DenialReason.store_unavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_services(request: Request) -> Services:
    """Services built at startup."""
    return request.app.state.services  # type: ignore[no-any-return]


async def build_resource_ref(request: Request) -> ResourceRef:
    """Collect path params, JSON body and query string for resource id lookups."""
    body: dict[str, Any] = {}

    if request.method in ("POST", "PUT", "PATCH") and "json" in request.headers.get("content-type", ""):
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            body = payload

    return ResourceRef(
        path=request.url.path,
        path_params=dict(request.path_params),
        body=body,
        query=dict(request.query_params),
    )


def require(check: AccessCheck) -> Callable[..., Awaitable[IdentityContext | None]]:
    """Build a dependency that enforces one access check.

    Args:
        check: Access check to evaluate

    Returns:
        Dependency yielding the caller identity (None when a disabled policy
        or the bypass let an anonymous caller through)
    """

    async def dependency(
        request: Request,
        identity: Annotated[IdentityContext | None, Depends(get_identity_context)],
        services: Annotated[Services, Depends(get_services)],
    ) -> IdentityContext | None:
        resource = await build_resource_ref(request)
        decision = await run_in_threadpool(services.decisions.check, check, identity, resource)

        if decision.allowed:
            return identity

        # A deny without a reason code is still a deny
        denial = decision.denial or DenialReason.forbidden
        status_code = DENIAL_STATUS.get(denial, status.HTTP_403_FORBIDDEN)
        headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None

        raise HTTPException(
            status_code=status_code,
            detail={"check": decision.check, "denial": denial.value, "reason": decision.reason},
            headers=headers,
        )

    return dependency

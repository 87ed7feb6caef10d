"""Minimal authentication dependency.

Stub authenticator that turns a "Bearer <subject_id>:<role>[:<org_id>]" header
into an IdentityContext. Token verification belongs to the external identity
provider; the access checks only ever see the resulting context.
"""

from typing import Annotated

from fastapi import Header, HTTPException, status

from adoption.app.authz.context import IdentityContext
from adoption.app.models.common import Role


async def get_identity_context(
    authorization: Annotated[str | None, Header()] = None,
) -> IdentityContext | None:
    """Extract the caller identity from the authorization header.

    A missing header yields None; the access check decides whether an
    anonymous caller is acceptable.

    Args:
        authorization: Authorization header (e.g., "Bearer u1:org_member:o1")

    Returns:
        IdentityContext, or None if no header was sent

    Raises:
        HTTPException: If the header is present but malformed
    """
    if not authorization:
        return None

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:]  # Strip "Bearer "
    parts = token.split(":")

    if len(parts) not in (2, 3) or not parts[0]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format (expected subject_id:role[:org_id])",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        role = Role(parts[1])
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token role",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    org_id = parts[2] if len(parts) == 3 and parts[2] else None
    return IdentityContext(subject_id=parts[0], role=role, org_id=org_id)

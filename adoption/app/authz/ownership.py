"""Ownership resolver - maps a resource id to its owning subject/org."""

import logging

from adoption.app.db.repositories import OwnershipRecord, OwnershipStore
from adoption.app.models.common import ResourceKind

logger = logging.getLogger(__name__)


class OwnershipResolver:
    """Read-only ownership lookups.

    Every call is one round trip to the store. Nothing is cached, since
    ownership may change between calls. Looking up is safe for any caller;
    the check using the result decides access.
    """

    def __init__(self, store: OwnershipStore) -> None:
        self._store = store

    def resolve_owner(self, kind: ResourceKind, resource_id: str) -> OwnershipRecord | None:
        """Resolve the owner of a resource.

        Args:
            kind: Resource kind
            resource_id: Resource ID

        Returns:
            Ownership record, or None if the resource does not exist

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        record = self._store.get_owner(kind, resource_id)

        if record is None:
            logger.debug(f"No {kind.value} found for id {resource_id}")

        return record

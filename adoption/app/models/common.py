"""Common types and enums shared across all models."""

from enum import Enum


class Role(str, Enum):
    """Caller role carried by an identity."""

    user = "user"
    org_member = "org_member"
    admin = "admin"


class ResourceKind(str, Enum):
    """Resource kinds whose ownership can be resolved."""

    pet = "pet"
    application = "application"


class TaskKind(str, Enum):
    """Scheduled task kinds."""

    promote_to_org = "promote_to_org"


class PromotionStatus(str, Enum):
    """Promotion request lifecycle status."""

    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class DenialReason(str, Enum):
    """Stable, non-leaking reasons carried by a denied decision."""

    unauthenticated = "unauthenticated"
    forbidden = "forbidden"
    not_found = "not_found"
    missing_resource_reference = "missing_resource_reference"
    store_unavailable = "store_unavailable"

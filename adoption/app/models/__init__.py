"""Models package - re-exports for convenience."""

from adoption.app.models.audit import AuditEntry
from adoption.app.models.common import (
    DenialReason,
    PromotionStatus,
    ResourceKind,
    Role,
    TaskKind,
)
from adoption.app.models.decision import Decision

__all__ = [
    # Common
    "Role",
    "ResourceKind",
    "TaskKind",
    "PromotionStatus",
    "DenialReason",
    # Decisions
    "Decision",
    # Audit
    "AuditEntry",
]

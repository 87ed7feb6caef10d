"""Audit entry model - what gets recorded for decisions and scheduled effects."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEntry(BaseModel):
    """A single audit record.

    Carries an identity summary only; raw credentials and secrets never
    reach the audit sink.
    """

    action: str = Field(..., description="e.g. access_check, temporary_org_created")
    outcome: str
    subject_id: str | None = None
    role: str | None = None
    org_id: str | None = None
    policy: str | None = None
    resource_path: str | None = None
    target_type: str | None = None
    target_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)

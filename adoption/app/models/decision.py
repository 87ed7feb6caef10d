"""Authorization decision model."""

from pydantic import BaseModel, ConfigDict

from adoption.app.models.common import DenialReason


class Decision(BaseModel):
    """Outcome of a single access check.

    A denial is a normal return value; the transport layer decides which
    status code it maps to.
    """

    model_config = ConfigDict(frozen=True)

    check: str
    allowed: bool
    reason: str
    denial: DenialReason | None = None

    @classmethod
    def allow(cls, check: str, reason: str = "allowed") -> "Decision":
        """Build an allowing decision."""
        return cls(check=check, allowed=True, reason=reason)

    @classmethod
    def deny(cls, check: str, denial: DenialReason, reason: str) -> "Decision":
        """Build a denying decision."""
        return cls(check=check, allowed=False, reason=reason, denial=denial)

    @property
    def outcome(self) -> str:
        return "allowed" if self.allowed else "denied"

"""Caller identity and resource reference passed explicitly into every check."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from adoption.app.models.common import Role


@dataclass(frozen=True)
class IdentityContext:
    """Already-authenticated caller descriptor.

    Produced by the external authenticator, request-scoped and read-only to
    the decision engine.
    """

    subject_id: str
    role: Role
    org_id: str | None = None

    def summary(self) -> dict[str, str | None]:
        """Identity fields safe to log or audit."""
        return {"subject_id": self.subject_id, "role": self.role.value, "org_id": self.org_id}


@dataclass(frozen=True)
class ResourceRef:
    """Request locations a check may read resource ids from.

    Lookups always go path parameters, then body, then query string.
    """

    path: str = ""
    path_params: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)

    def lookup(
        self,
        path_keys: Sequence[str],
        body_keys: Sequence[str] = (),
        query_keys: Sequence[str] = (),
    ) -> str | None:
        """Return the first non-empty id found, honouring location precedence."""
        for source, keys in (
            (self.path_params, path_keys),
            (self.body, body_keys),
            (self.query, query_keys),
        ):
            for key in keys:
                value = source.get(key)
                if value is not None and value != "":
                    return str(value)
        return None

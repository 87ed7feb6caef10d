"""Access control policy switches.

Every switch except the global bypass is fixed when the configuration is
built (from settings at process start). The bypass is the only runtime
toggle and is refused in production.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

from adoption.app.config import Settings

logger = logging.getLogger(__name__)

PRODUCTION = "production"


class PolicyName(str, Enum):
    """Named policy switches."""

    require_admin = "require_admin"
    require_authenticated = "require_authenticated"
    require_org_role = "require_org_role"
    require_self = "require_self"
    require_own_org = "require_own_org"
    strict_role_validation = "strict_role_validation"
    enforce_resource_ownership = "enforce_resource_ownership"
    enable_audit_logging = "enable_audit_logging"
    bypass_all = "bypass_all"


DEFAULT_POLICIES: Mapping[PolicyName, bool] = MappingProxyType(
    {
        PolicyName.require_admin: True,
        PolicyName.require_authenticated: True,
        PolicyName.require_org_role: True,
        PolicyName.require_self: True,
        PolicyName.require_own_org: True,
        PolicyName.strict_role_validation: True,
        PolicyName.enforce_resource_ownership: True,
        PolicyName.enable_audit_logging: False,
        PolicyName.bypass_all: False,
    }
)


class ConfigError(Exception):
    """Invalid access control configuration."""

    pass


class EnvironmentRestrictedError(ConfigError):
    """Bypass requested in an environment that forbids it."""

    pass


class PolicyConfiguration:
    """Injected set of policy switches read by the decision engine on every check."""

    def __init__(
        self,
        environment: str = "development",
        overrides: Mapping[PolicyName, bool] | None = None,
    ) -> None:
        """Initialize policy switches.

        Args:
            environment: Running environment name
            overrides: Switch values replacing the all-enforcing defaults

        Raises:
            EnvironmentRestrictedError: If bypass_all is requested in production
        """
        self._environment = environment
        toggles = dict(DEFAULT_POLICIES)
        toggles.update(overrides or {})

        bypass = toggles.pop(PolicyName.bypass_all)
        self._toggles: Mapping[PolicyName, bool] = MappingProxyType(toggles)
        self._bypass = False

        if bypass:
            self.set_bypass(True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PolicyConfiguration":
        """Build switches from static settings."""
        return cls(
            environment=settings.environment,
            overrides={
                PolicyName.require_admin: settings.authz_require_admin,
                PolicyName.require_authenticated: settings.authz_require_authenticated,
                PolicyName.require_org_role: settings.authz_require_org_role,
                PolicyName.require_self: settings.authz_require_self,
                PolicyName.require_own_org: settings.authz_require_own_org,
                PolicyName.strict_role_validation: settings.authz_strict_role_validation,
                PolicyName.enforce_resource_ownership: settings.authz_enforce_resource_ownership,
                PolicyName.enable_audit_logging: settings.authz_enable_audit_logging,
                PolicyName.bypass_all: settings.authz_bypass_all,
            },
        )

    @property
    def environment(self) -> str:
        return self._environment

    def is_enabled(self, policy: PolicyName) -> bool:
        """Check whether a policy switch is on."""
        if policy == PolicyName.bypass_all:
            return self._bypass
        return self._toggles[policy]

    def set_bypass(self, enabled: bool) -> None:
        """Turn the global bypass on or off.

        Raises:
            EnvironmentRestrictedError: If enabling in production
        """
        if enabled and self._environment == PRODUCTION:
            raise EnvironmentRestrictedError("Cannot disable access control in production environment")

        if enabled != self._bypass:
            logger.warning(f"Access control bypass {'enabled' if enabled else 'disabled'}")
        self._bypass = enabled

    def enabled_policies(self) -> list[str]:
        """Names of all switches currently on."""
        return [policy.value for policy in PolicyName if self.is_enabled(policy)]

    def snapshot(self) -> dict[str, bool]:
        """Current value of every switch."""
        return {policy.value: self.is_enabled(policy) for policy in PolicyName}

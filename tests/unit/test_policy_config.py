"""Unit tests for access control policy switches."""

import pytest

from adoption.app.authz.policy_config import (
    DEFAULT_POLICIES,
    ConfigError,
    EnvironmentRestrictedError,
    PolicyConfiguration,
    PolicyName,
)
from adoption.app.config import Settings


def test_defaults_enforce_everything_except_audit_and_bypass() -> None:
    """Test default switches."""
    policies = PolicyConfiguration()

    for policy in PolicyName:
        assert policies.is_enabled(policy) == DEFAULT_POLICIES[policy]

    assert not policies.is_enabled(PolicyName.enable_audit_logging)
    assert not policies.is_enabled(PolicyName.bypass_all)
    assert policies.is_enabled(PolicyName.require_admin)


def test_overrides_replace_defaults() -> None:
    """Test overrides only touch the named switches."""
    policies = PolicyConfiguration(overrides={PolicyName.require_self: False})

    assert not policies.is_enabled(PolicyName.require_self)
    assert policies.is_enabled(PolicyName.require_own_org)


def test_set_bypass_in_development() -> None:
    """Test bypass can be toggled outside production."""
    policies = PolicyConfiguration(environment="development")

    policies.set_bypass(True)
    assert policies.is_enabled(PolicyName.bypass_all)

    policies.set_bypass(False)
    assert not policies.is_enabled(PolicyName.bypass_all)


def test_set_bypass_rejected_in_production() -> None:
    """Test enabling bypass in production raises and leaves it off."""
    policies = PolicyConfiguration(environment="production")

    with pytest.raises(EnvironmentRestrictedError) as exc_info:
        policies.set_bypass(True)

    assert "Cannot disable access control in production environment" in str(exc_info.value)
    assert isinstance(exc_info.value, ConfigError)
    assert not policies.is_enabled(PolicyName.bypass_all)


def test_disabling_bypass_allowed_in_production() -> None:
    """Test turning bypass off is always permitted."""
    policies = PolicyConfiguration(environment="production")

    policies.set_bypass(False)

    assert not policies.is_enabled(PolicyName.bypass_all)


def test_construction_with_bypass_rejected_in_production() -> None:
    """Test a production configuration cannot start with bypass on."""
    with pytest.raises(EnvironmentRestrictedError):
        PolicyConfiguration(environment="production", overrides={PolicyName.bypass_all: True})


def test_construction_with_bypass_in_staging() -> None:
    """Test bypass is honoured at construction outside production."""
    policies = PolicyConfiguration(environment="staging", overrides={PolicyName.bypass_all: True})

    assert policies.is_enabled(PolicyName.bypass_all)


def test_from_settings_maps_every_toggle() -> None:
    """Test settings fields feed the matching switches."""
    settings = Settings(
        environment="test",
        authz_require_admin=False,
        authz_require_own_org=False,
        authz_enable_audit_logging=True,
    )

    policies = PolicyConfiguration.from_settings(settings)

    assert policies.environment == "test"
    assert not policies.is_enabled(PolicyName.require_admin)
    assert not policies.is_enabled(PolicyName.require_own_org)
    assert policies.is_enabled(PolicyName.enable_audit_logging)
    assert policies.is_enabled(PolicyName.require_self)


def test_from_settings_production_bypass_rejected() -> None:
    """Test production settings with bypass fail at startup."""
    settings = Settings(environment="production", authz_bypass_all=True)

    with pytest.raises(EnvironmentRestrictedError):
        PolicyConfiguration.from_settings(settings)


def test_enabled_policies_and_snapshot() -> None:
    """Test listing helpers reflect current switches."""
    policies = PolicyConfiguration(overrides={PolicyName.require_admin: False})

    enabled = policies.enabled_policies()
    snapshot = policies.snapshot()

    assert "require_admin" not in enabled
    assert "require_self" in enabled
    assert snapshot["require_admin"] is False
    assert snapshot["bypass_all"] is False
    assert set(snapshot) == {policy.value for policy in PolicyName}

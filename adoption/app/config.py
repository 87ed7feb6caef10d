"""Typed settings configuration - single source of truth."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "test", "staging", "production"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: Environment = "development"
    log_level: str = "INFO"

    # Database (unset -> in-memory stores)
    database_url: str | None = None
    create_schema_on_startup: bool = False
    store_timeout_seconds: float = 5.0

    # Cache / poll lease
    redis_url: str | None = None

    # Access control toggles, fixed at process start
    authz_require_admin: bool = True
    authz_require_authenticated: bool = True
    authz_require_org_role: bool = True
    authz_require_self: bool = True
    authz_require_own_org: bool = True
    authz_strict_role_validation: bool = True
    authz_enforce_resource_ownership: bool = True
    authz_enable_audit_logging: bool = False
    authz_bypass_all: bool = False

    # Deferred task scheduler
    scheduler_enabled: bool = True
    scheduler_poll_interval_seconds: float = 60.0
    scheduler_task_timeout_seconds: float = 30.0
    scheduler_lease_ttl_seconds: int = 300
    promotion_delay_minutes: int = 10

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

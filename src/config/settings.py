"""Authorization engine settings using Pydantic Settings.

Every value can be overridden from the environment with the RBAC_ prefix,
e.g. RBAC_ELEVATED_ACCESS_DEFAULT_TTL_SECONDS=120.

Elevated-access TTLs are validated here so an out-of-range value fails at
startup, never while a request is being checked.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

MIN_TTL_SECONDS = 1
MAX_TTL_SECONDS = 3600


class RbacSettings(BaseSettings):
    """RBAC engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RBAC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", description="Deployment environment")
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: Optional[bool] = Field(
        default=None, description="Emit JSON log lines; defaults to on in production"
    )

    # Elevated access
    elevated_access_default_ttl_seconds: int = Field(
        default=300, description="Freshness window for elevated operations (5 minutes)"
    )
    elevated_access_max_ttl_seconds: int = Field(
        default=MAX_TTL_SECONDS, description="Sessions older than this are swept"
    )
    session_sweep_interval: int = Field(
        default=100, ge=1, description="Session store sweeps once every N writes"
    )

    # Audit
    audit_enabled: bool = Field(default=True, description="Write authorization events to the audit log")

    @field_validator("elevated_access_default_ttl_seconds", "elevated_access_max_ttl_seconds")
    @classmethod
    def validate_ttl_range(cls, v: int) -> int:
        """Elevated access windows must lie between 1 second and 1 hour."""
        if not MIN_TTL_SECONDS <= v <= MAX_TTL_SECONDS:
            raise ValueError(
                f"Elevated access TTL must be between {MIN_TTL_SECONDS} and "
                f"{MAX_TTL_SECONDS} seconds, got {v}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_ttl_ceiling(self) -> "RbacSettings":
        if self.elevated_access_max_ttl_seconds < self.elevated_access_default_ttl_seconds:
            raise ValueError("elevated_access_max_ttl_seconds must not be below the default TTL")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod", "staging")

    @property
    def json_logs(self) -> bool:
        """Explicit log_json wins; otherwise JSON in production, readable elsewhere."""
        if self.log_json is not None:
            return self.log_json
        return self.is_production


@lru_cache
def get_settings() -> RbacSettings:
    """
    Get cached settings instance.

    Returns:
        RbacSettings: Cached settings loaded from environment.
    """
    return RbacSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()

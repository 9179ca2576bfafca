"""
Shared configuration management for the tenant access service.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    profile_store: Literal["postgres", "memory"] = Field(default="postgres")
    postgres_dsn: str = Field(default="postgres://localhost:5432/access")
    redis_url: str = Field(default="redis://localhost:6379/0")
    enable_redis_mirror: bool = Field(default=True)
    profile_change_channel: str = Field(default="profile_changes")

    # Entitlements
    privileged_email: str = Field(default="castro.massimo@yahoo.com")
    timezone: str = Field(default="Europe/Rome")
    missing_end_date_policy: Literal["deny", "unlimited"] = Field(default="deny")
    expiring_soon_days: int = Field(default=5, ge=0)

    # Session flow
    profile_fetch_timeout_seconds: float = Field(default=5.0, gt=0)
    reevaluation_interval_seconds: float = Field(default=60.0, gt=0)

    # Global config cache
    global_config_ttl_seconds: int = Field(default=300, ge=0)
    global_config_fetch_timeout_seconds: float = Field(default=3.0, gt=0)
    global_config_mirror_ttl_seconds: int = Field(default=86400, gt=0)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)

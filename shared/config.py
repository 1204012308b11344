"""
Shared configuration management for 254Carbon Access Layer.
"""

from typing import Any, Dict

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

    # Internal services
    privileges_service_url: str = Field(default="http://localhost:8013")

    # Observability
    enable_metrics_server: bool = Field(default=False)
    metrics_port: int = Field(default=9090)

    # Privilege migrations
    privileges_default_flags: Dict[str, Any] = Field(default_factory=dict)
    privileges_remove_on_migrate_down: bool = Field(default=False)
    privileges_strict: bool = Field(default=False)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)

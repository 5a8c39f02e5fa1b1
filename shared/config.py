"""
Shared configuration management for the relay proxy.
"""

from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROXY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Listener
    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("port", "PORT", "PROXY_PORT"))

    # Response cache
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 100

    # Upstream calls
    upstream_timeout_seconds: float = 30.0
    follow_redirects: bool = True
    max_request_body_bytes: int = 10 * 1024 * 1024

    # CORS
    cors_allow_origins: List[str] = ["*"]

    # Observability
    enable_tracing: bool = False
    otel_exporter: str = "http://localhost:4317"
    enable_console_tracing: bool = False


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str

    def __init__(self, service_name: str, **kwargs):
        super().__init__(service_name=service_name, **kwargs)


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)

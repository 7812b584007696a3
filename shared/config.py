"""
Shared configuration management for the SonarQube exporter.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EXPORTER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Upstream SonarQube
    sonarqube_url: str = Field(default="http://localhost:9000")
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)

    # Scrape pipeline
    scrape_timeout_seconds: float = Field(default=60.0, gt=0)
    project_page_size: int = Field(default=500, ge=1, le=500)
    fetch_concurrency: int = Field(default=5, ge=1)

    # Enablement source; environment variables are used when unset
    export_config_file: Optional[str] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "exporter"
    port: int = 9504
    host: str = "0.0.0.0"


def get_config(service_name: str, port: Optional[int] = None, **overrides) -> ServiceConfig:
    """Get configuration for a specific service.

    Explicit keyword overrides win over environment variables; EXPORTER_PORT
    applies only when no port is passed.
    """
    if port is not None:
        overrides["port"] = port
    return ServiceConfig(service_name=service_name, **overrides)

"""
Shared configuration management for the credential proxy.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROXY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Credential store
    redis_url: str = Field(default="redis://localhost:6379/0")
    credential_key: str = Field(default="proxy:access_token")

    # Token issuer. The three secrets are optional here: a missing value
    # surfaces as an issuer failure on the first credentialed request.
    token_url: str = Field(default="https://zoom.us/oauth/token")
    account_id: Optional[str] = Field(default=None)
    client_id: Optional[str] = Field(default=None)
    client_secret: Optional[str] = Field(default=None)
    token_timeout_seconds: float = Field(default=10.0)

    # Upstream API
    upstream_base_url: str = Field(default="https://api.zoom.us/v2")
    upstream_timeout_seconds: float = Field(default=30.0)


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

"""
Shared configuration management for the course access edge.
"""

from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="COURSEGATE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Shared cache
    cache_backend: str = Field(default="memory", pattern="^(memory|redis)$")
    redis_url: str = Field(default="redis://localhost:6379/0")


class GatewayConfig(BaseConfig):
    """Edge gateway configuration, injected once at process start."""

    service_name: str = "edge"
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS / origin allow-list
    allowed_origin: str = Field(default="")

    # Signing
    cookie_secret: SecretStr
    session_lifetime_seconds: int = Field(default=30 * 24 * 60 * 60, gt=0)

    # Remote authority
    authority_url: str
    authority_api_key: SecretStr
    authority_timeout_seconds: float = Field(default=8.0, gt=0)

    # Human contact channel surfaced on upstream failures
    contact_number: str = Field(default="")

    # Pass-through origin
    origin_url: Optional[str] = Field(default=None)

    # Request handling
    ratings_cache_ttl: int = Field(default=300, gt=0)
    max_body_size: int = Field(default=1024, gt=0)

    @property
    def contact_url(self) -> Optional[str]:
        """Link for the human-contact affordance, if a channel is configured."""
        if not self.contact_number:
            return None
        return f"https://wa.me/{self.contact_number}"


def get_config(**overrides) -> GatewayConfig:
    """Load gateway configuration from the environment."""
    return GatewayConfig(**overrides)

"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from stampduty_sdk import InvalidSecretError
from stampduty_sdk.webhook import DEFAULT_TOLERANCE_SECONDS, decode_secret


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    # Webhook secrets
    webhook_secret: Optional[str] = None  # Secret for the default /v1/webhooks endpoint
    webhook_workspace_secrets: dict[str, str] = {}  # {"workspace_id": "whsec_..."}

    # Verification
    webhook_tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS
    webhook_handler_timeout_seconds: int = 10  # Sender treats slower responses as failures

    # Delivery de-duplication
    redis_url: Optional[str] = None
    delivery_id_ttl_seconds: int = 86400
    delivery_processing_ttl_seconds: int = 60  # Lease on an in-flight delivery if the worker dies

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development or test."""
        return self.environment.lower() in ("development", "test", "dev")

    @property
    def has_secrets(self) -> bool:
        """Check whether any webhook secret is configured."""
        return bool(self.webhook_secret or self.webhook_workspace_secrets)

    def validate_production_settings(self):
        """Validate settings, strictly outside development."""
        if self.webhook_tolerance_seconds < 0:
            raise ValueError("WEBHOOK_TOLERANCE_SECONDS must not be negative")
        if self.delivery_processing_ttl_seconds <= 0:
            raise ValueError("DELIVERY_PROCESSING_TTL_SECONDS must be positive")

        configured = dict(self.webhook_workspace_secrets)
        if self.webhook_secret:
            configured["<default>"] = self.webhook_secret
        for workspace_id, secret in configured.items():
            try:
                decode_secret(secret)
            except InvalidSecretError as e:
                raise ValueError(f"Webhook secret for workspace {workspace_id} is invalid: {e}") from e

        if self.is_development:
            return
        if not self.has_secrets:
            raise ValueError(
                "WEBHOOK_SECRET or WEBHOOK_WORKSPACE_SECRETS is required outside development."
            )
        if not self.redis_url:
            raise ValueError(
                "REDIS_URL is required outside development so retried deliveries "
                "are de-duplicated across workers."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

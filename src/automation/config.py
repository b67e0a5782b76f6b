"""Automation service configuration using pydantic-settings.

This module defines the AutomationSettings class that reads configuration
from environment variables. Only the webhook secret matters for webhook
processing; everything else has a working default so the service can run
locally without a database.

Environment variables are prefixed with AUTOMATION_ (e.g. AUTOMATION_PORT).
The webhook secret is also read from the conventional GITHUB_WEBHOOK_SECRET
variable.
"""

import logging
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AutomationSettings(BaseSettings):
    """GitHub automation configuration from environment variables.

    Optional fields:
    - github_webhook_secret: Shared secret for webhook signatures. When empty
      every delivery is rejected and /status reports disconnected.
    - database_url: PostgreSQL connection string. When unset, an in-memory
      task store is used.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_",
        case_sensitive=False,
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # GitHub Webhook Configuration
    # -------------------------------------------------------------------------
    # Shared secret configured on the GitHub webhook
    github_webhook_secret: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GITHUB_WEBHOOK_SECRET",
            "AUTOMATION_GITHUB_WEBHOOK_SECRET",
        ),
    )

    # Mount point of the webhook router; /webhook and /status live under it
    webhook_route_prefix: str = "/api/github"

    # How long a delivery id is remembered for duplicate detection
    delivery_retention_seconds: int = 600

    # -------------------------------------------------------------------------
    # Database Configuration
    # -------------------------------------------------------------------------
    database_url: Optional[str] = None

    db_min_pool_size: int = 2

    db_max_pool_size: int = 10

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 8080

    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("webhook_route_prefix")
    @classmethod
    def validate_route_prefix(cls, v: str) -> str:
        """Validate that the route prefix is empty or an absolute path."""
        if v and not v.startswith("/"):
            raise ValueError("webhook_route_prefix must start with /")
        if v.endswith("/"):
            raise ValueError("webhook_route_prefix must not end with /")
        return v

    @field_validator("delivery_retention_seconds")
    @classmethod
    def validate_retention(cls, v: int) -> int:
        """Validate that the retention window is positive."""
        if v < 1:
            raise ValueError("delivery_retention_seconds must be at least 1")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate the database URL format when one is given."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "database_url must start with postgresql:// or postgres://"
            )
        return v

    @field_validator("db_min_pool_size", "db_max_pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("pool sizes must be at least 1")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that the log level is a standard logging level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"log_level must be a logging level name, got {v}")
        return level

    @property
    def webhook_configured(self) -> bool:
        """Whether a webhook secret is set."""
        return bool(self.github_webhook_secret)

    @property
    def webhook_path(self) -> str:
        """Full path of the webhook endpoint, e.g. /api/github/webhook."""
        return f"{self.webhook_route_prefix}/webhook"


def get_settings() -> AutomationSettings:
    """Create and return AutomationSettings instance.

    Returns:
        AutomationSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If a field is invalid.
    """
    return AutomationSettings()

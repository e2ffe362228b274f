"""Configuration management using pydantic-settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List
import structlog


DEFAULT_ALLOWED_API_HOSTS = [
    "www.puckator-dropship.co.uk",
    "puckator-dropship.co.uk",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Operator-editable values (credentials, fees, shipping table) are not
    here: they live in FeedSettings and are persisted by SettingsStore.
    """

    # Redis Configuration
    redis_url: str = "redis://localhost:6379/0"

    # Worker Configuration
    queue_name: str = "dropship-sync-queue"
    job_timeout: int = Field(
        default=1800,
        ge=60,
        le=7200,
        description="Maximum runtime of a single sync job (seconds)"
    )
    log_level: str = "INFO"
    environment: str = "development"

    # Installation identity (namespaces the sync lock)
    installation_id: str = Field(
        default="default",
        min_length=1,
        max_length=255,
        description="Stable identifier of this installation, e.g. the shop URL"
    )

    # Supplier API
    allowed_api_hosts: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_API_HOSTS),
        description="Hosts the token and feed requests may be sent to"
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout for token and feed requests"
    )

    # Secrets
    settings_encryption_key: str = Field(
        default="",
        description="Secret used to encrypt the supplier password at rest (blank disables encryption)"
    )

    # Daily sync schedule (local wall-clock time)
    sync_hour: int = Field(default=6, ge=0, le=23)
    sync_minute: int = Field(default=0, ge=0, le=59)
    sync_timezone: str = Field(
        default="Europe/London",
        description="IANA timezone the daily sync time is expressed in"
    )

    # Catalog collaborator
    catalog_factory: str = Field(
        default="dropship_sync.db.catalog:InMemoryCatalog",
        description="Dotted 'module:callable' returning the Catalog implementation"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging(settings.log_level)

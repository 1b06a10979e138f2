"""Configuration settings for canvas-fetch."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerConfig(BaseModel):
    """Configuration for the request scheduler.

    Controls the two admission constraints shared by every request:
    concurrency and spacing between request starts.
    """

    max_concurrent: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum simultaneous in-flight API requests",
    )
    min_spacing_ms: int = Field(
        default=200,
        ge=0,
        description="Minimum milliseconds between successive request starts",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout for a single exchange",
    )


class RetryConfig(BaseModel):
    """Configuration for rate-limit retries and backoff.

    The backoff constants feed the delay formula in
    ``canvas_fetch.api.pacing.backoff``.
    """

    max_retries: int = Field(
        default=5,
        ge=0,
        description="Maximum rate-limit retries per URL within one operation",
    )
    rate_limit_marker: str = Field(
        default="Rate Limit Exceeded",
        min_length=1,
        description="Case-sensitive body marker identifying a rate-limit 403",
    )
    overdraft_backoff_ms: int = Field(
        default=150,
        ge=0,
        description="Milliseconds of backoff per unit of negative remaining budget",
    )
    budget_numerator: float = Field(
        default=300.0,
        gt=0,
        description="Budget numerator in the remaining/cost delay formula",
    )
    budget_scale_ms: float = Field(
        default=500.0,
        ge=0,
        description="Millisecond scale in the remaining/cost delay formula",
    )
    default_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Delay used when rate limit headers are missing",
    )


class PaginationConfig(BaseModel):
    """Configuration for paginated list fetching."""

    per_page: int = Field(
        default=100,
        ge=1,
        description="Items requested per page",
    )
    max_batch: int = Field(
        default=40,
        ge=1,
        le=1000,
        description="Maximum page requests dispatched together",
    )
    batch_delay_ms: int = Field(
        default=300,
        ge=0,
        description="Idle milliseconds between batches of a single-endpoint fetch",
    )
    multi_key_batch_delay_ms: int = Field(
        default=500,
        ge=0,
        description="Idle milliseconds between batches of a multi-key fetch",
    )
    speculative_step: int = Field(
        default=10,
        ge=1,
        description="Pages added to the estimate when more pages are suspected",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # Canvas API
    # --------------------------------------------------------------------------
    canvas_access_token: str = Field(
        default="",
        description="Bearer token attached to every request",
    )
    canvas_domain: str = Field(
        default="",
        description="API origin, e.g. https://school.instructure.com",
    )

    # --------------------------------------------------------------------------
    # Application
    # --------------------------------------------------------------------------
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # --------------------------------------------------------------------------
    # Scheduling, Retries & Pagination
    # --------------------------------------------------------------------------
    scheduler: SchedulerConfig = Field(
        default_factory=SchedulerConfig,
        description="Request scheduler configuration",
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Rate-limit retry configuration",
    )
    pagination: PaginationConfig = Field(
        default_factory=PaginationConfig,
        description="Pagination configuration",
    )

    # --------------------------------------------------------------------------
    # Logging Configuration
    # --------------------------------------------------------------------------
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration (file output, rotation)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Pydantic Settings configuration models.

3-tier config hierarchy (lowest to highest priority):
1. Pydantic defaults (in code below)
2. .env file (loaded by Pydantic Settings)
3. Environment variables (e.g., SWAP_QUEUE__ATTEMPTS=5)
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
VALID_LOG_FORMATS = frozenset({"console", "json"})
VALID_BACKOFF_TYPES = frozenset({"exponential", "fixed"})


class QueueConfig(BaseModel):
    """Durable job queue policy: retries, backoff and worker bounds."""

    name: str = "order-execution-queue"
    attempts: int = Field(default=3, ge=1, le=20)
    backoff_type: str = "exponential"
    backoff_delay_ms: int = Field(default=1000, ge=0)
    remove_on_complete: bool = True
    concurrency: int = Field(default=10, ge=1, le=100)
    limiter_max: int = Field(default=100, ge=1)
    limiter_duration_ms: int = Field(default=60000, ge=1)
    lock_duration_ms: int = Field(default=30000, ge=1000)
    poll_interval_ms: int = Field(default=200, ge=10)

    @field_validator("backoff_type")
    @classmethod
    def validate_backoff_type(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_BACKOFF_TYPES:
            raise ValueError(
                f"backoff_type must be one of {sorted(VALID_BACKOFF_TYPES)}, got {v}"
            )
        return v


class PipelineConfig(BaseModel):
    """Order pipeline behaviour.

    Timeouts default to None (no timeout). Setting them bounds a hung
    venue call; a timeout is treated as a venue fault.
    """

    venues: list[str] = Field(default=["Raydium", "Meteora"])
    intermediate_stages: bool = False
    require_all_quotes: bool = True
    quote_timeout_s: float | None = Field(default=None, gt=0)
    execute_timeout_s: float | None = Field(default=None, gt=0)

    @field_validator("venues")
    @classmethod
    def validate_venues(cls, v: list[str]) -> list[str]:
        if len(v) == 0:
            raise ValueError("At least one venue must be configured")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate venue in {v}")
        for venue in v:
            if not venue.strip():
                raise ValueError("Venue names must not be blank")
        return v


class NotifierConfig(BaseModel):
    """WebSocket status server configuration."""

    host: str = "127.0.0.1"
    port: int = 3000


class MockVenueConfig(BaseModel):
    """Simulated venue latencies and failure injection."""

    quote_delay_ms: int = Field(default=200, ge=0)
    execute_min_ms: int = Field(default=2000, ge=0)
    execute_max_ms: int = Field(default=3000, ge=0)
    failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Env var examples:
        SWAP_LOG_LEVEL=DEBUG
        SWAP_QUEUE__ATTEMPTS=5
        SWAP_PIPELINE__VENUES='["Raydium","Meteora","Orca"]'
        SWAP_PIPELINE__EXECUTE_TIMEOUT_S=10
    """

    model_config = SettingsConfigDict(
        env_prefix="SWAP_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    db_path: str = "data/orders.db"
    queue: QueueConfig = QueueConfig()
    pipeline: PipelineConfig = PipelineConfig()
    notifier: NotifierConfig = NotifierConfig()
    mock_venue: MockVenueConfig = MockVenueConfig()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v}"
            )
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {sorted(VALID_LOG_FORMATS)}, got {v}"
            )
        return v

    @property
    def database_url(self) -> str:
        """Async SQLAlchemy URL for the configured SQLite file."""
        return f"sqlite+aiosqlite:///{self.db_path}"

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application-wide settings populated from environment variables and .env file.

    Durations are in seconds.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ECOTEL_",
        extra="ignore",
    )

    # -- Snapshot server --
    host: str = "127.0.0.1"
    port: int = Field(default=5000, ge=0, le=65535)

    # -- Bus / ingest --
    bus_url: str | None = None
    signals: str = "any"
    stale_threshold: float = Field(default=1.0, gt=0)
    disconnect_threshold: float = Field(default=2.0, gt=0)
    rate_window: float = Field(default=5.0, gt=0)
    prune_after: float = Field(default=120.0, gt=1)
    """Evict a signal after this many stale thresholds without an update."""
    prune_interval: float = Field(default=30.0, gt=0)

    # -- Poller --
    poll_url: str = "http://127.0.0.1:5000"
    poll_interval: float = Field(default=0.1, gt=0)
    poll_timeout: float = Field(default=0.5, gt=0)
    poll_backoff_max: float = Field(default=1.0, gt=0)
    poll_max_retries: int = Field(default=5, ge=1)

    @property
    def prune_max_age(self) -> float:
        return self.stale_threshold * self.prune_after

"""
Pipeline tuning configuration.
Uses the LS_SYNC_ prefix; credentials and infrastructure live in shared.config.
"""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.models.enums import LIVE_MATCH_STATUSES


class SyncSettings(BaseSettings):
    """Scheduler, rate-limit and telemetry settings for the sync pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="LS_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Concurrency
    concurrent_limit: int = Field(default=5, description="Default tournaments processed per batch")
    min_concurrent_limit: int = Field(default=1, description="Lower clamp for the adaptive ceiling")
    max_concurrent_limit: int = Field(default=8, description="Upper clamp for the adaptive ceiling")
    batch_pause_s: float = Field(default=1.0, description="Pause between tournament batches")

    # Per-tournament upstream budget
    api_rate_limit: int = Field(default=10, description="Upstream calls per tournament per window")
    rate_window_s: float = Field(default=60.0, description="Sliding window for the call budget")

    # Rolling metrics
    metrics_window_s: float = Field(default=300.0, description="Trailing window for performance metrics")

    # Adaptive sizing
    slow_latency_ms: float = Field(default=3000.0, description="Shrink ceiling above this average latency")
    fast_latency_ms: float = Field(default=1000.0, description="Grow ceiling below this average latency")
    low_success_rate: float = Field(default=0.85, description="Shrink ceiling below this success rate")
    high_success_rate: float = Field(default=0.95, description="Grow ceiling above this success rate")
    latency_shrink_factor: float = Field(default=0.7)
    error_shrink_factor: float = Field(default=0.8)

    # Bottleneck diagnosis
    bottleneck_latency_ms: float = Field(default=5000.0)
    bottleneck_success_rate: float = Field(default=0.9)
    bottleneck_operation_ms: float = Field(default=30000.0)
    bottleneck_rate_ratio: float = Field(default=0.9)

    # Store
    live_statuses: list[str] = Field(default_factory=lambda: list(LIVE_MATCH_STATUSES))
    function_type: str = Field(default="live_score_sync", description="sync_performance_logs.function_type")
    sync_status_entity: str = Field(default="matches_live", description="sync_status.entity_type")


def get_sync_settings() -> SyncSettings:
    """Load pipeline settings."""
    return SyncSettings()

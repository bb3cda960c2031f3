"""
Best-effort bookkeeping written after each pass.

Neither write may fail the pass: errors are logged, counted and kept on
``last_error`` for inspection, and the methods return False.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from shared.models.domain import ResourceUsage, SyncResult
from shared.utils.logging import get_logger
from shared.utils.metrics import TELEMETRY_FAILURES

from livesync.config import SyncSettings, get_sync_settings

if TYPE_CHECKING:
    from livesync.store import LiveScoreStore

logger = get_logger(__name__)


class PerformanceTelemetry:
    def __init__(self, store: "LiveScoreStore", settings: SyncSettings | None = None) -> None:
        self._store = store
        self._settings = settings or get_sync_settings()
        self.last_error: Optional[Exception] = None

    def _failed(self, target: str, exc: Exception) -> bool:
        self.last_error = exc
        TELEMETRY_FAILURES.labels(target=target).inc()
        logger.warning("telemetry_write_failed", target=target, error=str(exc))
        return False

    async def log_performance_metrics(self, usage: ResourceUsage) -> bool:
        """Insert one sync_performance_logs row."""
        try:
            await self._store.insert_performance_log(usage, self._settings.function_type)
        except Exception as exc:
            return self._failed("performance_log", exc)
        logger.debug(
            "performance_logged",
            concurrent_tournaments=usage.concurrent_tournaments,
            total_matches=usage.total_matches,
            api_calls_per_minute=usage.api_calls_per_minute,
        )
        return True

    async def update_sync_status(self, result: SyncResult) -> bool:
        """Upsert the sync_status row for live matches."""
        try:
            await self._store.upsert_sync_status(result)
        except Exception as exc:
            return self._failed("sync_status", exc)
        return True

"""
Per-invocation composition of the live score sync.

A LiveSyncPipeline lives as long as the warm process and keeps one
PriorityScheduler, so rate-limit windows and rolling metrics carry over
between invocations. Store and upstream connections are opened and closed
on every run.
"""
from __future__ import annotations

import time
from contextlib import AbstractAsyncContextManager
from typing import Callable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import SyncResult
from shared.utils.logging import get_logger
from shared.utils.metrics import SYNC_PASS_DURATION, SYNC_PASSES

from livesync.config import SyncSettings, get_sync_settings
from livesync.errors import ErrorClassifier
from livesync.gate import ScheduleGate
from livesync.orchestrator import LiveScoreSync
from livesync.priority import PriorityScheduler
from livesync.sources.base import ScoreSource
from livesync.sources.vis import open_vis_source
from livesync.store import LiveScoreStore, open_store
from livesync.telemetry import PerformanceTelemetry

logger = get_logger(__name__)

StoreOpener = Callable[[Settings, SyncSettings], AbstractAsyncContextManager[LiveScoreStore]]
SourceOpener = Callable[[Settings], AbstractAsyncContextManager[ScoreSource]]


class LiveSyncPipeline:
    def __init__(
        self,
        settings: Settings | None = None,
        sync_settings: SyncSettings | None = None,
        scheduler: PriorityScheduler | None = None,
        classifier: ErrorClassifier | None = None,
        store_opener: StoreOpener = open_store,
        source_opener: SourceOpener = open_vis_source,
    ) -> None:
        self._settings = settings or get_settings()
        self._sync_settings = sync_settings or get_sync_settings()
        self.scheduler = scheduler or PriorityScheduler(self._sync_settings)
        self.classifier = classifier or ErrorClassifier()
        self._store_opener = store_opener
        self._source_opener = source_opener

    async def run(self) -> Optional[SyncResult]:
        """
        Run one invocation.

        Returns:
            The pass result, or None when the schedule gate paused the sync.

        Raises:
            ConfigurationError: Store URL or upstream app id missing.
            StoreUnavailableError: Store unreachable or running tournaments could not be listed.
        """
        self._settings.require_credentials()
        started = time.perf_counter()
        outcome = "failed"
        try:
            async with self._store_opener(self._settings, self._sync_settings) as store:
                gate = ScheduleGate(store)
                if not await gate.is_active_tournament_hour():
                    outcome = "paused"
                    logger.info("live_sync_paused")
                    return None

                async with self._source_opener(self._settings) as source:
                    sync = LiveScoreSync(
                        store=store,
                        source=source,
                        scheduler=self.scheduler,
                        classifier=self.classifier,
                        settings=self._sync_settings,
                        telemetry=PerformanceTelemetry(store, self._sync_settings),
                    )
                    result = await sync.execute_live_score_sync()
                    outcome = "partial" if result.errors else "success"
                    return result
        finally:
            SYNC_PASSES.labels(outcome=outcome).inc()
            SYNC_PASS_DURATION.observe(time.perf_counter() - started)

"""
Tournament prioritization, per-tournament rate limiting and adaptive
concurrency for the live score sync.

One PriorityScheduler is owned by the warm process and handed to every pass,
so its rolling windows span consecutive invocations. All methods are
synchronous: appends and prunes complete without yielding to the event loop.
"""
from __future__ import annotations

import itertools
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from shared.models.domain import (
    BottleneckIssue,
    BottleneckReport,
    PerformanceSnapshot,
    ResourceUsage,
    Tournament,
    TournamentPriority,
)
from shared.models.enums import BottleneckFlag, TournamentTier
from shared.utils.logging import get_logger
from shared.utils.metrics import SYNC_BATCH_SIZE

from livesync.config import SyncSettings, get_sync_settings

logger = get_logger(__name__)

# ── Classification ──────────────────────────────────────────────────────
TIER_PRIORITY: dict[TournamentTier, int] = {
    TournamentTier.FIVB: 100,
    TournamentTier.CEV: 85,
    TournamentTier.BPT: 75,
    TournamentTier.LOCAL: 65,
}

# Evaluated in order; the first tier with a matching keyword wins.
TIER_KEYWORDS: tuple[tuple[TournamentTier, tuple[str, ...]], ...] = (
    (TournamentTier.FIVB, ("fivb", "world tour", "world championship")),
    (TournamentTier.CEV, ("cev", "european")),
    (TournamentTier.BPT, ("bpt", "beach pro tour", "elite16", "elite 16")),
)

# Upstream response-time samples kept regardless of the time window.
MAX_API_SAMPLES = 100


def classify_tournament(name: Optional[str], code: Optional[str] = None) -> TournamentTier:
    """Classify a tournament by keyword match on its name and code."""
    haystack = f"{name or ''} {code or ''}".lower()
    for tier, keywords in TIER_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return tier
    return TournamentTier.LOCAL


# ── Rolling records ─────────────────────────────────────────────────────
@dataclass
class OperationRecord:
    """Duration and outcome of one tournament operation."""
    operation_id: str
    name: str
    started_at: float
    ended_at: float = 0.0
    success: bool = False

    @property
    def completed(self) -> bool:
        return self.ended_at > 0.0

    @property
    def duration_ms(self) -> float:
        return (self.ended_at - self.started_at) * 1000 if self.completed else 0.0


@dataclass
class ApiSample:
    recorded_at: float
    latency_ms: float


class PriorityScheduler:
    """
    Ranks tournaments, enforces the per-tournament call budget and sizes
    tournament concurrency from the trailing metrics window.

    The batch size formula:

        size = default_ceiling
        if avg_latency > slow_latency:                 size = floor(size * 0.7)
        if success_rate < low_success_rate:            size = floor(size * 0.8)
        if avg_latency < fast_latency and success_rate > high_success_rate:
                                                       size = size + 1
        size = clamp(size, min_ceiling, max_ceiling)

    It is recomputed from the configured default every pass, never from the
    previous pass's result.
    """

    def __init__(
        self,
        settings: SyncSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_sync_settings()
        self._clock = clock
        self._api_calls: dict[str, deque[float]] = {}
        self._operations: list[OperationRecord] = []
        self._api_samples: deque[ApiSample] = deque(maxlen=MAX_API_SAMPLES)
        self._op_counter = itertools.count(1)

    @property
    def settings(self) -> SyncSettings:
        return self._settings

    # ── Ranking ─────────────────────────────────────────────────────────
    def prioritize_tournaments(self, tournaments: Iterable[Tournament]) -> list[TournamentPriority]:
        """Return tournaments ranked by tier priority, ties in discovery order."""
        ranked = []
        for tournament in tournaments:
            tier = classify_tournament(tournament.name, tournament.code)
            ranked.append(
                TournamentPriority(tournament=tournament, priority=TIER_PRIORITY[tier], tier=tier)
            )
        # sorted() is stable, so equal priorities keep their input order
        ranked = sorted(ranked, key=lambda p: p.priority, reverse=True)
        logger.debug(
            "tournaments_prioritized",
            order=[(p.tournament.no, p.tier.value) for p in ranked],
        )
        return ranked

    # ── Rate limiting ───────────────────────────────────────────────────
    def _prune_calls(self, tournament_no: str, now: float) -> deque[float]:
        calls = self._api_calls.setdefault(tournament_no, deque())
        cutoff = now - self._settings.rate_window_s
        while calls and calls[0] <= cutoff:
            calls.popleft()
        return calls

    def can_process_tournament(self, tournament_no: str) -> bool:
        """True while the tournament has calls left in the current window."""
        calls = self._prune_calls(tournament_no, self._clock())
        allowed = len(calls) < self._settings.api_rate_limit
        if not allowed:
            logger.info(
                "tournament_rate_limited",
                tournament_no=tournament_no,
                calls=len(calls),
                budget=self._settings.api_rate_limit,
            )
        return allowed

    def record_api_call(self, tournament_no: str) -> None:
        """Record one upstream call against the tournament's budget."""
        now = self._clock()
        self._prune_calls(tournament_no, now).append(now)

    def try_acquire_call(self, tournament_no: str) -> bool:
        """Check the budget and record the call in one step."""
        if not self.can_process_tournament(tournament_no):
            return False
        self.record_api_call(tournament_no)
        return True

    def calls_in_window(self, tournament_no: str) -> int:
        return len(self._prune_calls(tournament_no, self._clock()))

    # ── Operation tracking ──────────────────────────────────────────────
    def start_operation(self, name: str) -> str:
        """Begin timing an operation and return its id."""
        operation_id = f"{name}_{next(self._op_counter)}"
        self._operations.append(
            OperationRecord(operation_id=operation_id, name=name, started_at=self._clock())
        )
        return operation_id

    def end_operation(self, operation_id: str, success: bool = True) -> None:
        for record in reversed(self._operations):
            if record.operation_id == operation_id:
                record.ended_at = self._clock()
                record.success = success
                return
        logger.debug("operation_not_found", operation_id=operation_id)

    def record_api_response_time(self, latency_ms: float) -> None:
        self._api_samples.append(ApiSample(recorded_at=self._clock(), latency_ms=latency_ms))

    # ── Derived metrics ─────────────────────────────────────────────────
    def get_performance_metrics(self) -> PerformanceSnapshot:
        """Aggregate the trailing metrics window."""
        now = self._clock()
        window = self._settings.metrics_window_s
        recent = [op for op in self._operations if now - op.started_at < window]
        completed = [op for op in recent if op.completed]
        samples = [s.latency_ms for s in self._api_samples if now - s.recorded_at < window]

        return PerformanceSnapshot(
            average_operation_time_ms=(
                sum(op.duration_ms for op in completed) / len(completed) if completed else 0.0
            ),
            success_rate=(
                sum(1 for op in completed if op.success) / len(completed) if completed else 1.0
            ),
            average_api_response_time_ms=sum(samples) / len(samples) if samples else 0.0,
            total_operations=len(self._operations),
            api_samples=len(samples),
        )

    def get_optimal_batch_size(self) -> int:
        """Compute this pass's tournament concurrency ceiling."""
        s = self._settings
        metrics = self.get_performance_metrics()
        latency = metrics.average_api_response_time_ms
        success_rate = metrics.success_rate

        size = s.concurrent_limit
        if latency > s.slow_latency_ms:
            size = max(s.min_concurrent_limit, int(size * s.latency_shrink_factor))
        if success_rate < s.low_success_rate:
            size = max(s.min_concurrent_limit, int(size * s.error_shrink_factor))
        if latency < s.fast_latency_ms and success_rate > s.high_success_rate:
            size = min(s.max_concurrent_limit, size + 1)
        size = max(s.min_concurrent_limit, min(s.max_concurrent_limit, size))

        SYNC_BATCH_SIZE.set(size)
        logger.info(
            "batch_size_computed",
            batch_size=size,
            avg_latency_ms=round(latency, 1),
            success_rate=round(success_rate, 3),
        )
        return size

    def detect_bottlenecks(self) -> BottleneckReport:
        """Advisory report of degraded performance; does not change behavior."""
        s = self._settings
        metrics = self.get_performance_metrics()
        issues: list[BottleneckIssue] = []

        if metrics.average_api_response_time_ms > s.bottleneck_latency_ms:
            issues.append(BottleneckIssue(
                flag=BottleneckFlag.HIGH_API_LATENCY,
                message="High API response times detected",
                recommendation="Consider implementing request queuing or reducing concurrent requests",
            ))
        if metrics.success_rate < s.bottleneck_success_rate:
            issues.append(BottleneckIssue(
                flag=BottleneckFlag.LOW_SUCCESS_RATE,
                message="Low success rate detected",
                recommendation="Review upstream errors and error handling for failing tournaments",
            ))
        if metrics.average_operation_time_ms > s.bottleneck_operation_ms:
            issues.append(BottleneckIssue(
                flag=BottleneckFlag.SLOW_OPERATIONS,
                message="Slow operation performance detected",
                recommendation="Optimize batch processing and reduce concurrent tournament limit",
            ))

        busiest = max((self.calls_in_window(no) for no in list(self._api_calls)), default=0)
        if busiest > s.api_rate_limit * s.bottleneck_rate_ratio:
            issues.append(BottleneckIssue(
                flag=BottleneckFlag.APPROACHING_RATE_LIMIT,
                message="Approaching API rate limits",
                recommendation="Implement tournament priority queuing to distribute load",
            ))

        return BottleneckReport(issues=issues)

    def get_resource_usage(self, concurrent_tournaments: int, total_matches: int) -> ResourceUsage:
        """Snapshot written to the performance log after a pass."""
        metrics = self.get_performance_metrics()
        cutoff = self._clock() - 60.0
        calls_last_minute = sum(
            1 for calls in self._api_calls.values() for ts in calls if ts > cutoff
        )
        return ResourceUsage(
            concurrent_tournaments=concurrent_tournaments,
            total_matches=total_matches,
            api_calls_per_minute=calls_last_minute,
            average_response_time=metrics.average_api_response_time_ms,
            error_rate=1.0 - metrics.success_rate,
        )

    # ── Maintenance ─────────────────────────────────────────────────────
    def cleanup(self) -> None:
        """Drop records older than the metrics window."""
        cutoff = self._clock() - self._settings.metrics_window_s
        self._operations = [op for op in self._operations if op.started_at > cutoff]
        for tournament_no in list(self._api_calls):
            calls = self._api_calls[tournament_no]
            while calls and calls[0] <= cutoff:
                calls.popleft()
            if not calls:
                del self._api_calls[tournament_no]
        while self._api_samples and self._api_samples[0].recorded_at <= cutoff:
            self._api_samples.popleft()

"""
Sync orchestrator: runs one live score pass from tournament listing to
SyncResult.

Failure scopes:
  - listing running tournaments fails  -> StoreUnavailableError, pass aborts
  - listing a tournament's matches fails -> that tournament contributes zero
    matches and one error, other tournaments continue
  - one match's fetch/parse/write fails -> one SyncError, siblings continue
"""
from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from shared.models.domain import Match, SyncError, SyncResult, Tournament, TournamentPriority
from shared.utils.logging import get_logger, log_context
from shared.utils.metrics import (
    ACTIVE_TOURNAMENTS,
    MATCH_ERRORS,
    MATCHES_UPDATED,
    RATE_LIMIT_DEFERRALS,
)

from livesync.config import SyncSettings, get_sync_settings
from livesync.errors import ErrorClassifier
from livesync.exceptions import StoreUnavailableError
from livesync.gate import utc_today
from livesync.priority import PriorityScheduler
from livesync.sources.base import ScoreSource
from livesync.telemetry import PerformanceTelemetry

if TYPE_CHECKING:
    from livesync.store import LiveScoreStore

logger = get_logger(__name__)


class MatchOutcome:
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DEFERRED = "deferred"
    FAILED = "failed"


@dataclass
class TournamentTally:
    total_matches: int = 0
    updated_matches: int = 0
    deferred_matches: int = 0
    errors: list[SyncError] = field(default_factory=list)


def chunked(items: list[Any], size: int) -> list[list[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class LiveScoreSync:
    """
    One pass over every running tournament.

    Tournaments run in priority order, ``batch_size`` at a time; inside a
    tournament, matches run concurrently up to the same ceiling. Only
    unexpected setup failures propagate out of ``execute_live_score_sync``.
    """

    def __init__(
        self,
        store: "LiveScoreStore",
        source: ScoreSource,
        scheduler: PriorityScheduler,
        classifier: ErrorClassifier | None = None,
        settings: SyncSettings | None = None,
        telemetry: Optional[PerformanceTelemetry] = None,
    ) -> None:
        self._store = store
        self._source = source
        self._scheduler = scheduler
        self._classifier = classifier or ErrorClassifier()
        self._settings = settings or get_sync_settings()
        self._telemetry = telemetry

    async def execute_live_score_sync(self) -> SyncResult:
        started = time.perf_counter()
        pass_id = uuid.uuid4().hex[:12]
        with log_context(pass_id=pass_id):
            result = SyncResult()
            logger.info("live_sync_started")
            try:
                await self._run_pass(result)
            except Exception as exc:
                result.duration = int((time.perf_counter() - started) * 1000)
                result.errors.append(
                    self._classifier.to_sync_error(
                        exc, "Live score sync failed", {"function": "live-score-sync"}
                    )
                )
                if self._telemetry is not None:
                    await self._telemetry.update_sync_status(result)
                raise

            result.duration = int((time.perf_counter() - started) * 1000)
            logger.info(
                "live_sync_completed",
                tournaments=result.total_tournaments,
                matches=result.total_matches,
                updated=result.updated_matches,
                deferred=result.deferred_matches,
                errors=len(result.errors),
                duration_ms=result.duration,
            )
            if self._telemetry is not None and result.total_tournaments:
                await self._telemetry.update_sync_status(result)
            return result

    async def _run_pass(self, result: SyncResult) -> None:
        try:
            tournaments = await self._store.list_active_tournaments(utc_today())
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to fetch active tournaments: {exc}") from exc

        result.total_tournaments = len(tournaments)
        ACTIVE_TOURNAMENTS.set(len(tournaments))
        if not tournaments:
            logger.info("no_active_tournaments")
            return

        ranked = self._scheduler.prioritize_tournaments(tournaments)
        batch_size = self._scheduler.get_optimal_batch_size()
        batches = chunked(ranked, batch_size)
        logger.info("tournament_batches_planned", tournaments=len(ranked), batches=len(batches))

        for index, batch in enumerate(batches):
            tallies = await asyncio.gather(
                *(self._sync_tournament(p, batch_size) for p in batch)
            )
            for tally in tallies:
                result.total_matches += tally.total_matches
                result.updated_matches += tally.updated_matches
                result.deferred_matches += tally.deferred_matches
                result.errors.extend(tally.errors)
            if index < len(batches) - 1 and self._settings.batch_pause_s > 0:
                await asyncio.sleep(self._settings.batch_pause_s)

        await self._report(len(tournaments), result.total_matches)
        self._scheduler.cleanup()

    async def _sync_tournament(self, ranked: TournamentPriority, batch_size: int) -> TournamentTally:
        tournament = ranked.tournament
        tally = TournamentTally()
        log = logger.bind(tournament_no=tournament.no, code=tournament.code, tier=ranked.tier.value)

        try:
            matches = await self._store.list_live_matches(tournament.no)
        except Exception as exc:
            self._classifier.handle_tournament_error(exc, {"tournament_no": tournament.no})
            tally.errors.append(
                self._classifier.to_sync_error(
                    exc,
                    f"Tournament {tournament.no} sync failed",
                    {"tournament_no": tournament.no, "function": "tournament-sync"},
                )
            )
            return tally

        tally.total_matches = len(matches)
        if not matches:
            log.debug("no_live_matches")
            return tally

        if not self._scheduler.can_process_tournament(tournament.no):
            tally.deferred_matches = len(matches)
            RATE_LIMIT_DEFERRALS.inc(len(matches))
            log.info("tournament_deferred", matches=len(matches))
            return tally

        operation_id = self._scheduler.start_operation(f"tournament_sync_{tournament.no}")
        log.info("tournament_sync_started", priority=ranked.priority, matches=len(matches))

        semaphore = asyncio.Semaphore(batch_size)

        async def guarded(match: Match) -> str:
            async with semaphore:
                return await self._sync_match(tournament, match, tally)

        outcomes = await asyncio.gather(*(guarded(m) for m in matches))
        tally.updated_matches = outcomes.count(MatchOutcome.UPDATED)
        tally.deferred_matches = outcomes.count(MatchOutcome.DEFERRED)
        self._scheduler.end_operation(operation_id, success=not tally.errors)

        log.info(
            "tournament_sync_completed",
            matches=tally.total_matches,
            updated=tally.updated_matches,
            deferred=tally.deferred_matches,
            errors=len(tally.errors),
        )
        return tally

    async def _sync_match(self, tournament: Tournament, match: Match, tally: TournamentTally) -> str:
        if not self._scheduler.try_acquire_call(tournament.no):
            RATE_LIMIT_DEFERRALS.inc()
            return MatchOutcome.DEFERRED

        try:
            call_started = time.perf_counter()
            try:
                score = await self._source.fetch_match_score(match)
            finally:
                # Failed and timed-out calls count toward the average too.
                self._scheduler.record_api_response_time((time.perf_counter() - call_started) * 1000)

            changes = score.changes_from(match)
            if not changes:
                return MatchOutcome.UNCHANGED
            if not await self._store.apply_score(match.no, changes):
                return MatchOutcome.UNCHANGED
        except Exception as exc:
            context = {"match_no": match.no, "tournament_no": tournament.no}
            self._classifier.handle_match_error(exc, context)
            MATCH_ERRORS.labels(category=self._classifier.categorize(exc).value).inc()
            tally.errors.append(
                self._classifier.to_sync_error(
                    exc,
                    f"Match {match.no} sync failed",
                    {**context, "function": "match-sync"},
                )
            )
            return MatchOutcome.FAILED

        MATCHES_UPDATED.inc()
        logger.info(
            "match_score_updated",
            match_no=match.no,
            no_in_tournament=match.no_in_tournament,
            teams=f"{match.team_a_name} vs {match.team_b_name}",
            fields=sorted(changes),
        )
        return MatchOutcome.UPDATED

    async def _report(self, concurrent_tournaments: int, total_matches: int) -> None:
        usage = self._scheduler.get_resource_usage(concurrent_tournaments, total_matches)
        if self._telemetry is not None:
            await self._telemetry.log_performance_metrics(usage)
        bottlenecks = self._scheduler.detect_bottlenecks()
        if bottlenecks.has_bottlenecks:
            logger.warning(
                "performance_bottlenecks_detected",
                flags=[f.value for f in bottlenecks.flags],
                recommendations=[i.recommendation for i in bottlenecks.issues],
            )

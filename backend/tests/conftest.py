"""
Shared fixtures and in-memory fakes for the live score sync tests.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Union

import pytest

from shared.models.domain import SCORE_FIELDS, LiveScore, Match, ResourceUsage, SyncResult, Tournament
from shared.models.enums import TournamentStatus

from livesync.config import SyncSettings
from livesync.priority import PriorityScheduler
from livesync.sources.base import ScoreSource


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """
    In-memory store. ``apply_score`` only reports an update when a field
    really differs, mirroring the IS DISTINCT FROM guard, and stamps
    live_updated_at the way the storage trigger does.
    """

    def __init__(
        self,
        tournaments: Optional[list[Tournament]] = None,
        matches: Optional[list[Match]] = None,
    ) -> None:
        self.tournaments = list(tournaments or [])
        self.matches: dict[str, Match] = {m.no: m for m in matches or []}
        self.tournament_error: Optional[Exception] = None
        self.match_list_errors: dict[str, Exception] = {}
        self.write_errors: dict[str, Exception] = {}
        self.writes: list[tuple[str, dict[str, Any]]] = []
        self.performance_logs: list[tuple[ResourceUsage, Optional[str]]] = []
        self.sync_statuses: list[SyncResult] = []
        self.telemetry_error: Optional[Exception] = None

    async def list_active_tournaments(self, today: date) -> list[Tournament]:
        if self.tournament_error is not None:
            raise self.tournament_error
        return [
            t for t in self.tournaments
            if t.status == TournamentStatus.RUNNING.value and t.end_date is not None and t.end_date >= today
        ]

    async def list_live_matches(self, tournament_no: str) -> list[Match]:
        if tournament_no in self.match_list_errors:
            raise self.match_list_errors[tournament_no]
        return [
            m.model_copy() for m in self.matches.values()
            if m.tournament_no == tournament_no and m.status in ("live", "running", "inprogress")
        ]

    async def apply_score(self, match_no: str, changes: dict[str, Any]) -> bool:
        if match_no in self.write_errors:
            raise self.write_errors[match_no]
        assert set(changes) <= set(SCORE_FIELDS)
        stored = self.matches[match_no]
        diff = {k: v for k, v in changes.items() if getattr(stored, k) != v}
        if not diff:
            return False
        self.writes.append((match_no, diff))
        self.matches[match_no] = stored.model_copy(
            update={**diff, "live_updated_at": datetime.now(timezone.utc)}
        )
        return True

    async def insert_performance_log(self, usage: ResourceUsage, function_type: Optional[str] = None) -> None:
        if self.telemetry_error is not None:
            raise self.telemetry_error
        self.performance_logs.append((usage, function_type))

    async def upsert_sync_status(self, result: SyncResult) -> None:
        if self.telemetry_error is not None:
            raise self.telemetry_error
        self.sync_statuses.append(result)


class FakeSource(ScoreSource):
    """Returns canned scores; an Exception value is raised for that match."""

    name = "fake"

    def __init__(self, scores: Optional[dict[str, Union[LiveScore, Exception]]] = None) -> None:
        self.scores: dict[str, Union[LiveScore, Exception]] = dict(scores or {})
        self.calls: list[str] = []

    async def fetch_match_score(self, match: Match) -> LiveScore:
        self.calls.append(match.no)
        outcome = self.scores[match.no]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


# ── Builders ────────────────────────────────────────────────────────────

def make_tournament(no: str, name: str = "Open", code: Optional[str] = None, **kwargs: Any) -> Tournament:
    today = datetime.now(timezone.utc).date()
    data: dict[str, Any] = {
        "status": TournamentStatus.RUNNING.value,
        "start_date": today - timedelta(days=1),
        "end_date": today + timedelta(days=2),
    }
    data.update(kwargs)
    return Tournament(no=no, name=name, code=code or f"C{no}", **data)


def make_match(no: str, tournament_no: str, status: str = "live", **scores: int) -> Match:
    fields = {name: 0 for name in SCORE_FIELDS if name != "status"}
    fields.update(scores)
    return Match(
        no=no,
        tournament_no=tournament_no,
        no_in_tournament=no[-2:],
        team_a_name="Team A",
        team_b_name="Team B",
        status=status,
        **fields,
    )


def make_score(match: Match, status: Optional[str] = "live", **scores: int) -> LiveScore:
    return LiveScore(match_no=match.no, tournament_no=match.tournament_no, status=status, **scores)


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def sync_settings() -> SyncSettings:
    return SyncSettings(batch_pause_s=0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(sync_settings: SyncSettings, clock: FakeClock) -> PriorityScheduler:
    return PriorityScheduler(sync_settings, clock=clock)

"""
Pydantic v2 domain models for the live score sync service.
These are the internal/wire representations, NOT ORM models.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.models.enums import BottleneckFlag, TournamentTier

# Columns guarded by the storage trigger that stamps live_updated_at.
SCORE_FIELDS: tuple[str, ...] = (
    "match_points_a",
    "match_points_b",
    "points_team_a_set1",
    "points_team_b_set1",
    "points_team_a_set2",
    "points_team_b_set2",
    "points_team_a_set3",
    "points_team_b_set3",
    "status",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class WireModel(DomainModel):
    """Serialized with camelCase keys in trigger responses."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


# ── Mirrored entities ───────────────────────────────────────────────────
class Tournament(DomainModel):
    no: str
    code: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class Match(DomainModel):
    no: str
    tournament_no: str
    no_in_tournament: Optional[str] = None
    team_a_name: Optional[str] = None
    team_b_name: Optional[str] = None
    status: Optional[str] = None
    match_points_a: Optional[int] = None
    match_points_b: Optional[int] = None
    points_team_a_set1: Optional[int] = None
    points_team_b_set1: Optional[int] = None
    points_team_a_set2: Optional[int] = None
    points_team_b_set2: Optional[int] = None
    points_team_a_set3: Optional[int] = None
    points_team_b_set3: Optional[int] = None
    live_updated_at: Optional[datetime] = None


class LiveScore(DomainModel):
    """Score state of one match as reported by the upstream API."""
    match_no: str
    tournament_no: str
    match_points_a: int = 0
    match_points_b: int = 0
    points_team_a_set1: int = 0
    points_team_b_set1: int = 0
    points_team_a_set2: int = 0
    points_team_b_set2: int = 0
    points_team_a_set3: int = 0
    points_team_b_set3: int = 0
    status: Optional[str] = None
    fetched_at: datetime = Field(default_factory=_utcnow)

    def changes_from(self, match: Match) -> dict[str, Any]:
        """Return only the score fields whose value differs from the stored match."""
        changes: dict[str, Any] = {}
        for field_name in SCORE_FIELDS:
            new_value = getattr(self, field_name)
            if field_name == "status" and new_value is None:
                continue
            if getattr(match, field_name) != new_value:
                changes[field_name] = new_value
        return changes


# ── Ranking ─────────────────────────────────────────────────────────────
class TournamentPriority(DomainModel):
    tournament: Tournament
    priority: int
    tier: TournamentTier


# ── Pass output ─────────────────────────────────────────────────────────
class SyncError(WireModel):
    message: str
    should_retry: bool = False
    context: dict[str, Any] = Field(default_factory=dict)


class SyncResult(WireModel):
    total_tournaments: int = 0
    total_matches: int = 0
    updated_matches: int = 0
    deferred_matches: int = 0
    errors: list[SyncError] = Field(default_factory=list)
    duration: int = Field(default=0, description="Wall-clock duration in milliseconds")


# ── Performance telemetry ───────────────────────────────────────────────
class PerformanceSnapshot(DomainModel):
    average_operation_time_ms: float = 0.0
    success_rate: float = 1.0
    average_api_response_time_ms: float = 0.0
    total_operations: int = 0
    api_samples: int = 0


class ResourceUsage(DomainModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    concurrent_tournaments: int = 0
    total_matches: int = 0
    api_calls_per_minute: int = 0
    average_response_time: float = 0.0
    error_rate: float = 0.0


class BottleneckIssue(DomainModel):
    flag: BottleneckFlag
    message: str
    recommendation: str


class BottleneckReport(DomainModel):
    issues: list[BottleneckIssue] = Field(default_factory=list)

    @property
    def has_bottlenecks(self) -> bool:
        return bool(self.issues)

    @property
    def flags(self) -> list[BottleneckFlag]:
        return [issue.flag for issue in self.issues]

"""
Access to the persisted tables read and written by the live score sync.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from shared.config import Settings, get_settings
from shared.models.domain import SCORE_FIELDS, Match, ResourceUsage, SyncResult, Tournament
from shared.models.enums import TournamentStatus
from shared.models.orm import MatchORM, SyncPerformanceLogORM, SyncStatusORM, TournamentORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

from livesync.config import SyncSettings, get_sync_settings
from livesync.exceptions import StoreUnavailableError

logger = get_logger(__name__)


def _naive_utc(value: datetime | None = None) -> datetime:
    """The sync tables use TIMESTAMP WITHOUT TIME ZONE holding UTC."""
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class LiveScoreStore:
    """Queries and writes for tournaments, matches and sync bookkeeping."""

    def __init__(self, db: DatabaseManager, settings: SyncSettings | None = None) -> None:
        self._db = db
        self._settings = settings or get_sync_settings()

    async def list_active_tournaments(self, today: date) -> list[Tournament]:
        """Running tournaments that have not ended before today."""
        stmt = (
            select(TournamentORM)
            .where(TournamentORM.status == TournamentStatus.RUNNING.value)
            .where(TournamentORM.end_date >= today)
            .order_by(TournamentORM.start_date)
        )
        async with self._db.read_session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [Tournament.model_validate(row) for row in rows]

    async def list_live_matches(self, tournament_no: str) -> list[Match]:
        stmt = (
            select(MatchORM)
            .where(MatchORM.tournament_no == tournament_no)
            .where(MatchORM.status.in_(self._settings.live_statuses))
            .order_by(MatchORM.local_time)
        )
        async with self._db.read_session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [Match.model_validate(row) for row in rows]

    async def apply_score(self, match_no: str, changes: dict[str, Any]) -> bool:
        """
        Write changed score fields for one match.

        The UPDATE only matches when at least one column really differs, so a
        repeated write of the same values touches no row and the
        live_updated_at trigger stays quiet.

        Returns:
            True if a row was updated.
        """
        unknown = set(changes) - set(SCORE_FIELDS)
        if unknown:
            raise ValueError(f"Not score fields: {sorted(unknown)}")
        if not changes:
            return False

        stmt = (
            update(MatchORM)
            .where(MatchORM.no == match_no)
            .where(or_(*(getattr(MatchORM, name).is_distinct_from(value) for name, value in changes.items())))
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        async with self._db.write_session() as session:
            result = await session.execute(stmt)
        updated = (result.rowcount or 0) > 0
        logger.debug("match_score_written", match_no=match_no, fields=sorted(changes), updated=updated)
        return updated

    async def insert_performance_log(self, usage: ResourceUsage, function_type: str | None = None) -> None:
        row = SyncPerformanceLogORM(
            timestamp=_naive_utc(usage.timestamp),
            function_type=function_type or self._settings.function_type,
            concurrent_tournaments=usage.concurrent_tournaments,
            total_matches=usage.total_matches,
            api_calls_per_minute=usage.api_calls_per_minute,
            average_response_time=usage.average_response_time,
            error_rate=usage.error_rate,
            additional_metrics={},
        )
        async with self._db.write_session() as session:
            session.add(row)

    async def upsert_sync_status(self, result: SyncResult) -> None:
        """Record the outcome of the latest pass on the sync_status row."""
        now = _naive_utc()
        failed = bool(result.errors)
        values = {
            "entity_type": self._settings.sync_status_entity,
            "last_sync": now,
            "success_count": 0 if failed else 1,
            "error_count": 1 if failed else 0,
            "last_error": "; ".join(e.message for e in result.errors) if failed else None,
            "last_error_time": now if failed else None,
            "updated_at": now,
        }
        stmt = pg_insert(SyncStatusORM).values(**values).on_conflict_do_update(
            index_elements=[SyncStatusORM.entity_type],
            set_={k: v for k, v in values.items() if k != "entity_type"},
        )
        async with self._db.write_session() as session:
            await session.execute(stmt)


@asynccontextmanager
async def open_store(
    settings: Settings | None = None,
    sync_settings: SyncSettings | None = None,
) -> AsyncIterator[LiveScoreStore]:
    """
    Connect a store for one invocation and dispose of its engine afterwards.

    Raises:
        StoreUnavailableError: The database did not answer the connect check.
    """
    db = DatabaseManager(settings or get_settings())
    try:
        await db.connect()
    except Exception as exc:
        raise StoreUnavailableError(f"Database unavailable: {exc}") from exc
    try:
        yield LiveScoreStore(db, sync_settings)
    finally:
        await db.disconnect()

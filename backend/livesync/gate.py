"""
Schedule gate: decides whether a sync pass should run at all.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Callable

from shared.utils.logging import get_logger
from shared.utils.metrics import GATE_DECISIONS

if TYPE_CHECKING:
    from livesync.store import LiveScoreStore

logger = get_logger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ScheduleGate:
    """
    Opens when at least one Running tournament's window contains today.

    A store error opens the gate: a wasted pass is cheaper than a missed
    live update.
    """

    def __init__(
        self,
        store: "LiveScoreStore",
        today_provider: Callable[[], date] = utc_today,
    ) -> None:
        self._store = store
        self._today = today_provider

    async def is_active_tournament_hour(self) -> bool:
        today = self._today()
        try:
            tournaments = await self._store.list_active_tournaments(today)
        except Exception as exc:
            logger.warning("schedule_gate_fail_open", error=str(exc))
            GATE_DECISIONS.labels(decision="fail_open").inc()
            return True

        active = [t for t in tournaments if t.start_date is not None and t.start_date <= today]
        if active:
            logger.info(
                "schedule_gate_open",
                active_tournaments=len(active),
                tournaments=[t.no for t in active[:5]],
            )
            GATE_DECISIONS.labels(decision="open").inc()
            return True

        logger.info("schedule_gate_closed", date=today.isoformat())
        GATE_DECISIONS.labels(decision="closed").inc()
        return False

"""Domain enumerations for the live score sync service."""
from __future__ import annotations

from enum import Enum


class TournamentStatus(str, Enum):
    RUNNING = "Running"
    FINISHED = "Finished"
    CANCELLED = "Cancelled"
    SCHEDULED = "Scheduled"


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    RUNNING = "running"
    INPROGRESS = "inprogress"
    FINISHED = "finished"

    @property
    def is_live(self) -> bool:
        return self in (MatchStatus.LIVE, MatchStatus.RUNNING, MatchStatus.INPROGRESS)


LIVE_MATCH_STATUSES: tuple[str, ...] = tuple(s.value for s in MatchStatus if s.is_live)


class TournamentTier(str, Enum):
    """Closed classification used to rank tournaments inside one pass."""
    FIVB = "FIVB"
    CEV = "CEV"
    BPT = "BPT"
    LOCAL = "LOCAL"


class ErrorCategory(str, Enum):
    EXTERNAL_API = "EXTERNAL_API_ERROR"
    DATABASE = "DATABASE_ERROR"
    NETWORK = "NETWORK_ERROR"
    DATA_PARSING = "DATA_PARSING_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    CONFIGURATION = "CONFIGURATION_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


class BottleneckFlag(str, Enum):
    HIGH_API_LATENCY = "high_api_latency"
    LOW_SUCCESS_RATE = "low_success_rate"
    SLOW_OPERATIONS = "slow_operations"
    APPROACHING_RATE_LIMIT = "approaching_rate_limit"

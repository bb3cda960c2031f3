"""
Error classification for sync failures.

Turns raw exceptions into a retry decision plus a log-safe message. A
retryable error is one the next scheduled pass is expected to get past
(network-layer trouble); an error where the upstream API explicitly
rejected or failed the request is not retryable. Neither kind is retried
inside a pass.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from shared.config import ConfigurationError
from shared.models.domain import SyncError
from shared.models.enums import ErrorCategory
from shared.utils.logging import get_logger

from livesync.exceptions import StoreUnavailableError, UpstreamAPIError, UpstreamParseError

logger = get_logger(__name__)

DEFAULT_MESSAGE = "Unknown error occurred during live score sync"

# Checked first: explicit rejections and configuration problems.
NON_RETRYABLE_MARKERS: tuple[str, ...] = (
    "api error",
    "unauthorized",
    "forbidden",
    "invalid api key",
    "missing required environment variable",
    "401",
    "403",
    "404",
)

RETRYABLE_MARKERS: tuple[str, ...] = (
    "network error",
    "timeout",
    "timed out",
    "connection reset",
    "connection refused",
    "connection error",
    "name or service not known",
    "name resolution",
    "dns",
    "temporarily unavailable",
)

CATEGORY_MARKERS: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.CONFIGURATION, ("missing required environment variable",)),
    (ErrorCategory.AUTHENTICATION, ("unauthorized", "forbidden", "invalid api key")),
    (ErrorCategory.RATE_LIMIT, ("rate limit",)),
    (ErrorCategory.EXTERNAL_API, ("api", "fivb", "vis")),
    (ErrorCategory.DATABASE, ("database", "store", "sql")),
    (ErrorCategory.NETWORK, ("network", "timeout", "connection", "dns")),
    (ErrorCategory.DATA_PARSING, ("parse", "xml")),
)


@dataclass
class SyncErrorInfo:
    message: str
    should_retry: bool
    details: dict[str, Any] = field(default_factory=dict)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorClassifier:
    """Centralized error handling for live score sync operations."""

    def extract_message(self, error: Any) -> str:
        """Extract a meaningful message from exceptions, strings or error payloads."""
        if isinstance(error, str):
            return error or DEFAULT_MESSAGE
        if isinstance(error, BaseException):
            text = str(error)
            return text or type(error).__name__
        if isinstance(error, dict):
            for key in ("message", "error_description", "details"):
                value = error.get(key)
                if value:
                    return str(value)
        return DEFAULT_MESSAGE

    def should_retry(self, error: Any) -> bool:
        """True when the failure is network-layer and the next pass should succeed."""
        if isinstance(error, (UpstreamAPIError, ConfigurationError, UpstreamParseError)):
            return False
        if isinstance(error, httpx.HTTPStatusError):
            return False
        if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, TimeoutError, ConnectionError)):
            return True

        message = self.extract_message(error).lower()
        if any(marker in message for marker in NON_RETRYABLE_MARKERS):
            return False
        if any(marker in message for marker in RETRYABLE_MARKERS):
            return True
        # Unknown errors are left to the next scheduled pass without a retry hint.
        return False

    def categorize(self, error: Any) -> ErrorCategory:
        """Categorize an error for monitoring and alerting."""
        if isinstance(error, ConfigurationError):
            return ErrorCategory.CONFIGURATION
        if isinstance(error, UpstreamParseError):
            return ErrorCategory.DATA_PARSING
        if isinstance(error, UpstreamAPIError):
            if error.status_code in (401, 403):
                return ErrorCategory.AUTHENTICATION
            if error.status_code == 429:
                return ErrorCategory.RATE_LIMIT
            return ErrorCategory.EXTERNAL_API
        if isinstance(error, StoreUnavailableError):
            return ErrorCategory.DATABASE
        if isinstance(error, (httpx.TransportError, TimeoutError, ConnectionError)):
            return ErrorCategory.NETWORK

        message = self.extract_message(error).lower()
        for category, markers in CATEGORY_MARKERS:
            if any(marker in message for marker in markers):
                return category
        return ErrorCategory.UNKNOWN

    def handle_sync_error(self, error: Any, context: dict[str, Any]) -> SyncErrorInfo:
        """
        Classify an error and log it with its context.

        The traceback goes to the log entry only; ``details`` is safe to hand
        back to callers.
        """
        context = {"timestamp": _now_iso(), **context}
        category = self.categorize(error)
        details: dict[str, Any] = {
            "original_error": self.extract_message(error),
            "category": category.value,
            "context": context,
            "timestamp": context["timestamp"],
        }
        info = SyncErrorInfo(
            message=self.extract_message(error),
            should_retry=self.should_retry(error),
            details=details,
        )
        logger.error(
            "sync_error",
            message=info.message,
            category=category.value,
            should_retry=info.should_retry,
            exc_info=error if isinstance(error, BaseException) else None,
            **{k: v for k, v in context.items() if k != "timestamp"},
        )
        return info

    def handle_match_error(self, error: Any, context: dict[str, Any]) -> None:
        """Log a per-match failure. Never raises so sibling matches keep going."""
        try:
            info = self.handle_sync_error(error, {"function": "match-sync", **context})
            logger.warning(
                "match_sync_error",
                match_no=context.get("match_no"),
                tournament_no=context.get("tournament_no"),
                message=info.message,
            )
        except Exception as exc:  # the handler itself must not break the pass
            logger.warning("match_error_handler_failed", error=repr(exc))

    def handle_tournament_error(self, error: Any, context: dict[str, Any]) -> None:
        """Log a per-tournament failure. Never raises so other tournaments keep going."""
        try:
            info = self.handle_sync_error(error, {"function": "tournament-sync", **context})
            logger.warning(
                "tournament_sync_error",
                tournament_no=context.get("tournament_no"),
                message=info.message,
            )
        except Exception as exc:
            logger.warning("tournament_error_handler_failed", error=repr(exc))

    def to_sync_error(self, error: Any, prefix: str, context: dict[str, Any]) -> SyncError:
        """Build the result entry for a failed unit of work."""
        return SyncError(
            message=f"{prefix}: {self.extract_message(error)}",
            should_retry=self.should_retry(error),
            context={"timestamp": _now_iso(), **context},
        )

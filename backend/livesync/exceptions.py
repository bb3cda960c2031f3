"""Exceptions raised by the live score sync pipeline."""
from __future__ import annotations

from typing import Optional


class LiveSyncError(Exception):
    """Base class for pipeline errors."""


class StoreUnavailableError(LiveSyncError):
    """The store is unreachable or running tournaments could not be listed; the pass cannot start."""


class UpstreamAPIError(LiveSyncError):
    """The upstream score API answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class UpstreamParseError(LiveSyncError):
    """The upstream payload did not contain a usable match element."""

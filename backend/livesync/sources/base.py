"""
Abstract base class for upstream score sources.
"""
from __future__ import annotations

import abc

from shared.models.domain import LiveScore, Match


class ScoreSource(abc.ABC):
    """Fetches the current score of one match from an upstream API."""

    name: str = "unknown"

    async def start(self) -> None:
        """Open network resources. Default: nothing to open."""

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""

    @abc.abstractmethod
    async def fetch_match_score(self, match: Match) -> LiveScore:
        """
        Fetch the live score for a match.

        Raises:
            UpstreamAPIError: The API answered with a non-success status.
            UpstreamParseError: The payload held no usable match element.
            httpx.TransportError: Network-layer failure.
        """
        ...

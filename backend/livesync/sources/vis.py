"""
Score source backed by the federation's VIS XML API.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from shared.config import Settings, get_settings
from shared.models.domain import LiveScore, Match
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from livesync.exceptions import UpstreamAPIError, UpstreamParseError
from livesync.sources.base import ScoreSource

logger = get_logger(__name__)

MATCH_FIELDS = (
    "No NoInTournament MatchPointsA MatchPointsB "
    "PointsTeamASet1 PointsTeamBSet1 PointsTeamASet2 PointsTeamBSet2 "
    "PointsTeamASet3 PointsTeamBSet3 Status"
)

# VIS attribute -> LiveScore field
ATTRIBUTE_MAP: dict[str, str] = {
    "MatchPointsA": "match_points_a",
    "MatchPointsB": "match_points_b",
    "PointsTeamASet1": "points_team_a_set1",
    "PointsTeamBSet1": "points_team_b_set1",
    "PointsTeamASet2": "points_team_a_set2",
    "PointsTeamBSet2": "points_team_b_set2",
    "PointsTeamASet3": "points_team_a_set3",
    "PointsTeamBSet3": "points_team_b_set3",
}


def build_match_request(match: Match) -> str:
    """XML request body for one beach match."""
    request = ET.Element("Request", {"Type": "GetBeachMatchList", "Fields": MATCH_FIELDS})
    ET.SubElement(request, "Filter", {"NoTournament": match.tournament_no, "No": match.no})
    return ET.tostring(request, encoding="unicode")


def _to_int(raw: Optional[str]) -> int:
    try:
        return int(raw) if raw not in (None, "") else 0
    except ValueError:
        return 0


def parse_match_score(xml_text: str, match: Match) -> LiveScore:
    """
    Parse a GetBeachMatchList response into a LiveScore.

    Missing or non-numeric point attributes read as 0. A missing Status
    leaves the stored status untouched.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise UpstreamParseError(f"Failed to parse match score XML: {exc}") from exc

    element = root if root.tag == "BeachMatch" else root.find(".//BeachMatch")
    if element is None:
        raise UpstreamParseError("No match data found in API response")

    values = {field: _to_int(element.get(attr)) for attr, field in ATTRIBUTE_MAP.items()}
    status = element.get("Status") or None
    return LiveScore(
        match_no=match.no,
        tournament_no=match.tournament_no,
        status=status,
        **values,
    )


class VisScoreSource(ScoreSource):
    """Fetches one match at a time; each request is a single attempt."""

    name = "vis"

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        base_url, _, self._endpoint = self._settings.vis_base_url.rpartition("/")
        self._http = ProviderHTTPClient(
            provider_name=self.name,
            base_url=base_url,
            headers={
                "Accept": "application/xml, text/xml",
                "X-FIVB-App-ID": self._settings.vis_app_id,
            },
            timeout_s=self._settings.vis_request_timeout_s,
            transport=transport,
        )

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def fetch_match_score(self, match: Match) -> LiveScore:
        try:
            resp = await self._http.get(self._endpoint, params={"Request": build_match_request(match)})
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise UpstreamAPIError(
                f"VIS API error: {status} {exc.response.reason_phrase}",
                status_code=status,
            ) from exc
        score = parse_match_score(resp.text, match)
        logger.debug("vis_score_fetched", match_no=match.no, status=score.status)
        return score


@asynccontextmanager
async def open_vis_source(settings: Settings | None = None) -> AsyncIterator[ScoreSource]:
    source = VisScoreSource(settings)
    await source.start()
    try:
        yield source
    finally:
        await source.close()

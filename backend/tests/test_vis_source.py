"""VIS score source tests against a mocked transport."""
from __future__ import annotations

from typing import Callable

import httpx
import pytest

from shared.config import Settings

from livesync.exceptions import UpstreamAPIError, UpstreamParseError
from livesync.sources.vis import VisScoreSource, build_match_request, parse_match_score

from conftest import make_match

MATCH_XML = (
    '<BeachMatches>'
    '<BeachMatch No="5001" NoInTournament="12" MatchPointsA="1" MatchPointsB="0" '
    'PointsTeamASet1="21" PointsTeamBSet1="17" PointsTeamASet2="14" PointsTeamBSet2="12" '
    'PointsTeamASet3="" PointsTeamBSet3="" Status="Running" />'
    '</BeachMatches>'
)


def _settings() -> Settings:
    return Settings(
        database_url="postgresql+asyncpg://user:pw@localhost/db",
        vis_app_id="app-123",
        vis_base_url="https://vis.example.org/Vis2009/XmlRequest.asmx",
    )


async def _fetch(handler: Callable[[httpx.Request], httpx.Response]):
    source = VisScoreSource(_settings(), transport=httpx.MockTransport(handler))
    await source.start()
    try:
        return await source.fetch_match_score(make_match("5001", "900"))
    finally:
        await source.close()


# ── Parsing ─────────────────────────────────────────────────────────────

def test_parse_match_score_reads_attributes() -> None:
    score = parse_match_score(MATCH_XML, make_match("5001", "900"))
    assert score.match_no == "5001"
    assert score.tournament_no == "900"
    assert score.match_points_a == 1
    assert score.match_points_b == 0
    assert (score.points_team_a_set1, score.points_team_b_set1) == (21, 17)
    assert (score.points_team_a_set2, score.points_team_b_set2) == (14, 12)
    assert (score.points_team_a_set3, score.points_team_b_set3) == (0, 0)
    assert score.status == "Running"


def test_parse_accepts_bare_match_element() -> None:
    score = parse_match_score('<BeachMatch MatchPointsA="2" MatchPointsB="x" />', make_match("1", "2"))
    assert score.match_points_a == 2
    assert score.match_points_b == 0
    assert score.status is None


def test_parse_without_match_element_raises() -> None:
    with pytest.raises(UpstreamParseError, match="No match data found"):
        parse_match_score("<BeachMatches />", make_match("1", "2"))


def test_parse_malformed_xml_raises() -> None:
    with pytest.raises(UpstreamParseError, match="Failed to parse"):
        parse_match_score("<BeachMatches", make_match("1", "2"))


def test_build_match_request_filters_by_tournament_and_match() -> None:
    xml = build_match_request(make_match("5001", "900"))
    assert 'Type="GetBeachMatchList"' in xml
    assert 'NoTournament="900"' in xml
    assert 'No="5001"' in xml


# ── HTTP ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fetch_sends_request_and_app_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=MATCH_XML)

    score = await _fetch(handler)

    assert score.points_team_a_set1 == 21
    request = seen[0]
    assert request.url.path == "/Vis2009/XmlRequest.asmx"
    assert request.headers["X-FIVB-App-ID"] == "app-123"
    assert "GetBeachMatchList" in request.url.params["Request"]


@pytest.mark.asyncio
async def test_non_success_status_raises_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with pytest.raises(UpstreamAPIError) as exc_info:
        await _fetch(handler)
    assert exc_info.value.status_code == 503
    assert "VIS API error: 503" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_error_propagates() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(httpx.ConnectError):
        await _fetch(handler)

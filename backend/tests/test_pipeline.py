"""
Pipeline and HTTP trigger tests with in-memory store and source.

Run: pytest backend/tests/test_pipeline.py -v
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import pytest
from fastapi.testclient import TestClient

from shared.config import ConfigurationError, Settings

from livesync.app import PAUSED_MESSAGE, create_app
from livesync.config import SyncSettings
from livesync.exceptions import StoreUnavailableError
from livesync.pipeline import LiveSyncPipeline
from livesync.priority import PriorityScheduler

from conftest import FakeClock, FakeSource, FakeStore, make_match, make_score, make_tournament

CREDENTIAL_ENV = ("LS_DATABASE_URL", "LS_VIS_APP_ID", "DATABASE_URL", "SUPABASE_DB_URL", "FIVB_API_KEY")


@pytest.fixture(autouse=True)
def _clear_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in CREDENTIAL_ENV:
        monkeypatch.delenv(name, raising=False)


def _settings(**overrides: str) -> Settings:
    values = {
        "database_url": "postgresql+asyncpg://user:pw@localhost/db",
        "vis_app_id": "app-123",
    }
    values.update(overrides)
    return Settings(**values)


def _pipeline(store: FakeStore, source: FakeSource, settings: Settings | None = None) -> LiveSyncPipeline:
    sync_settings = SyncSettings(batch_pause_s=0)

    @asynccontextmanager
    async def store_opener(_settings: Settings, _sync: SyncSettings) -> AsyncIterator[FakeStore]:
        yield store

    @asynccontextmanager
    async def source_opener(_settings: Settings) -> AsyncIterator[FakeSource]:
        yield source

    return LiveSyncPipeline(
        settings=settings or _settings(),
        sync_settings=sync_settings,
        scheduler=PriorityScheduler(sync_settings, clock=FakeClock()),
        store_opener=store_opener,
        source_opener=source_opener,
    )


def _live_store() -> tuple[FakeStore, FakeSource]:
    match = make_match("M1", "T1")
    store = FakeStore([make_tournament("T1", name="FIVB Elite16")], [match])
    source = FakeSource({"M1": make_score(match, match_points_a=1)})
    return store, source


# ── LiveSyncPipeline ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_returns_result_when_gate_open() -> None:
    store, source = _live_store()
    result = await _pipeline(store, source).run()
    assert result is not None
    assert result.updated_matches == 1


@pytest.mark.asyncio
async def test_run_returns_none_when_paused() -> None:
    source = FakeSource()
    result = await _pipeline(FakeStore(), source).run()
    assert result is None
    assert source.calls == []


@pytest.mark.asyncio
async def test_run_requires_credentials() -> None:
    store, source = _live_store()
    pipeline = _pipeline(store, source, settings=_settings(vis_app_id=""))
    with pytest.raises(ConfigurationError, match="LS_VIS_APP_ID"):
        await pipeline.run()
    assert source.calls == []


@pytest.mark.asyncio
async def test_scheduler_state_survives_between_runs() -> None:
    store, source = _live_store()
    pipeline = _pipeline(store, source)
    await pipeline.run()
    await pipeline.run()
    assert pipeline.scheduler.calls_in_window("T1") == 2


# ── HTTP trigger ────────────────────────────────────────────────────────

def _client(pipeline: LiveSyncPipeline, settings: Settings | None = None) -> TestClient:
    app = create_app(settings or _settings(), pipeline, use_lifespan=False)
    return TestClient(app)


def test_health() -> None:
    store, source = _live_store()
    r = _client(_pipeline(store, source)).get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "service": "live-score-sync"}


def test_options_answers_ok() -> None:
    store, source = _live_store()
    r = _client(_pipeline(store, source)).options("/live-score-sync")
    assert r.status_code == 200
    assert r.text == "ok"
    assert source.calls == []


def test_cors_preflight_is_honored() -> None:
    store, source = _live_store()
    r = _client(_pipeline(store, source)).options(
        "/live-score-sync",
        headers={"Origin": "https://app.example.com", "Access-Control-Request-Method": "POST"},
    )
    assert r.status_code == 200
    assert "access-control-allow-origin" in r.headers


def test_sync_success_response() -> None:
    store, source = _live_store()
    r = _client(_pipeline(store, source)).post("/live-score-sync")

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["result"]["totalTournaments"] == 1
    assert body["result"]["totalMatches"] == 1
    assert body["result"]["updatedMatches"] == 1
    assert body["result"]["deferredMatches"] == 0
    assert body["result"]["errors"] == []
    assert isinstance(body["result"]["duration"], int)
    assert "timestamp" in body


def test_sync_paused_response() -> None:
    r = _client(_pipeline(FakeStore(), FakeSource())).get("/live-score-sync")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == PAUSED_MESSAGE


def test_sync_partial_failure_still_succeeds() -> None:
    m1 = make_match("M1", "T1")
    m2 = make_match("M2", "T1")
    store = FakeStore([make_tournament("T1")], [m1, m2])
    source = FakeSource({"M1": make_score(m1, match_points_a=1), "M2": TimeoutError("timed out")})

    r = _client(_pipeline(store, source)).post("/live-score-sync")

    assert r.status_code == 200
    errors = r.json()["result"]["errors"]
    assert len(errors) == 1
    assert errors[0]["shouldRetry"] is True


def test_missing_credentials_returns_500() -> None:
    store, source = _live_store()
    settings = _settings(database_url="")
    r = _client(_pipeline(store, source, settings=settings), settings).post("/live-score-sync")

    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert "Missing required environment variable" in body["error"]
    assert body["details"]["category"] == "CONFIGURATION_ERROR"
    assert "stack" not in body["details"]
    assert "timestamp" in body


def test_store_unavailable_returns_500() -> None:
    store, source = _live_store()
    calls = {"n": 0}
    original = store.list_active_tournaments

    async def flaky(today):  # gate succeeds, the pass listing fails
        calls["n"] += 1
        if calls["n"] > 1:
            raise RuntimeError("connection to server was lost")
        return await original(today)

    store.list_active_tournaments = flaky
    r = _client(_pipeline(store, source)).post("/live-score-sync")

    assert r.status_code == 500
    assert r.json()["details"]["category"] == "DATABASE_ERROR"


def test_store_connect_failure_returns_500_without_stack() -> None:
    _, source = _live_store()

    @asynccontextmanager
    async def unreachable(_settings: Settings, _sync: SyncSettings) -> AsyncIterator[FakeStore]:
        raise StoreUnavailableError("Database unavailable: connection refused")
        yield  # pragma: no cover

    sync_settings = SyncSettings(batch_pause_s=0)
    pipeline = LiveSyncPipeline(
        settings=_settings(),
        sync_settings=sync_settings,
        scheduler=PriorityScheduler(sync_settings, clock=FakeClock()),
        store_opener=unreachable,
        source_opener=lambda _settings: None,
    )
    r = _client(pipeline).post("/live-score-sync")

    assert r.status_code == 500
    details = r.json()["details"]
    assert details["category"] == "DATABASE_ERROR"
    assert "stack" not in details
    assert "Traceback" not in r.text
    assert source.calls == []

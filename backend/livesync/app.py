"""
FastAPI application factory for the live score sync trigger.

An external cron-like scheduler calls ``/live-score-sync`` on a fixed
cadence. Each call runs the schedule gate and, when it opens, one sync pass.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger, setup_logging

from livesync.config import get_sync_settings
from livesync.middleware import setup_middleware
from livesync.pipeline import LiveSyncPipeline

logger = get_logger(__name__)

SERVICE_NAME = "live-score-sync"
PAUSED_MESSAGE = "Sync paused - outside tournament hours"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging(SERVICE_NAME, get_sync_settings().function_type)
    logger.info("live_sync_service_started")
    yield
    logger.info("live_sync_service_stopped")


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for tests."""
    yield


def create_app(
    settings: Settings | None = None,
    pipeline: Optional[LiveSyncPipeline] = None,
    *,
    use_lifespan: bool = True,
) -> FastAPI:
    """
    Create the trigger app.

    The pipeline, and with it the scheduler's rate-limit and metric windows,
    lives on ``app.state`` for the lifetime of the process.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Live Score Sync",
        description="Synchronizes live beach volleyball scores from the federation API",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
    )
    app.state.pipeline = pipeline or LiveSyncPipeline(settings)

    setup_middleware(app, settings)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": SERVICE_NAME}

    @app.api_route("/live-score-sync", methods=["GET", "POST", "OPTIONS"], tags=["sync"])
    async def live_score_sync(request: Request) -> Response:
        if request.method == "OPTIONS":
            return PlainTextResponse("ok")

        sync_pipeline: LiveSyncPipeline = request.app.state.pipeline
        try:
            result = await sync_pipeline.run()
        except Exception as exc:
            info = sync_pipeline.classifier.handle_sync_error(exc, {"function": SERVICE_NAME})
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": info.message,
                    "details": info.details,
                    "timestamp": _timestamp(),
                },
            )

        body: dict[str, Any]
        if result is None:
            body = {"success": True, "message": PAUSED_MESSAGE, "timestamp": _timestamp()}
        else:
            body = {
                "success": True,
                "result": result.model_dump(by_alias=True, mode="json"),
                "timestamp": _timestamp(),
            }
        return JSONResponse(content=body)

    return app


# For running with uvicorn directly
app = create_app()

"""
Live score sync service entrypoint.
Runs the trigger app via uvicorn; PORT overrides the configured port when set.
"""
from __future__ import annotations

import os

import uvicorn

from shared.config import get_settings
from shared.utils.metrics import start_metrics_server


def main() -> None:
    """Start the sync trigger service."""
    settings = get_settings()
    port = int(os.environ.get("PORT", settings.api_port))

    start_metrics_server()
    uvicorn.run(
        "livesync.app:app",
        host=settings.api_host,
        port=port,
        log_level=settings.log_level.lower(),
        access_log=False,  # request logging is done by middleware
        timeout_keep_alive=30,
    )


if __name__ == "__main__":
    main()

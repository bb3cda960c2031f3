"""
Async HTTP client wrapper for upstream score API requests.
Includes timeout management, metrics collection and structured logging.

Each call is a single attempt: recovery from transient failures is left to
the next scheduled pass.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_LATENCY, UPSTREAM_REQUESTS

logger = get_logger(__name__)


class ProviderHTTPClient:
    """
    Async HTTP client tailored for federation data APIs.
    Handles timeouts and records latency/status metrics per request.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.vis_request_timeout_s
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        path: str = "",
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Perform a single GET request with metrics and structured logging.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            httpx.TransportError: On timeouts and connection failures.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        start_time = time.perf_counter()
        status = "unknown"
        try:
            resp = await self._client.get(path, params=params)
            status = str(resp.status_code)
            resp.raise_for_status()
            logger.debug(
                "provider_request_success",
                provider=self._provider,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return resp
        except httpx.TimeoutException:
            status = "timeout"
            logger.warning("provider_timeout", provider=self._provider)
            raise
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "provider_http_error",
                provider=self._provider,
                status=exc.response.status_code,
            )
            raise
        except httpx.TransportError as exc:
            status = "transport_error"
            logger.warning("provider_transport_error", provider=self._provider, error=str(exc))
            raise
        finally:
            UPSTREAM_LATENCY.labels(provider=self._provider).observe(time.perf_counter() - start_time)
            UPSTREAM_REQUESTS.labels(provider=self._provider, status=status).inc()

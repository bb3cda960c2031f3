"""
Prometheus metrics for the live score sync pipeline.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
SYNC_PASSES = Counter(
    "ls_sync_passes_total",
    "Live score sync passes by outcome",
    ["outcome"],
)
GATE_DECISIONS = Counter(
    "ls_gate_decisions_total",
    "Schedule gate decisions",
    ["decision"],
)
MATCHES_UPDATED = Counter(
    "ls_matches_updated_total",
    "Matches whose score fields were written",
)
MATCH_ERRORS = Counter(
    "ls_match_errors_total",
    "Per-match sync failures",
    ["category"],
)
RATE_LIMIT_DEFERRALS = Counter(
    "ls_rate_limit_deferrals_total",
    "Upstream calls deferred to the next pass by the per-tournament budget",
)
UPSTREAM_REQUESTS = Counter(
    "ls_upstream_requests_total",
    "Upstream score API requests",
    ["provider", "status"],
)
TELEMETRY_FAILURES = Counter(
    "ls_telemetry_failures_total",
    "Best-effort telemetry writes that failed",
    ["target"],
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "ls_upstream_latency_seconds",
    "Upstream score API latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
SYNC_PASS_DURATION = Histogram(
    "ls_sync_pass_seconds",
    "Wall-clock duration of a sync pass",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
SYNC_BATCH_SIZE = Gauge(
    "ls_sync_batch_size",
    "Tournament concurrency ceiling chosen for the latest pass",
)
ACTIVE_TOURNAMENTS = Gauge(
    "ls_active_tournaments",
    "Running tournaments seen by the latest pass",
)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)

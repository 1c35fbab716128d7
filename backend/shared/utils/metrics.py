"""
Prometheus metrics for the Matchday sync engine.
Module-level collectors, shared by every component in the process.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "md_provider_requests_total",
    "Total upstream provider HTTP requests",
    ["provider", "endpoint", "status"],
)
QUOTA_CALLS = Counter(
    "md_quota_calls_total",
    "Primary provider calls recorded against a credential",
    ["credential"],
)
CREDENTIAL_EXHAUSTIONS = Counter(
    "md_credential_exhaustions_total",
    "Credentials force-marked exhausted after a provider failure",
    ["credential"],
)
SYNC_RESULTS = Counter(
    "md_sync_results_total",
    "Fixture sync outcomes by source",
    ["source"],
)
LIVE_RECONCILE_UPDATES = Counter(
    "md_live_reconcile_updates_total",
    "Fixtures updated from secondary live records",
)
ANALYSIS_RESULTS = Counter(
    "md_analysis_results_total",
    "Fixture analysis outcomes",
    ["outcome"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "md_provider_latency_seconds",
    "Upstream provider request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
QUOTA_REMAINING = Gauge(
    "md_quota_remaining",
    "Aggregate primary provider calls left today",
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

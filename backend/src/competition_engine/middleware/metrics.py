"""Prometheus metrics middleware and competition engine counters."""
import time
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

# Request metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
)

# Competition lifecycle metrics
COMPETITIONS_CREATED = Counter(
    "competitions_created_total",
    "Competitions created by the scheduler or the admin API",
    ["type"],
)

FINALIZATIONS = Counter(
    "competition_finalizations_total",
    "Competition finalization attempts",
    ["result"],  # created, skipped, failed
)

FINALIZE_LATENCY = Histogram(
    "competition_finalize_duration_seconds",
    "Time to rank, reward and archive one competition",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

REWARD_GRANTS = Counter(
    "reward_grants_total",
    "Reward grants applied during finalization",
    ["status"],  # success, failed
)

NOTIFICATIONS = Counter(
    "competition_notifications_total",
    "Competition completed notifications handed to the queue",
    ["status"],  # sent, failed
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all HTTP requests."""

    # Endpoints to normalize for metrics (reduce cardinality)
    ENDPOINT_PATTERNS = {
        "/api/v1/competitions": "/api/v1/competitions",
        "/api/v1/engine": "/api/v1/engine",
        "/api/v1/archives": "/api/v1/archives",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            ACTIVE_REQUESTS.dec()
            latency = time.perf_counter() - start_time

            endpoint = self._normalize_endpoint(request.url.path)

            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=status_code,
            ).inc()

            REQUEST_LATENCY.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(latency)

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce metric cardinality."""
        for pattern, normalized in self.ENDPOINT_PATTERNS.items():
            if path.startswith(pattern):
                return normalized

        if path in ("/health", "/metrics"):
            return path

        return "/other"


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Helper Functions for Manual Metric Recording
# =============================================================================

def record_competition_created(competition_type: str) -> None:
    COMPETITIONS_CREATED.labels(type=competition_type).inc()


def record_finalization(result: str, duration: float | None = None) -> None:
    """Record a finalization outcome and, when it did work, its latency."""
    FINALIZATIONS.labels(result=result).inc()
    if duration is not None:
        FINALIZE_LATENCY.observe(duration)


def record_reward_grant(success: bool) -> None:
    REWARD_GRANTS.labels(status="success" if success else "failed").inc()


def record_notifications(sent: int, failed: int) -> None:
    if sent:
        NOTIFICATIONS.labels(status="sent").inc(sent)
    if failed:
        NOTIFICATIONS.labels(status="failed").inc(failed)

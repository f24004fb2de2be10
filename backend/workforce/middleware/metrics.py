"""
Prometheus Metrics Middleware

HTTP metrics for the workforce API:
- Request latency by method, route template and status
- Request count by method, route template and status
- In-flight request gauge

Domain metrics live next to the code that records them:
    workforce.tasks.jobs            background_job_duration_seconds, background_job_failures_total
    workforce.services.fit_scoring  fit_scores_calculated_total, ai_fallbacks_total
    workforce.services.rate_limiter ai_rate_limiter_wait_seconds
    workforce.services.jira_sync    jira_syncs_total

All of them share the default registry and are exported by GET /metrics.
"""

import time
import logging
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CONTENT_TYPE_LATEST,
    generate_latest,
    REGISTRY,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"

# ==================== Prometheus Metrics ====================

# Scoring endpoints can wait on the AI rate limiter, hence the long tail buckets
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 30.0, 60.0]
)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of in-flight HTTP requests",
    ["method", "endpoint"]
)


def route_template(request: Request) -> str:
    """
    Route pattern for a request (/milestones/{milestone_id}/offer).

    Raw paths carry ids and would explode label cardinality.
    """
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return request.url.path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Records latency, count and in-flight gauge for every request except /metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        endpoint = route_template(request)
        if endpoint == METRICS_PATH:
            return await call_next(request)

        method = request.method
        ACTIVE_REQUESTS.labels(method=method, endpoint=endpoint).inc()
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        except Exception as e:
            logger.error(f"Unhandled error on {method} {endpoint}: {e}")
            raise
        finally:
            duration = time.perf_counter() - start_time
            REQUEST_LATENCY.labels(method=method, endpoint=endpoint, status=status).observe(duration)
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
            ACTIVE_REQUESTS.labels(method=method, endpoint=endpoint).dec()


def metrics_endpoint(request: Request) -> Response:
    return PlainTextResponse(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


def setup_metrics(app: FastAPI) -> None:
    """Install the middleware and expose GET /metrics."""
    app.add_middleware(PrometheusMiddleware)
    app.add_route(METRICS_PATH, metrics_endpoint, methods=["GET"])
    logger.info("Prometheus metrics configured")

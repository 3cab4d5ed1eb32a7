"""relsync – Instrumentation.

Structured logging setup and Prometheus metrics for the gateway and the
localization sync.
"""

import logging
import time
from typing import Callable

import structlog
from fastapi import APIRouter, FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)

router = APIRouter(tags=["monitoring"])

# --- HTTP ---

REQUEST_COUNT = Counter(
    "relsync_http_requests_total",
    "Total HTTP requests by method, endpoint and status",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "relsync_http_request_duration_seconds",
    "HTTP request latency by method and endpoint",
    ["method", "endpoint"],
)

# --- Localization sync ---

PROPAGATION_COUNT = Counter(
    "relsync_propagations_total",
    "Relation propagations by content type, direction and outcome",
    ["api", "direction", "status"],
)

FIELDS_SKIPPED = Counter(
    "relsync_fields_skipped_total",
    "Relation fields left out of a patch, by content type and relation category",
    ["api", "category"],
)

UPDATE_COUNT = Counter(
    "relsync_updates_total",
    "Patches written to the content store by content type and outcome",
    ["api", "status"],
)


@router.get("/metrics")
def metrics():
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def setup_logging(log_level: str = "info") -> None:
    """Configure structlog JSON output filtered at `log_level`."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def _endpoint_label(request: Request) -> str:
    """Route template of the matched route, so entry ids never become label values."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def setup_instrumentation(app: FastAPI, log_level: str = "info") -> None:
    """Configure logging and attach the request metrics middleware."""
    setup_logging(log_level)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            response = await call_next(request)
            status = str(response.status_code)
        except Exception:
            status = "500"
            raise
        finally:
            duration = time.time() - start_time
            endpoint = _endpoint_label(request)
            REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=status).inc()
            REQUEST_LATENCY.labels(method=request.method, endpoint=endpoint).observe(duration)

        return response

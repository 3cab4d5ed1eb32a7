"""relsync – Localization Sync Gateway.

Reverse proxy in front of the headless CMS. Create/update calls on
configured content types trigger relation propagation to sibling
localizations once the upstream response is back.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog
from fastapi import FastAPI, HTTPException, Request, Response

from relsync.core.instrumentation import router as metrics_router
from relsync.core.instrumentation import setup_instrumentation
from relsync.gateway import dependencies
from relsync.gateway.middleware import install_localization_sync

logger = structlog.get_logger()

VERSION = "1.0.0"

# Never forwarded in either direction
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
}

settings = dependencies.settings


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[type-arg]
    """Application lifespan: close upstream clients on shutdown."""
    logger.info(
        "gateway.startup",
        version=VERSION,
        env=settings.environment,
        upstream=settings.upstream_url,
        default_locale=dependencies.sync_config.default_locale,
        types=[t.api for t in dependencies.sync_config.types],
    )
    yield
    await dependencies.close_clients()
    logger.info("gateway.shutdown")


app = FastAPI(
    title="relsync Gateway",
    description="Keeps relation fields in sync across content localizations",
    version=VERSION,
    lifespan=lifespan,
)

setup_instrumentation(app, settings.log_level)
install_localization_sync(app, dependencies.sync_config, lambda: dependencies.get_propagator())

app.include_router(metrics_router)


# ──────────────────────────────────────────
# Health Endpoint
# ──────────────────────────────────────────


@app.get("/health")
async def health_check() -> dict[str, Any]:
    """Health endpoint – returns gateway and upstream status."""
    upstream_ok = await dependencies.get_store().health_check()
    return {
        "status": "ok" if upstream_ok else "degraded",
        "service": "relsync-gateway",
        "version": VERSION,
        "upstream": "reachable" if upstream_ok else "unreachable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ──────────────────────────────────────────
# Content API Proxy
# ──────────────────────────────────────────


def _forwardable(headers: Any, *, drop: frozenset[str] | set[str] = frozenset()) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in HOP_BY_HOP_HEADERS and k.lower() not in drop}


@app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def proxy(path: str, request: Request) -> Response:
    """Forward a content API request to the upstream CMS as-is."""
    upstream = dependencies.get_upstream()
    try:
        r = await upstream.request(
            request.method,
            f"/{path}",
            params=list(request.query_params.multi_items()),
            content=await request.body(),
            headers=_forwardable(request.headers),
        )
    except httpx.HTTPError as e:
        logger.error("gateway.upstream_unreachable", method=request.method, path=path, error=str(e))
        raise HTTPException(status_code=502, detail="Upstream CMS unreachable") from e

    # httpx already decoded the body
    return Response(
        content=r.content,
        status_code=r.status_code,
        headers=_forwardable(r.headers, drop={"content-encoding"}),
    )

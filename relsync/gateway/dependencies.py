"""Shared dependencies for the Gateway.

Centralizes singleton initialization: settings, content-type configuration,
the upstream clients and the localization propagator.
"""

import httpx
import structlog

from config.settings import get_settings
from relsync.core.content_types import load_sync_config
from relsync.i18n.propagator import LocalizationPropagator
from relsync.integrations.strapi import StrapiClient, build_client

logger = structlog.get_logger()
settings = get_settings()
sync_config = load_sync_config(settings.sync_config_path, default_locale=settings.default_locale or None)

_store: StrapiClient | None = None
_propagator: LocalizationPropagator | None = None
_upstream: httpx.AsyncClient | None = None


def get_store() -> StrapiClient:
    global _store
    if _store is None:
        _store = build_client(settings, sync_config)
    return _store


def get_propagator() -> LocalizationPropagator:
    global _propagator
    if _propagator is None:
        _propagator = LocalizationPropagator(
            store=get_store(),
            sync_config=sync_config,
            max_workers=settings.sync_max_workers,
        )
    return _propagator


def get_upstream() -> httpx.AsyncClient:
    """Plain client used to proxy API traffic to the CMS."""
    global _upstream
    if _upstream is None:
        _upstream = httpx.AsyncClient(base_url=settings.upstream_url.rstrip("/"), timeout=settings.upstream_timeout)
    return _upstream


async def close_clients() -> None:
    global _store, _propagator, _upstream
    if _store is not None:
        await _store.aclose()
    if _upstream is not None:
        await _upstream.aclose()
    _store = _propagator = _upstream = None
    logger.info("gateway.clients_closed")

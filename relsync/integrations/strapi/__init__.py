"""Strapi Integration Package."""

from relsync.core.content_types import SyncConfig
from relsync.integrations.strapi.client import StrapiClient, encode_query
from config.settings import Settings

__all__ = ["StrapiClient", "build_client", "encode_query"]


def build_client(settings: Settings, sync_config: SyncConfig) -> StrapiClient:
    """Create a StrapiClient routing every configured content type to its collection."""
    return StrapiClient(
        base_url=settings.upstream_url,
        api_token=settings.upstream_api_token,
        routes={t.api: t.collection for t in sync_config.types},
        timeout=settings.upstream_timeout,
    )

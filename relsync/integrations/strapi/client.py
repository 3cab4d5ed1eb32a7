"""Strapi REST API client – localized collection types.

Implements the content store used by the localization sync:
  - fetch_many: GET /api/{collection}?filters[id][$in]=...&locale=...&populate=...
  - update:     PUT /api/{collection}/{id}  {"data": {...}}

Responses are flattened from the v4 `data`/`attributes` envelope into plain
records. Auth: API token (Bearer).

Reference: https://docs.strapi.io/dev-docs/api/rest
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from relsync.core.store import ALL_LOCALES, Record
from relsync.integrations.normalizer import EntryNormalizer

logger = structlog.get_logger()

# Drafts and published entries alike
PUBLICATION_STATE_ALL = "preview"


def encode_query(params: dict[str, Any]) -> list[tuple[str, str]]:
    """Encode nested params with bracket notation (`populate[tags][populate]=*`)."""
    pairs: list[tuple[str, str]] = []

    def _walk(prefix: str, value: Any) -> None:
        if isinstance(value, dict):
            for key, item in value.items():
                _walk(f"{prefix}[{key}]" if prefix else str(key), item)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                _walk(f"{prefix}[{index}]", item)
        elif isinstance(value, bool):
            pairs.append((prefix, "true" if value else "false"))
        elif value is not None:
            pairs.append((prefix, str(value)))

    _walk("", params)
    return pairs


class StrapiClient:
    """Low-level Strapi REST client for localized entries.

    `routes` maps resource identifiers (e.g. `api::article.article`) to their
    REST collection path (e.g. `articles`).
    """

    API_PREFIX = "/api"

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        *,
        routes: dict[str, str] | None = None,
        timeout: float = 20.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            base_url: e.g. "https://cms.example.com"
            api_token: Strapi API token with find/update permissions
            routes: resource identifier → collection path
            timeout: HTTP request timeout in seconds
            http_client: pre-built client (tests, shared pools)
        """
        self.base_url = base_url.rstrip("/")
        self.routes = dict(routes or {})
        self._normalizer = EntryNormalizer()

        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=httpx.AsyncHTTPTransport(retries=3),
        )

    def _collection_path(self, resource: str) -> str:
        return f"{self.API_PREFIX}/{self.routes.get(resource, resource).strip('/')}"

    def _raise_with_body(self, r: httpx.Response) -> None:
        """Raise HTTPStatusError with the actual response body included."""
        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = r.text[:500]
            raise httpx.HTTPStatusError(f"{e} — Body: {body}", request=e.request, response=r) from e

    async def fetch_many(
        self,
        resource: str,
        *,
        ids: list[int],
        locale: str = ALL_LOCALES,
        populate: dict[str, Any] | None = None,
    ) -> list[Record]:
        """GET /api/{collection} filtered by id, any publication state."""
        if not ids:
            return []
        params: dict[str, Any] = {
            "filters": {"id": {"$in": list(ids)}},
            "locale": locale,
            "publicationState": PUBLICATION_STATE_ALL,
            "pagination": {"pageSize": max(len(ids), 25)},
        }
        if populate:
            params["populate"] = populate

        r = await self._client.get(self._collection_path(resource), params=encode_query(params))
        self._raise_with_body(r)
        records = self._normalizer.flatten(r.json())
        if not isinstance(records, list):
            records = [records] if records else []
        logger.debug("strapi.fetched", resource=resource, ids=list(ids), locale=locale, count=len(records))
        return records

    async def update(self, resource: str, record_id: int, data: dict[str, Any]) -> Record:
        """PUT /api/{collection}/{id} with a partial field patch."""
        r = await self._client.put(f"{self._collection_path(resource)}/{int(record_id)}", json={"data": data})
        self._raise_with_body(r)
        logger.debug("strapi.updated", resource=resource, id=record_id, fields=sorted(data))
        return self._normalizer.flatten(r.json()) if r.content else {}

    async def health_check(self) -> bool:
        """Check upstream reachability."""
        try:
            r = await self._client.get("/_health")
            return r.status_code < 500
        except httpx.HTTPError:
            logger.error("strapi.health_check_failed", url=self.base_url)
            return False

    async def aclose(self) -> None:
        await self._client.aclose()

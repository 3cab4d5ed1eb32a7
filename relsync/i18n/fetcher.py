"""Localization fetcher.

Read-only lookups of locale copies. Drafts are always included since the
save that triggered the sync may belong to an entry still being edited.
"""

from typing import Any

import structlog

from relsync.core.store import ALL_LOCALES, EntityStore, Record

logger = structlog.get_logger()


class LocalizationFetcher:
    """Fetches sibling and default-locale copies of a content entry."""

    def __init__(self, store: EntityStore, default_locale: str) -> None:
        self._store = store
        self.default_locale = default_locale

    async def fetch_siblings(
        self,
        api: str,
        ids: list[int],
        populate: dict[str, Any],
    ) -> list[Record]:
        """All locale copies whose id is in `ids`."""
        if not ids:
            return []
        return await self._store.fetch_many(api, ids=list(ids), locale=ALL_LOCALES, populate=populate)

    async def fetch_default(
        self,
        api: str,
        ids: list[int],
        populate: dict[str, Any],
    ) -> Record | None:
        """The default-locale copy among `ids`, or None when there is none.

        None means "abort propagation for this entry", not a failure.
        """
        records = []
        if ids:
            records = await self._store.fetch_many(
                api, ids=list(ids), locale=self.default_locale, populate=populate
            )
        if records:
            return records[0]

        logger.warning(
            "i18n.fetcher.default_missing",
            api=api,
            localizations=list(ids),
            default_locale=self.default_locale,
        )
        return None

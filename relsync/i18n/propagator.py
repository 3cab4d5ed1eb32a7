"""Localization propagator.

Runs once per accepted save: picks the reference localization and the
targets, builds one relation patch per target and writes it back.

  default locale saved  → saved entry is the reference, every sibling a target
  other locale saved    → default sibling is the reference, saved entry the target

Sibling targets are independent records, so they are patched concurrently
up to `max_workers` at a time.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog

from relsync.core.content_types import ContentTypeConfig, SyncConfig
from relsync.core.instrumentation import FIELDS_SKIPPED, PROPAGATION_COUNT, UPDATE_COUNT
from relsync.core.store import EntityStore, Record
from relsync.gateway.schemas import SavedEntry, SyncDirection
from relsync.i18n.fetcher import LocalizationFetcher
from relsync.i18n.patch_builder import Skipped, build_patch_report
from relsync.i18n.populate import build_populate

logger = structlog.get_logger()


@dataclass
class TargetOutcome:
    """What happened to one target localization."""

    id: int
    locale: str
    patch: dict[str, Any] = field(default_factory=dict)
    skipped: list[Skipped] = field(default_factory=list)
    updated: bool = False
    error: str | None = None


@dataclass
class PropagationReport:
    api: str
    source_id: int
    direction: SyncDirection | None = None
    aborted: bool = False
    targets: list[TargetOutcome] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.aborted:
            return "aborted"
        if self.direction is None:
            return "noop"
        if any(t.error for t in self.targets):
            return "partial"
        return "ok"


class LocalizationPropagator:
    """Keeps relation fields of all locale copies aligned with the default locale."""

    def __init__(self, store: EntityStore, sync_config: SyncConfig, max_workers: int = 4) -> None:
        self._store = store
        self._config = sync_config
        self._fetcher = LocalizationFetcher(store, sync_config.default_locale)
        self._max_workers = max(1, max_workers)

    @property
    def default_locale(self) -> str:
        return self._config.default_locale

    async def propagate(self, content_type: ContentTypeConfig, saved: SavedEntry) -> PropagationReport:
        """Synchronize relation fields after `saved` was created or updated."""
        report = PropagationReport(api=content_type.api, source_id=saved.id)
        if not saved.localizations:
            logger.debug("i18n.propagate.no_localizations", api=content_type.api, id=saved.id)
            return report

        populate = build_populate(content_type)
        if saved.locale == self.default_locale:
            report.direction = SyncDirection.OUTWARD
            await self._propagate_outward(content_type, saved, populate, report)
        else:
            report.direction = SyncDirection.INWARD
            await self._propagate_inward(content_type, saved, populate, report)

        PROPAGATION_COUNT.labels(
            api=content_type.api, direction=report.direction.value, status=report.status
        ).inc()
        logger.info(
            "i18n.propagate.completed",
            api=content_type.api,
            id=saved.id,
            direction=report.direction.value,
            status=report.status,
            targets=[t.locale for t in report.targets],
        )
        return report

    async def _propagate_outward(
        self,
        content_type: ContentTypeConfig,
        saved: SavedEntry,
        populate: dict[str, Any],
        report: PropagationReport,
    ) -> None:
        reference = await self._fetcher.fetch_default(content_type.api, [saved.id], populate)
        if reference is None:
            report.aborted = True
            return

        siblings = await self._fetcher.fetch_siblings(content_type.api, saved.sibling_ids, populate)
        semaphore = asyncio.Semaphore(self._max_workers)

        async def _bounded(target: Record) -> TargetOutcome:
            async with semaphore:
                return await self._apply(content_type, reference, target)

        report.targets = list(await asyncio.gather(*(_bounded(s) for s in siblings)))

    async def _propagate_inward(
        self,
        content_type: ContentTypeConfig,
        saved: SavedEntry,
        populate: dict[str, Any],
        report: PropagationReport,
    ) -> None:
        reference = await self._fetcher.fetch_default(content_type.api, saved.sibling_ids, populate)
        if reference is None:
            report.aborted = True
            return

        # The response body is rarely populated deep enough for dynamic zones
        fetched = await self._fetcher.fetch_siblings(content_type.api, [saved.id], populate)
        target = fetched[0] if fetched else {**saved.raw, "id": saved.id, "locale": saved.locale}
        report.targets = [await self._apply(content_type, reference, target)]

    async def _apply(
        self,
        content_type: ContentTypeConfig,
        reference: Record,
        target: Record,
    ) -> TargetOutcome:
        locale = target.get("locale", "")
        patch_report = build_patch_report(content_type, locale, reference, target)
        outcome = TargetOutcome(
            id=target["id"],
            locale=locale,
            patch=patch_report.patch,
            skipped=patch_report.skipped,
        )
        for skipped in patch_report.skipped:
            FIELDS_SKIPPED.labels(api=content_type.api, category=skipped.category).inc()

        if not outcome.patch:
            logger.info("i18n.propagate.nothing_to_apply", api=content_type.api, id=outcome.id, locale=locale)
            return outcome

        logger.info(
            "i18n.propagate.applying",
            api=content_type.api,
            id=outcome.id,
            locale=locale,
            fields=sorted(outcome.patch),
        )
        try:
            await self._store.update(content_type.api, outcome.id, outcome.patch)
        except Exception as e:
            outcome.error = str(e)
            UPDATE_COUNT.labels(api=content_type.api, status="failed").inc()
            logger.error(
                "i18n.propagate.update_failed",
                api=content_type.api,
                id=outcome.id,
                locale=locale,
                error=str(e),
            )
            return outcome

        outcome.updated = True
        UPDATE_COUNT.labels(api=content_type.api, status="ok").inc()
        return outcome

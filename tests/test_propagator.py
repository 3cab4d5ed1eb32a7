"""Localization propagator tests.

Uses the in-memory store; no CMS needed.
"""

import asyncio

import pytest

from relsync.core.content_types import ContentTypeConfig, SyncConfig
from relsync.gateway.schemas import SavedEntry, SyncDirection
from relsync.i18n.propagator import LocalizationPropagator
from tests.fakes import InMemoryStore

API = "api::article.article"


def _entry(entry_id: int, locale: str, siblings: dict[str, int], **fields):
    return {
        "id": entry_id,
        "locale": locale,
        "localizations": [{"id": sid, "locale": loc} for loc, sid in siblings.items()],
        **fields,
    }


def _tag(entry_id: int, **counterparts):
    return {
        "id": entry_id,
        "localizations": [{"id": cid, "locale": loc} for loc, cid in counterparts.items()],
    }


EN = _entry(1, "en", {"fr": 2, "de": 3}, author=_tag(5, fr=6), tags=[_tag(10, fr=20, de=30), _tag(11, de=31)])
FR = _entry(2, "fr", {"en": 1, "de": 3}, author=None, tags=[])
DE = _entry(3, "de", {"en": 1, "fr": 2}, author=None, tags=[])


@pytest.fixture
def content_type() -> ContentTypeConfig:
    return ContentTypeConfig(api=API, endpoint="articles", root_relations=("author", "tags"))


@pytest.fixture
def sync_config(content_type) -> SyncConfig:
    return SyncConfig(default_locale="en", types=(content_type,))


@pytest.fixture
def seeded_store() -> InMemoryStore:
    return InMemoryStore([EN, FR, DE])


class TestOutwardPropagation:
    """Default-locale save → every sibling is patched."""

    @pytest.mark.anyio
    async def test_every_sibling_gets_its_counterparts(self, seeded_store, sync_config, content_type) -> None:
        propagator = LocalizationPropagator(seeded_store, sync_config)
        report = await propagator.propagate(content_type, SavedEntry.from_record(EN))

        assert report.direction is SyncDirection.OUTWARD
        assert report.status == "ok"
        updates = {record_id: data for _, record_id, data in seeded_store.updates}
        assert updates == {
            2: {"author": 6, "tags": [20]},
            3: {"tags": [30, 31]},
        }

    @pytest.mark.anyio
    async def test_skipped_fields_are_reported_per_target(self, seeded_store, sync_config, content_type) -> None:
        propagator = LocalizationPropagator(seeded_store, sync_config)
        report = await propagator.propagate(content_type, SavedEntry.from_record(EN))

        by_locale = {t.locale: t for t in report.targets}
        assert [s.field for s in by_locale["de"].skipped] == ["author"]
        assert by_locale["fr"].skipped == []
        assert all(t.updated for t in report.targets)

    @pytest.mark.anyio
    async def test_missing_default_copy_aborts(self, sync_config, content_type) -> None:
        store = InMemoryStore([FR, DE])
        propagator = LocalizationPropagator(store, sync_config)

        report = await propagator.propagate(content_type, SavedEntry.from_record(EN))

        assert report.aborted is True
        assert report.status == "aborted"
        assert store.updates == []

    @pytest.mark.anyio
    async def test_failed_update_does_not_block_other_locales(self, seeded_store, sync_config, content_type) -> None:
        seeded_store.fail_updates_for = {2}
        propagator = LocalizationPropagator(seeded_store, sync_config)

        report = await propagator.propagate(content_type, SavedEntry.from_record(EN))

        by_id = {t.id: t for t in report.targets}
        assert by_id[2].updated is False
        assert "rejected" in by_id[2].error
        assert by_id[3].updated is True
        assert report.status == "partial"

    @pytest.mark.anyio
    async def test_concurrency_is_bounded_by_max_workers(self, sync_config, content_type) -> None:
        siblings = {f"l{i}": 100 + i for i in range(6)}
        source = _entry(1, "en", siblings, author={"id": 5}, tags=[])
        records = [source] + [_entry(sid, loc, {"en": 1}) for loc, sid in siblings.items()]

        class SlowStore(InMemoryStore):
            in_flight = 0
            peak = 0

            async def update(self, resource, record_id, data):
                SlowStore.in_flight += 1
                SlowStore.peak = max(SlowStore.peak, SlowStore.in_flight)
                await asyncio.sleep(0.01)
                SlowStore.in_flight -= 1
                return await super().update(resource, record_id, data)

        store = SlowStore(records)
        propagator = LocalizationPropagator(store, sync_config, max_workers=2)

        report = await propagator.propagate(content_type, SavedEntry.from_record(source))

        assert len(report.targets) == 6
        assert len(store.updates) == 6
        assert SlowStore.peak <= 2


class TestInwardPropagation:
    """Non-default save → the saved entry pulls relations from the default copy."""

    @pytest.mark.anyio
    async def test_saved_entry_is_the_only_target(self, seeded_store, sync_config, content_type) -> None:
        propagator = LocalizationPropagator(seeded_store, sync_config)
        report = await propagator.propagate(content_type, SavedEntry.from_record(FR))

        assert report.direction is SyncDirection.INWARD
        assert seeded_store.updates == [(API, 2, {"author": 6, "tags": [20]})]
        assert seeded_store.fetch_calls[0]["ids"] == [1, 3]
        assert seeded_store.fetch_calls[0]["locale"] == "en"

    @pytest.mark.anyio
    async def test_missing_default_copy_aborts(self, sync_config, content_type) -> None:
        store = InMemoryStore([FR, DE])
        propagator = LocalizationPropagator(store, sync_config)

        report = await propagator.propagate(content_type, SavedEntry.from_record(FR))

        assert report.aborted is True
        assert store.updates == []

    @pytest.mark.anyio
    async def test_response_body_is_used_when_target_cannot_be_refetched(self, sync_config, content_type) -> None:
        store = InMemoryStore([EN])
        propagator = LocalizationPropagator(store, sync_config)

        report = await propagator.propagate(content_type, SavedEntry.from_record(DE))

        assert report.targets[0].locale == "de"
        assert store.updates == [(API, 3, {"tags": [30, 31]})]


@pytest.mark.anyio
async def test_entry_without_localizations_is_a_noop(seeded_store, sync_config, content_type) -> None:
    propagator = LocalizationPropagator(seeded_store, sync_config)
    lonely = {"id": 9, "locale": "en", "localizations": []}

    report = await propagator.propagate(content_type, SavedEntry.from_record(lonely))

    assert report.status == "noop"
    assert seeded_store.fetch_calls == []


@pytest.mark.anyio
async def test_empty_patch_is_not_written(sync_config) -> None:
    content_type = ContentTypeConfig(api=API, root_relations=("author",))
    store = InMemoryStore([_entry(1, "en", {"fr": 2}, author=None), _entry(2, "fr", {"en": 1})])
    propagator = LocalizationPropagator(store, sync_config)

    report = await propagator.propagate(content_type, SavedEntry.from_record(store.get(1)))

    assert store.updates == []
    assert report.targets[0].updated is False

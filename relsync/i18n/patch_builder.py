"""Relation patch builder.

Given the reference localization (whose relation values are authoritative)
and a target locale, computes the partial update that points the target's
relation fields at the locale-appropriate counterparts.

Three relation shapes are handled, each by its own resolver:

  - root:      relation field declared on the entry itself
  - component: relation inside every element of a repeatable component
  - dynamic:   relation inside entries of one component kind in a dynamic
               zone, optionally one level down in a nested repeatable

Every resolver yields a `Resolved` or `Skipped` outcome. Outcomes are folded
into a fresh patch; a skipped field is logged and left out so one broken
relation never blocks the rest of the entry.
"""

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Iterable, Union

import structlog

from relsync.core.content_types import ContentTypeConfig, DynamicRelation

logger = structlog.get_logger()

ROOT = "root"
COMPONENT = "component"
DYNAMIC = "dynamic"


class RelationResolutionError(Exception):
    """A relation value cannot be mapped onto the target locale."""


@dataclass(frozen=True)
class Resolved:
    field: str
    value: Any


@dataclass(frozen=True)
class Skipped:
    field: str
    category: str
    reason: str
    level: str = "debug"


FieldOutcome = Union[Resolved, Skipped]


@dataclass
class PatchReport:
    """Patch for one target locale plus every field that was left out."""

    locale: str
    patch: dict[str, Any] = field(default_factory=dict)
    skipped: list[Skipped] = field(default_factory=list)


# ──────────────────────────────────────────
# Relation helpers
# ──────────────────────────────────────────


def is_localized(relation: Any) -> bool:
    """A related entry is localized when it carries a `localizations` list.

    An empty list still counts: the related type is localized, the entry
    just has no translations yet.
    """
    return isinstance(relation, dict) and relation.get("localizations") is not None


def find_counterpart(relation: dict[str, Any], locale: str) -> dict[str, Any] | None:
    """Linear scan of the related entry's localizations for `locale`."""
    for localization in relation.get("localizations") or []:
        if isinstance(localization, dict) and localization.get("locale") == locale:
            return localization
    return None


def relation_id(relation: Any) -> Any:
    if isinstance(relation, dict):
        return relation.get("id")
    return relation


def first_relation(relations: Iterable[Any]) -> Any:
    """First relation value that is set; it decides the localized status of the whole list."""
    return next((relation for relation in relations if relation is not None), None)


def is_component_kind(entry: Any, component: str) -> bool:
    """Dynamic-zone entries are tagged by `__component`; the kind matches as a substring."""
    return isinstance(entry, dict) and component in (entry.get("__component") or "")


def align_zone_entry(reference_zone: list[Any], index: int, component: str) -> dict[str, Any] | None:
    """Find the reference entry corresponding to the target entry at `index`.

    Zone entries correspond by position, so both locales must hold the same
    zone layout. Returns None when the reference entry at that position is
    absent or of another kind.
    """
    if index >= len(reference_zone):
        return None
    candidate = reference_zone[index]
    if not is_component_kind(candidate, component):
        return None
    return candidate


# ──────────────────────────────────────────
# Resolvers
# ──────────────────────────────────────────


def _resolve_root(relation_field: str, reference: dict[str, Any], locale: str) -> FieldOutcome:
    value = reference.get(relation_field)
    if value is None:
        return Skipped(relation_field, ROOT, "reference has no value")

    if isinstance(value, list):
        # to-many: entries without a translation yet are dropped, the rest still sync
        if is_localized(first_relation(value)):
            ids = []
            for relation in value:
                counterpart = find_counterpart(relation, locale) if isinstance(relation, dict) else None
                if counterpart is not None and counterpart.get("id") is not None:
                    ids.append(counterpart["id"])
        else:
            ids = [relation_id(relation) for relation in value if relation_id(relation) is not None]
        return Resolved(relation_field, ids)

    if is_localized(value):
        counterpart = find_counterpart(value, locale)
        if counterpart is None:
            raise RelationResolutionError(
                f'Relation "{relation_field}" (id {relation_id(value)}) has no "{locale}" localization'
            )
        new_id = counterpart.get("id")
    else:
        new_id = relation_id(value)

    if new_id is None:
        return Skipped(relation_field, ROOT, "resolved to an empty relation")
    return Resolved(relation_field, new_id)


def _resolve_component(
    component_field: str,
    relation_field: str,
    reference: dict[str, Any],
    locale: str,
) -> FieldOutcome:
    items = reference.get(component_field)
    if items is None:
        return Skipped(component_field, COMPONENT, "reference has no value")

    if not isinstance(items, list):
        return Skipped(
            component_field,
            COMPONENT,
            f'Component "{component_field}" is not repeatable. '
            "Set up non-repeatable relations at the content type's root level.",
            level="warning",
        )
    if not items:
        return Skipped(component_field, COMPONENT, "component list is empty")

    probe = first_relation(item.get(relation_field) for item in items if isinstance(item, dict))
    if probe is None:
        return Skipped(
            component_field,
            COMPONENT,
            f'No element of component "{component_field}" sets "{relation_field}"; '
            "localization status cannot be determined.",
            level="warning",
        )
    if isinstance(probe, list):
        return Skipped(
            component_field,
            COMPONENT,
            f'Relation "{relation_field}" in component "{component_field}" is to-many. '
            "Only one-to-one or one-to-many relations are supported inside repeatable components.",
            level="warning",
        )

    localized = is_localized(probe)
    rows: list[dict[str, Any]] = []
    for item in items:
        relation = item.get(relation_field) if isinstance(item, dict) else None
        if relation is None:
            rows.append({})
        elif localized:
            counterpart = find_counterpart(relation, locale)
            rows.append({relation_field: counterpart["id"]} if counterpart else {})
        else:
            rows.append({relation_field: relation_id(relation)})
    # Same length and order as the reference: orderable lists depend on it
    return Resolved(component_field, rows)


def _leaf_id(relation: Any, locale: str, localized: bool, relation_field: str) -> Any:
    if relation is None:
        raise RelationResolutionError(f'Reference relation "{relation_field}" is empty')
    if not localized:
        return relation_id(relation)
    counterpart = find_counterpart(relation, locale) if isinstance(relation, dict) else None
    if counterpart is None:
        raise RelationResolutionError(
            f'Relation "{relation_field}" (id {relation_id(relation)}) has no "{locale}" localization'
        )
    return counterpart["id"]


def _rewrite_zone_entry(
    entry: dict[str, Any],
    reference_entry: dict[str, Any],
    relation: DynamicRelation,
    locale: str,
    localized: bool,
) -> dict[str, Any]:
    leaf = partial(_leaf_id, locale=locale, localized=localized, relation_field=relation.relation_field)

    if not relation.repeating_component_field:
        new_id = leaf(reference_entry.get(relation.relation_field))
        # Localized single relations are written as a bare id, everything else as {"id": ...}
        return {**entry, relation.relation_field: new_id if localized else {"id": new_id}}

    nested_field = relation.repeating_component_field
    nested_items = entry.get(nested_field)
    if not isinstance(nested_items, list):
        return entry
    reference_items = reference_entry.get(nested_field) or []

    rewritten = []
    for index, item in enumerate(nested_items):
        if index >= len(reference_items) or not isinstance(item, dict):
            logger.error(
                "i18n.patch.nested_component_misaligned",
                relation_field=relation.relation_field,
                component=relation.component,
                nested_field=nested_field,
                index=index,
                locale=locale,
            )
            rewritten.append(item)
            continue
        reference_relation = reference_items[index].get(relation.relation_field) if isinstance(
            reference_items[index], dict
        ) else None
        rewritten.append({**item, relation.relation_field: {"id": leaf(reference_relation)}})
    return {**entry, nested_field: rewritten}


def _resolve_dynamic(
    relation: DynamicRelation,
    reference: dict[str, Any],
    locale: str,
    current_zone: Any,
) -> FieldOutcome:
    zone_field = relation.dynamic_field
    reference_zone = reference.get(zone_field)
    if not reference_zone:
        return Skipped(zone_field, DYNAMIC, "reference has no dynamic zone entries")
    if current_zone is None:
        return Skipped(zone_field, DYNAMIC, "target has no dynamic zone")
    if not isinstance(reference_zone, list) or not isinstance(current_zone, list):
        return Skipped(zone_field, DYNAMIC, "dynamic zone is not a list", level="warning")

    matches = [e for e in reference_zone if is_component_kind(e, relation.component)]
    if not matches:
        return Skipped(zone_field, DYNAMIC, f'reference has no "{relation.component}" entries')

    if relation.repeating_component_field:
        candidates = (
            item.get(relation.relation_field)
            for entry in matches
            for item in entry.get(relation.repeating_component_field) or []
            if isinstance(item, dict)
        )
    else:
        candidates = (entry.get(relation.relation_field) for entry in matches)
    probe = first_relation(candidates)
    if probe is None:
        return Skipped(
            zone_field,
            DYNAMIC,
            f'No "{relation.component}" entry sets "{relation.relation_field}"; '
            "localization status cannot be determined.",
            level="warning",
        )
    localized = is_localized(probe)

    rewritten = []
    for index, entry in enumerate(current_zone):
        if not is_component_kind(entry, relation.component):
            rewritten.append(entry)
            continue

        reference_entry = align_zone_entry(reference_zone, index, relation.component)
        if reference_entry is None:
            logger.error(
                "i18n.patch.dynamic_zone_misaligned",
                dynamic_field=zone_field,
                component=relation.component,
                relation_field=relation.relation_field,
                index=index,
                locale=locale,
                hint="Update other locales with matching dynamic zone entries to resolve.",
            )
            rewritten.append(entry)
            continue

        rewritten.append(_rewrite_zone_entry(entry, reference_entry, relation, locale, localized))

    return Resolved(zone_field, rewritten)


# ──────────────────────────────────────────
# Builder
# ──────────────────────────────────────────


def _guard(category: str, field_name: str, resolve: Callable[[], FieldOutcome]) -> FieldOutcome:
    try:
        return resolve()
    except Exception as e:
        return Skipped(field_name, category, f"{type(e).__name__}: {e}", level="error")


def _fold(report: PatchReport, outcome: FieldOutcome) -> None:
    if isinstance(outcome, Resolved):
        report.patch = {**report.patch, outcome.field: outcome.value}
        return
    report.skipped.append(outcome)
    log = getattr(logger, outcome.level)
    log(
        "i18n.patch.field_skipped",
        field=outcome.field,
        category=outcome.category,
        locale=report.locale,
        reason=outcome.reason,
    )


def build_patch_report(
    config: ContentTypeConfig,
    target_locale: str,
    reference: dict[str, Any],
    target_current: dict[str, Any] | None = None,
) -> PatchReport:
    """Build the relation patch for `target_locale` and report skipped fields.

    Args:
        config: Relation descriptors of the content type.
        target_locale: Locale code of the entry being updated.
        reference: Authoritative localization (default locale), fully populated.
        target_current: Current state of the target entry. Only needed for
            dynamic zones, whose untouched entries must be carried over.
    """
    report = PatchReport(locale=target_locale)

    for relation_field in config.root_relations:
        _fold(report, _guard(ROOT, relation_field, partial(_resolve_root, relation_field, reference, target_locale)))

    for component in config.component_relations:
        resolve = partial(
            _resolve_component, component.component_field, component.relation_field, reference, target_locale
        )
        _fold(report, _guard(COMPONENT, component.component_field, resolve))

    for relation in config.dynamic_relations:
        if target_current is None:
            _fold(report, Skipped(relation.dynamic_field, DYNAMIC, "target localization not supplied"))
            continue
        # Descriptors sharing a zone build on each other's output
        current_zone = report.patch.get(relation.dynamic_field, target_current.get(relation.dynamic_field))
        resolve = partial(_resolve_dynamic, relation, reference, target_locale, current_zone)
        _fold(report, _guard(DYNAMIC, relation.dynamic_field, resolve))

    return report


def build_patch(
    config: ContentTypeConfig,
    target_locale: str,
    reference: dict[str, Any],
    target_current: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Relation patch for `target_locale`; see `build_patch_report`."""
    return build_patch_report(config, target_locale, reference, target_current).patch

"""Population descriptor builder.

Derives the query population needed to fetch every configured relation
together with the related entries' own `localizations`.
"""

from typing import Any

from relsync.core.content_types import ContentTypeConfig

POPULATE_ALL = "*"


def _expand_all() -> dict[str, Any]:
    return {"populate": POPULATE_ALL}


def _root_population(fields: tuple[str, ...]) -> dict[str, Any]:
    return {field: _expand_all() for field in fields}


def _component_population(config: ContentTypeConfig) -> dict[str, Any]:
    return {
        relation.component_field: {"populate": {relation.relation_field: _expand_all()}}
        for relation in config.component_relations
    }


def _dynamic_population(config: ContentTypeConfig) -> dict[str, Any]:
    zones: dict[str, dict[str, Any]] = {}
    for relation in config.dynamic_relations:
        inner = dict(zones.get(relation.dynamic_field, {}))
        leaf = {relation.relation_field: _expand_all()}

        if relation.repeating_component_field:
            nested = inner.get(relation.repeating_component_field, {}).get("populate", {})
            inner[relation.repeating_component_field] = {"populate": {**nested, **leaf}}
        else:
            inner.update(leaf)

        zones[relation.dynamic_field] = inner

    return {field: {"populate": inner} for field, inner in zones.items()}


def build_populate(config: ContentTypeConfig) -> dict[str, Any]:
    """Build the population mapping for a content type.

    Root relations are expanded fully; component relations reach their
    nested relation; dynamic-zone descriptors sharing a zone (and a nested
    repeatable inside it) merge into one entry.
    """
    populate: dict[str, Any] = {}
    populate.update(_root_population(config.root_relations))
    populate.update(_component_population(config))
    populate.update(_dynamic_population(config))
    return populate

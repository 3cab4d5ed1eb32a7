"""relsync – Content-type relation descriptors.

Declarative configuration telling the sync engine which relation fields of a
content type must follow the default locale. Loaded once from
`config/content_types.yaml` and never mutated afterwards.
"""

from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = structlog.get_logger()


class ConfigurationError(Exception):
    """Raised when the content-type configuration cannot be loaded."""


class _Descriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class ComponentRelation(_Descriptor):
    """Relation inside a repeatable component (an orderable relation list)."""

    component_field: str = Field(..., alias="componentField")
    relation_field: str = Field(..., alias="relationField")


class DynamicRelation(_Descriptor):
    """Relation inside one component kind of a dynamic zone.

    `component` is matched as a substring of each zone entry's `__component`
    tag. `repeating_component_field` names an optional repeatable component
    nested inside the zone entry that holds the relation.
    """

    dynamic_field: str = Field(..., alias="dynamicField")
    component: str = Field(..., alias="componentField")
    repeating_component_field: str | None = Field(default=None, alias="repeatingComponentField")
    relation_field: str = Field(..., alias="relationField")


class ContentTypeConfig(_Descriptor):
    """Relation descriptors of one content type."""

    api: str
    endpoint: str | None = None
    root_relations: tuple[str, ...] = Field(default=(), alias="rootRelations")
    component_relations: tuple[ComponentRelation, ...] = Field(default=(), alias="componentRelations")
    dynamic_relations: tuple[DynamicRelation, ...] = Field(default=(), alias="dynamicRelations")

    @property
    def collection(self) -> str:
        """REST collection path on the upstream CMS."""
        return self.endpoint or self.api

    def matches(self, path: str) -> bool:
        """True for admin paths naming `api` and REST paths under the collection."""
        if self.api in path:
            return True
        if not self.endpoint:
            return False
        prefix = f"/api/{self.endpoint.strip('/')}"
        return path == prefix or path.startswith(prefix + "/")


class SyncConfig(_Descriptor):
    """Default locale plus the ordered list of handled content types."""

    default_locale: str = Field(default="en", alias="defaultLocale")
    types: tuple[ContentTypeConfig, ...] = ()

    def match(self, path: str) -> ContentTypeConfig | None:
        """Return the first content type handling `path`."""
        for content_type in self.types:
            if content_type.matches(path):
                return content_type
        return None

    def get(self, api: str) -> ContentTypeConfig | None:
        for content_type in self.types:
            if content_type.api == api:
                return content_type
        return None


def parse_sync_config(raw: dict, default_locale: str | None = None) -> SyncConfig:
    """Validate a raw mapping into a SyncConfig.

    Args:
        raw: Mapping as found in the YAML file.
        default_locale: Optional override for the file's `defaultLocale`.

    Raises:
        ConfigurationError: If the mapping does not describe valid content types.
    """
    data = dict(raw or {})
    if default_locale:
        data.pop("default_locale", None)
        data["defaultLocale"] = default_locale
    try:
        return SyncConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid content-type configuration: {e}") from e


def load_sync_config(path: str | Path, default_locale: str | None = None) -> SyncConfig:
    """Load and validate the content-type configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Content-type configuration not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Content-type configuration is not valid YAML: {path}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Content-type configuration must be a mapping: {path}")

    config = parse_sync_config(raw, default_locale=default_locale)
    logger.info(
        "i18n.config.loaded",
        path=str(path),
        default_locale=config.default_locale,
        types=[t.api for t in config.types],
    )
    return config

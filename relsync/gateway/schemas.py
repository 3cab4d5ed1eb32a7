"""relsync – Gateway Schemas.

Pydantic models for the payloads the localization sync reads from content
API responses.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SyncDirection(str, Enum):
    """Which way relation values flow for a given save."""

    OUTWARD = "outward"  # default locale saved → every sibling updated
    INWARD = "inward"  # other locale saved → saved entry pulls from default


class LocalizationRef(BaseModel):
    """One sibling locale copy of a content entry."""

    model_config = ConfigDict(extra="ignore")

    id: int
    locale: str


class SavedEntry(BaseModel):
    """The entry returned by a create/update request.

    Only identity and locale data is modelled; relation fields stay in
    `raw` for use as a fallback target.
    """

    model_config = ConfigDict(extra="ignore")

    id: int = Field(..., description="Entry id")
    locale: str = Field(..., description="Locale code of the saved copy")
    localizations: list[LocalizationRef] = Field(default_factory=list, description="Sibling locale copies")
    raw: dict = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_record(cls, record: dict) -> "SavedEntry":
        return cls.model_validate({**record, "raw": record})

    @property
    def sibling_ids(self) -> list[int]:
        return [ref.id for ref in self.localizations]

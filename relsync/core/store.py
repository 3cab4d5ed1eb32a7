"""relsync – Storage collaborator interface.

The sync engine only ever needs two operations from the content store:
fetch records by id (any publication state) and patch a record by id.
"""

from typing import Any, Protocol

Record = dict[str, Any]

ALL_LOCALES = "all"


class EntityStore(Protocol):
    """Query/mutation boundary consumed by the localization sync."""

    async def fetch_many(
        self,
        resource: str,
        *,
        ids: list[int],
        locale: str = ALL_LOCALES,
        populate: dict[str, Any] | None = None,
    ) -> list[Record]:
        """Return drafts and published records of `resource` whose id is in `ids`."""
        ...

    async def update(self, resource: str, record_id: int, data: dict[str, Any]) -> Record:
        """Apply a partial field patch to one record."""
        ...

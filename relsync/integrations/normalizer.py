"""relsync – Content Payload Normalizer.

Strapi-style REST responses wrap entries as `{"data": {"id", "attributes"}}`
and relations as `{"data": ...}`. The sync engine works on flat records:
`{"id", "locale", "localizations": [...], <fields>}`. Flat payloads (entity
service output, webhooks) pass through unchanged.
"""

import json
from typing import Any

import structlog
from pydantic import ValidationError

from relsync.gateway.schemas import SavedEntry

logger = structlog.get_logger()

_ENVELOPE_KEYS = {"data", "meta"}


def _is_envelope(value: dict[str, Any]) -> bool:
    return "data" in value and set(value) <= _ENVELOPE_KEYS


class EntryNormalizer:
    """Flattens REST envelopes into plain records."""

    def flatten(self, value: Any) -> Any:
        """Recursively unwrap `data` envelopes and `attributes` blocks."""
        if isinstance(value, list):
            return [self.flatten(item) for item in value]
        if not isinstance(value, dict):
            return value
        if _is_envelope(value):
            return self.flatten(value["data"])
        if "attributes" in value and "id" in value:
            attributes = value.get("attributes") or {}
            return {"id": value["id"], **{k: self.flatten(v) for k, v in attributes.items()}}
        return {k: self.flatten(v) for k, v in value.items()}

    def saved_entry(self, body: bytes | str | dict[str, Any]) -> SavedEntry | None:
        """Extract the saved entry from a create/update response body.

        Returns None when the body is not a single JSON entry with a locale.
        """
        if isinstance(body, (bytes, str)):
            try:
                body = json.loads(body or b"null")
            except (ValueError, UnicodeDecodeError):
                logger.debug("normalizer.not_json")
                return None

        record = self.flatten(body)
        if not isinstance(record, dict):
            return None
        try:
            entry = SavedEntry.from_record(record)
        except ValidationError as e:
            logger.debug("normalizer.not_an_entry", errors=e.error_count())
            return None

        logger.debug(
            "normalizer.entry",
            id=entry.id,
            locale=entry.locale,
            localizations=entry.sibling_ids,
        )
        return entry

# listening_stats/overlay.py

"""User-supplied track metadata, keyed by track identity and persisted."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace
from typing import Any

from listening_stats.domain.models import (
    IDENTITY_SEPARATOR,
    METADATA_FIELDS,
    PlayEvent,
    TrackIdentity,
    parse_duration,
)
from listening_stats.exceptions import PersistenceError
from listening_stats.io.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "trackMetadata"


def normalize_fields(fields: Mapping[str, Any]) -> dict[str, int | str | None]:
    """Validate a partial metadata mapping.

    Durations become whole seconds, text fields are trimmed, and empty values
    become None (meaning "clear this field").

    Raises:
        ValueError: on an unknown field name or an invalid duration.
    """
    unknown = sorted(set(fields) - set(METADATA_FIELDS))
    if unknown:
        msg = f"Unknown metadata fields: {', '.join(unknown)}"
        raise ValueError(msg)

    normalized: dict[str, int | str | None] = {}
    for name, value in fields.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            normalized[name] = None
        elif name == "duration":
            seconds = parse_duration(value)
            if seconds is None:
                msg = f"Invalid duration: {value!r}"
                raise ValueError(msg)
            normalized[name] = seconds
        else:
            normalized[name] = str(value).strip()
    return normalized


def _entry_from_raw(raw: Any) -> dict[str, int | str]:
    """Read a stored entry, tolerating the legacy all-string format."""
    if not isinstance(raw, dict):
        return {}

    entry: dict[str, int | str] = {}
    for name in METADATA_FIELDS:
        value = raw.get(name)
        if name == "duration":
            seconds = parse_duration(value)
            if seconds is not None:
                entry[name] = seconds
        elif isinstance(value, str) and value.strip():
            entry[name] = value.strip()
    return entry


class MetadataOverlay:
    """Identity-keyed metadata backed by a KeyValueStore.

    The whole map is loaded once on construction and rewritten in full on
    every save.
    """

    def __init__(self, store: KeyValueStore, *, storage_key: str = STORAGE_KEY) -> None:
        self._store = store
        self._storage_key = storage_key
        self._entries: dict[str, dict[str, int | str]] = self._load()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, TrackIdentity) and identity.key in self._entries

    def entries(self) -> Iterator[tuple[TrackIdentity, dict[str, int | str]]]:
        for key, entry in self._entries.items():
            yield TrackIdentity.from_key(key), dict(entry)

    def get(self, identity: TrackIdentity) -> dict[str, int | str]:
        return dict(self._entries.get(identity.key, {}))

    def apply_to(self, records: Iterable[PlayEvent]) -> list[PlayEvent]:
        """Return copies of records with missing fields filled from the overlay.

        A record's own value always wins over the overlay.
        """
        result: list[PlayEvent] = []
        for record in records:
            entry = self._entries.get(record.identity.key)
            if not entry:
                result.append(record)
                continue
            missing = {
                name: value
                for name, value in entry.items()
                if getattr(record, name) is None
            }
            result.append(replace(record, **missing) if missing else record)
        return result

    def merge(
        self,
        identity: TrackIdentity,
        fields: Mapping[str, Any],
    ) -> dict[str, int | str | None]:
        """Merge fields into the in-memory entry without persisting."""
        normalized = normalize_fields(fields)
        entry = self._entries.setdefault(identity.key, {})
        for name, value in normalized.items():
            if value is None:
                entry.pop(name, None)
            else:
                entry[name] = value
        return normalized

    def save(self) -> None:
        """Write the full overlay to the store.

        Raises:
            PersistenceError: if the store write fails for any reason.
        """
        payload = json.dumps(self._entries, ensure_ascii=False)
        try:
            self._store.set(self._storage_key, payload)
        except Exception as exc:
            logger.error("Could not persist track metadata: %s", exc)
            msg = f"Could not persist track metadata: {exc}"
            raise PersistenceError(msg) from exc
        logger.debug("Persisted metadata for %d tracks.", len(self._entries))

    def update(self, identity: TrackIdentity, fields: Mapping[str, Any]) -> None:
        self.merge(identity, fields)
        self.save()

    def _load(self) -> dict[str, dict[str, int | str]]:
        raw = self._store.get(self._storage_key)
        if not raw:
            return {}

        try:
            obj = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring invalid stored track metadata: %s", exc)
            return {}
        if not isinstance(obj, dict):
            logger.warning("Ignoring stored track metadata: not a JSON object.")
            return {}

        entries: dict[str, dict[str, int | str]] = {}
        for key, value in obj.items():
            if not isinstance(key, str) or key.count(IDENTITY_SEPARATOR) < 2:
                logger.warning("Skipping stored metadata with invalid key %r.", key)
                continue
            entries[key] = _entry_from_raw(value)

        logger.debug("Loaded metadata for %d tracks.", len(entries))
        return entries

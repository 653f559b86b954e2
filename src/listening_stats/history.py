# listening_stats/history.py

"""In-memory listening history with a persisted metadata overlay."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

from listening_stats.analysis.statistics import analyze
from listening_stats.domain.models import PlayEvent, Statistics, TrackIdentity
from listening_stats.io.history_csv import (
    HistoryTable,
    parse_history_csv,
    serialize_history_csv,
    write_history_csv,
)
from listening_stats.io.kv_store import InMemoryStore, KeyValueStore
from listening_stats.overlay import MetadataOverlay

logger = logging.getLogger(__name__)


class ListeningHistory:
    """Owns the loaded play events and the metadata overlay.

    Typical flow: `load_csv` (or `load_file`), then `analyze`; after any
    `update` call `analyze` again for a fresh snapshot. Nothing is
    recomputed automatically.
    """

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self._overlay = MetadataOverlay(store if store is not None else InMemoryStore())
        self._table: HistoryTable | None = None
        self._records: list[PlayEvent] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def overlay(self) -> MetadataOverlay:
        return self._overlay

    @property
    def records(self) -> tuple[PlayEvent, ...]:
        """Copies of the current records, in input order."""
        return tuple(replace(r) for r in self._records)

    def load_csv(self, text: str) -> int:
        """Replace the history with parsed CSV text.

        Stored metadata is applied to the new records. On any parse error the
        previous history is kept unchanged.

        Returns:
            The number of records loaded.
        """
        table = parse_history_csv(text)
        records = self._overlay.apply_to(table.records)

        self._table = table
        self._records = records
        logger.info(
            "Loaded %d plays (%d with stored metadata).",
            len(records),
            sum(1 for r in records if r.identity in self._overlay),
        )
        return len(records)

    def load_file(self, path: str | Path) -> int:
        """Read a CSV file and load it. See `load_csv`."""
        text = Path(path).read_text(encoding="utf-8-sig")
        return self.load_csv(text)

    def update(self, identity: TrackIdentity, fields: Mapping[str, Any]) -> None:
        """Set metadata for every play of one track and persist the overlay.

        The in-memory records are updated before the overlay is written, so a
        PersistenceError leaves this session's data enriched.

        Raises:
            ValueError: unknown field or invalid duration; nothing is changed.
            PersistenceError: the overlay could not be written.
        """
        normalized = self._overlay.merge(identity, fields)

        matched = 0
        for record in self._records:
            if record.identity != identity:
                continue
            for name, value in normalized.items():
                setattr(record, name, value)
            matched += 1

        logger.info(
            "Updated %s for %s - %s - %s (%d plays).",
            ", ".join(normalized) or "nothing",
            identity.artist,
            identity.album,
            identity.track,
            matched,
        )
        self._overlay.save()

    def update_metadata(self, artist: str, album: str, track: str, **fields: Any) -> None:
        """Shorthand for `update(TrackIdentity(artist, album, track), fields)`."""
        self.update(TrackIdentity(artist, album, track), fields)

    def find(self, identity: TrackIdentity) -> PlayEvent | None:
        """Return a copy of the first record with this identity, if any."""
        for record in self._records:
            if record.identity == identity:
                return replace(record)
        return None

    def missing_metadata(
        self,
        field_names: Sequence[str] = ("duration", "genre"),
    ) -> list[TrackIdentity]:
        """Distinct track identities, first-seen order, lacking any of the fields."""
        seen: set[TrackIdentity] = set()
        missing: list[TrackIdentity] = []
        for record in self._records:
            identity = record.identity
            if identity in seen or not record.track:
                continue
            if any(getattr(record, name) is None for name in field_names):
                seen.add(identity)
                missing.append(identity)
        return missing

    def analyze(self, *, top_n: int | None = None) -> Statistics:
        return analyze(self._records, top_n=top_n)

    def to_csv(self) -> str:
        """Serialise the current records, keeping the original columns."""
        return serialize_history_csv(self._records, self._table)

    def export(self, path: str | Path) -> None:
        write_history_csv(path, self._records, self._table)
        logger.info("Wrote %d rows to %s.", len(self._records), path)

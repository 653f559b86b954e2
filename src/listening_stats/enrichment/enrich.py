# listening_stats/enrichment/enrich.py

"""Backfill missing durations and genres from an online lookup."""

from __future__ import annotations

import logging
from collections.abc import Callable

from listening_stats.enrichment.musicbrainz_client import (
    RecordingInfo,
    fetch_recording_info,
)
from listening_stats.history import ListeningHistory

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, str, str | None], RecordingInfo | None]


def enrich_missing(
    history: ListeningHistory,
    *,
    fetch: Fetcher = fetch_recording_info,
    limit: int | None = None,
) -> int:
    """Look up tracks lacking a duration or genre and store what is found.

    Only fields that are still missing are written; user-entered values are
    never overwritten.

    Returns:
        The number of tracks that received at least one new field.
    """
    missing = history.missing_metadata()
    if limit is not None:
        missing = missing[:limit]

    logger.info("Looking up %d tracks with missing metadata.", len(missing))

    updated = 0
    for identity in missing:
        info = fetch(identity.artist, identity.track, identity.album or None)
        if info is None:
            continue

        current = history.find(identity)
        fields: dict[str, int | str] = {}
        if info.duration is not None and (current is None or current.duration is None):
            fields["duration"] = info.duration
        if info.genre and (current is None or current.genre is None):
            fields["genre"] = info.genre

        if not fields:
            continue

        history.update(identity, fields)
        updated += 1

    logger.info("Enriched %d of %d tracks.", updated, len(missing))
    return updated

# listening_stats/analysis/statistics.py

"""Aggregate play events into a Statistics snapshot.

Every count is the sum of ``play_count`` over the grouped records. Raw event
logs carry a play count of 1 per row, so for them this is the number of rows.
Ties in every ranking keep first-seen order.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from listening_stats.domain.models import (
    DayCount,
    HourCount,
    ListeningPatterns,
    MonthCount,
    PlayEvent,
    Statistics,
    TopItem,
    TrackItem,
)

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass(slots=True)
class _TrackGroup:
    representative: PlayEvent
    count: int = 0


def _populated(record: PlayEvent) -> int:
    return (record.duration is not None) + (record.genre is not None)


def _ranked(counter: Counter[str], limit: int | None = None) -> list[tuple[str, int]]:
    # Counter keeps insertion order and sorted() is stable, so ties stay first-seen.
    items = sorted(counter.items(), key=lambda x: -x[1])
    return items if limit is None else items[:limit]


def count_by_field(records: Iterable[PlayEvent], field_name: str) -> Counter[str]:
    """Sum play counts per non-empty value of a text field."""
    counter: Counter[str] = Counter()
    for record in records:
        value = getattr(record, field_name)
        if not value:
            continue
        counter[value] += record.play_count
    return counter


def group_tracks(records: Iterable[PlayEvent]) -> list[TrackItem]:
    """Group records by track identity, ranked by summed play count."""
    groups: dict[str, _TrackGroup] = {}
    for record in records:
        if not record.track:
            continue
        key = record.identity.key
        group = groups.get(key)
        if group is None:
            group = groups[key] = _TrackGroup(representative=record)
        elif _populated(record) > _populated(group.representative):
            group.representative = record
        group.count += record.play_count

    items = [
        TrackItem(
            name=group.representative.track,
            count=group.count,
            artist=group.representative.artist,
            album=group.representative.album,
            duration=group.representative.duration,
            genre=group.representative.genre,
        )
        for group in groups.values()
    ]
    return sorted(items, key=lambda t: -t.count)


def listening_patterns(records: Iterable[PlayEvent]) -> ListeningPatterns:
    """Bucket timestamped plays by UTC hour, weekday and month."""
    hours: Counter[int] = Counter()
    days: Counter[str] = Counter()
    months: Counter[str] = Counter()

    for record in records:
        if record.timestamp is None:
            continue
        hours[record.timestamp.hour] += record.play_count
        days[WEEKDAY_NAMES[record.timestamp.weekday()]] += record.play_count
        months[MONTH_NAMES[record.timestamp.month - 1]] += record.play_count

    return ListeningPatterns(
        by_hour=tuple(HourCount(hour=h, count=hours[h]) for h in range(24)),
        by_day=tuple(DayCount(day=d, count=c) for d, c in _ranked(days, 7)),
        by_month=tuple(MonthCount(month=m, count=c) for m, c in _ranked(months, 12)),
    )


def analyze(records: Iterable[PlayEvent], *, top_n: int | None = None) -> Statistics:
    """Compute a Statistics snapshot from play events.

    Args:
        records: Play events in input order. They are not modified.
        top_n: Optional cap for the artist, album and track rankings.

    Raises:
        ValueError: if top_n is negative.

    Returns:
        A new Statistics instance. Total listening time is in hours, the
        average track duration is in minutes and is the mean over distinct
        tracks that have a known duration.
    """
    if top_n is not None and top_n < 0:
        msg = "top_n must be non-negative."
        raise ValueError(msg)

    # Rows without any identity component are ignored entirely.
    events = [r for r in records if r.artist or r.album or r.track]

    total_seconds = sum(
        r.duration * r.play_count for r in events if r.duration is not None
    )

    tracks = group_tracks(events)
    durations = [t.duration for t in tracks if t.duration is not None]
    average_seconds = sum(durations) / len(durations) if durations else 0.0

    top_tracks = tracks if top_n is None else tracks[:top_n]

    return Statistics(
        total_listening_time=total_seconds / 3600,
        average_track_duration=average_seconds / 60,
        top_artists=tuple(
            TopItem(name=n, count=c)
            for n, c in _ranked(count_by_field(events, "artist"), top_n)
        ),
        top_albums=tuple(
            TopItem(name=n, count=c)
            for n, c in _ranked(count_by_field(events, "album"), top_n)
        ),
        top_tracks=tuple(top_tracks),
        listening_patterns=listening_patterns(events),
        total_plays=sum(r.play_count for r in events),
    )

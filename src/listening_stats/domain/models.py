# listening_stats/domain/models.py

"""Core domain models for play events and listening statistics."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

IDENTITY_SEPARATOR = "|"

# Fields a user can backfill per track identity.
METADATA_FIELDS: tuple[str, ...] = ("duration", "genre", "feat", "prod", "label")

_CLOCK_DURATION = re.compile(r"^(?:(\d+):)?(\d+):([0-5]\d)$")


def parse_duration(value: Any) -> int | None:
    """Parse a duration into whole seconds.

    Accepts integers, integer strings ("222") and clock strings ("3:42",
    "1:02:03"). Returns None for empty, negative or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if value >= 0 and value.is_integer() else None

    text = str(value).strip()
    if not text:
        return None
    if text.isdecimal():
        return int(text)

    match = _CLOCK_DURATION.match(text)
    if match is None:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours or 0) * 3600 + int(minutes) * 60 + int(seconds)


@dataclass(frozen=True, slots=True)
class TrackIdentity:
    """The (artist, album, track) triple identifying one logical track.

    Equality is exact string match; no case or whitespace normalisation.
    """

    artist: str
    album: str
    track: str

    @property
    def key(self) -> str:
        return IDENTITY_SEPARATOR.join((self.artist, self.album, self.track))

    @classmethod
    def from_key(cls, key: str) -> TrackIdentity:
        """Split a stored key back into its parts.

        Keys are not escaped: an artist or album containing "|" does not
        split back into the identity that produced it.
        """
        parts = key.split(IDENTITY_SEPARATOR, 2)
        if len(parts) != 3:
            msg = f"Invalid track key: {key!r}"
            raise ValueError(msg)
        return cls(*parts)


@dataclass(slots=True)
class PlayEvent:
    """A single row of listening history, possibly pre-aggregated."""

    artist: str
    album: str
    track: str
    timestamp: datetime | None = None
    play_count: int = 1
    duration: int | None = None  # seconds
    genre: str | None = None
    feat: str | None = None
    prod: str | None = None
    label: str | None = None

    @property
    def identity(self) -> TrackIdentity:
        return TrackIdentity(self.artist, self.album, self.track)


@dataclass(frozen=True, slots=True)
class TopItem:
    name: str
    count: int


@dataclass(frozen=True, slots=True)
class TrackItem:
    """A ranked track group with the metadata of its representative play."""

    name: str
    count: int
    artist: str
    album: str
    duration: int | None = None
    genre: str | None = None

    @property
    def identity(self) -> TrackIdentity:
        return TrackIdentity(self.artist, self.album, self.name)


@dataclass(frozen=True, slots=True)
class HourCount:
    hour: int
    count: int


@dataclass(frozen=True, slots=True)
class DayCount:
    day: str
    count: int


@dataclass(frozen=True, slots=True)
class MonthCount:
    month: str
    count: int


@dataclass(frozen=True, slots=True)
class ListeningPatterns:
    by_hour: tuple[HourCount, ...] = ()
    by_day: tuple[DayCount, ...] = ()
    by_month: tuple[MonthCount, ...] = ()


@dataclass(frozen=True, slots=True)
class Statistics:
    """Immutable snapshot produced by one analysis run."""

    total_listening_time: float  # hours
    average_track_duration: float  # minutes
    top_artists: tuple[TopItem, ...]
    top_albums: tuple[TopItem, ...]
    top_tracks: tuple[TrackItem, ...]
    listening_patterns: ListeningPatterns
    total_plays: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert the snapshot into a JSON-serialisable dict."""
        patterns = self.listening_patterns
        return {
            "totalListeningTime": self.total_listening_time,
            "averageTrackDuration": self.average_track_duration,
            "totalPlays": self.total_plays,
            "topArtists": [{"name": a.name, "count": a.count} for a in self.top_artists],
            "topAlbums": [{"name": a.name, "count": a.count} for a in self.top_albums],
            "topTracks": [
                {
                    "name": t.name,
                    "count": t.count,
                    "artist": t.artist,
                    "album": t.album,
                    "duration": t.duration,
                    "genre": t.genre,
                }
                for t in self.top_tracks
            ],
            "listeningPatterns": {
                "byHour": [{"hour": h.hour, "count": h.count} for h in patterns.by_hour],
                "byDay": [{"day": d.day, "count": d.count} for d in patterns.by_day],
                "byMonth": [
                    {"month": m.month, "count": m.count} for m in patterns.by_month
                ],
            },
        }


@dataclass(frozen=True, slots=True)
class GenreStats:
    """Per-genre rollup over ranked tracks."""

    name: str
    track_count: int
    play_count: int
    total_duration: int  # seconds
    artists: int
    albums: int


@dataclass(frozen=True, slots=True)
class ArtistSummary:
    name: str
    play_count: int
    track_count: int
    album_count: int
    total_duration: int  # seconds
    average_plays_per_track: float

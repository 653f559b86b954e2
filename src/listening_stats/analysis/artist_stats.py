# listening_stats/analysis/artist_stats.py

"""Per-artist and per-album views derived from a Statistics snapshot."""

from __future__ import annotations

from listening_stats.domain.models import ArtistSummary, Statistics, TrackItem

ENRICHABLE_FIELDS = ("duration", "genre")


def format_duration(seconds: int | float | None) -> str:
    """Format seconds as "1h 5m" (an hour or more) or "4m 2s"."""
    if not seconds:
        return "0m 0s"
    seconds = int(seconds)
    if seconds >= 3600:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m"
    minutes = seconds // 60
    return f"{minutes}m {seconds % 60}s"


def _played_seconds(tracks: list[TrackItem]) -> int:
    return sum(t.duration * t.count for t in tracks if t.duration is not None)


def artist_summary(statistics: Statistics, artist: str) -> ArtistSummary:
    """Summarise one artist's plays across the ranked tracks."""
    tracks = [t for t in statistics.top_tracks if t.artist == artist]
    play_count = sum(t.count for t in tracks)
    return ArtistSummary(
        name=artist,
        play_count=play_count,
        track_count=len(tracks),
        album_count=len({t.album for t in tracks}),
        total_duration=_played_seconds(tracks),
        average_plays_per_track=play_count / len(tracks) if tracks else 0.0,
    )


def artist_duration(statistics: Statistics, artist: str) -> int:
    """Seconds spent listening to an artist's tracks with a known duration."""
    return _played_seconds([t for t in statistics.top_tracks if t.artist == artist])


def album_duration(statistics: Statistics, album: str) -> int:
    """Seconds spent listening to an album's tracks with a known duration."""
    return _played_seconds([t for t in statistics.top_tracks if t.album == album])


def _check_field(field_name: str) -> None:
    if field_name not in ENRICHABLE_FIELDS:
        msg = f"field_name must be one of {ENRICHABLE_FIELDS}, got {field_name!r}"
        raise ValueError(msg)


def next_track_missing(statistics: Statistics, field_name: str) -> TrackItem | None:
    """Return the highest-ranked track still lacking `duration` or `genre`."""
    _check_field(field_name)
    for track in statistics.top_tracks:
        if getattr(track, field_name) is None:
            return track
    return None


def enrichment_progress(statistics: Statistics, field_name: str) -> tuple[int, int]:
    """Return (tracks with the field set, total ranked tracks)."""
    _check_field(field_name)
    done = sum(1 for t in statistics.top_tracks if getattr(t, field_name) is not None)
    return done, len(statistics.top_tracks)

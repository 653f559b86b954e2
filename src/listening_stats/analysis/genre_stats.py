from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from listening_stats.domain.models import GenreStats, Statistics, TrackItem


@dataclass(slots=True)
class _GenreAccumulator:
    track_count: int = 0
    play_count: int = 0
    total_duration: int = 0
    artists: set[str] = field(default_factory=set)
    albums: set[str] = field(default_factory=set)


def get_genre_stats(tracks: Iterable[TrackItem]) -> list[GenreStats]:
    """Roll ranked tracks up per genre.

    Tracks without a genre are skipped. Durations count once per play.
    Sorted by descending play count, ties in first-seen order.
    """
    genres: dict[str, _GenreAccumulator] = {}

    for track in tracks:
        genre = (track.genre or "").strip()
        if not genre:
            continue

        acc = genres.setdefault(genre, _GenreAccumulator())
        acc.track_count += 1
        acc.play_count += track.count
        if track.duration is not None:
            acc.total_duration += track.duration * track.count
        if track.artist:
            acc.artists.add(track.artist)
        if track.album:
            acc.albums.add(track.album)

    result = [
        GenreStats(
            name=name,
            track_count=acc.track_count,
            play_count=acc.play_count,
            total_duration=acc.total_duration,
            artists=len(acc.artists),
            albums=len(acc.albums),
        )
        for name, acc in genres.items()
    ]
    return sorted(result, key=lambda g: -g.play_count)


def genre_stats(statistics: Statistics) -> list[GenreStats]:
    """Per-genre rollup of a Statistics snapshot."""
    return get_genre_stats(statistics.top_tracks)

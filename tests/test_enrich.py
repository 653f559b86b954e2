"""Tests for MusicBrainz lookups and the enrichment pass."""

from __future__ import annotations

from typing import Any

import pytest
import requests

from listening_stats.domain.models import TrackIdentity
from listening_stats.enrichment import musicbrainz_client
from listening_stats.enrichment.enrich import enrich_missing
from listening_stats.enrichment.musicbrainz_client import (
    RecordingInfo,
    fetch_recording_info,
)
from listening_stats.history import ListeningHistory

CSV = "Artist,Album,Track,Count\nA,X,T1,3\nA,X,T2,5\nB,,T3,1\n"


def test_fetch_recording_info_from_search(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, dict[str, Any]]] = []

    def fake_get(path: str, params: dict[str, Any]) -> dict[str, Any]:
        calls.append((path, params))
        return {
            "recordings": [
                {"id": "low", "title": "Song", "score": 40, "length": 100000},
                {
                    "id": "best",
                    "title": "Song",
                    "score": 95,
                    "length": 215400,
                    "artist-credit": [
                        {"name": "Artist", "joinphrase": " feat. "},
                        {"name": "Guest"},
                    ],
                    "tags": [{"name": "Rock", "count": 3}, {"name": "indie", "count": 5}],
                },
                {"id": "nolength", "title": "Song", "score": 100},
            ]
        }

    monkeypatch.setattr(musicbrainz_client, "_get", fake_get)

    info = fetch_recording_info("Artist", "Song", "Album")

    assert info == RecordingInfo(
        mbid="best",
        title="Song",
        artist="Artist feat. Guest",
        duration=215,
        tags=["indie", "rock"],
    )
    assert info.genre == "indie"
    assert len(calls) == 1
    path, params = calls[0]
    assert path == "/recording"
    assert params["query"] == 'recording:"Song" AND artist:"Artist" AND release:"Album"'


def test_fetch_recording_info_looks_up_tags(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(path: str, params: dict[str, Any]) -> dict[str, Any]:
        if path == "/recording":
            return {"recordings": [{"id": "r1", "title": "Song", "score": 100, "length": 60000}]}
        assert path == "/recording/r1"
        return {"genres": [{"name": "Shoegaze", "count": 1}], "tags": []}

    monkeypatch.setattr(musicbrainz_client, "_get", fake_get)

    info = fetch_recording_info("Artist", "Song")

    assert info is not None
    assert info.duration == 60
    assert info.genre == "shoegaze"


def test_fetch_recording_info_network_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(path: str, params: dict[str, Any]) -> dict[str, Any]:
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(musicbrainz_client, "_get", fake_get)

    assert fetch_recording_info("Artist", "Song") is None


def test_fetch_recording_info_no_match(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(musicbrainz_client, "_get", lambda path, params: {"recordings": []})
    assert fetch_recording_info("Artist", "Song") is None


def test_enrich_missing_fills_only_missing_fields() -> None:
    history = ListeningHistory()
    history.load_csv(CSV)
    history.update_metadata("A", "X", "T1", genre="Jazz")

    looked_up: list[tuple[str, str, str | None]] = []

    def fake_fetch(artist: str, track: str, album: str | None) -> RecordingInfo | None:
        looked_up.append((artist, track, album))
        if track == "T2":
            return None
        return RecordingInfo(mbid="m", title=track, artist=artist, duration=200, tags=["rock"])

    updated = enrich_missing(history, fetch=fake_fetch)

    assert updated == 2
    assert looked_up == [("A", "T1", "X"), ("A", "T2", "X"), ("B", "T3", None)]

    t1, t2, t3 = history.records
    assert (t1.duration, t1.genre) == (200, "Jazz")
    assert (t2.duration, t2.genre) == (None, None)
    assert (t3.duration, t3.genre) == (200, "rock")
    assert history.overlay.get(TrackIdentity("B", "", "T3")) == {
        "duration": 200,
        "genre": "rock",
    }


def test_enrich_missing_stops_at_limit() -> None:
    history = ListeningHistory()
    history.load_csv(CSV)

    def fake_fetch(artist: str, track: str, album: str | None) -> RecordingInfo | None:
        return RecordingInfo(mbid="m", title=track, artist=artist, duration=100)

    assert enrich_missing(history, fetch=fake_fetch, limit=1) == 1
    assert [r.duration for r in history.records] == [100, None, None]

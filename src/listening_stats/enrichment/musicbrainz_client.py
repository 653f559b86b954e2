"""
Thin wrapper around the MusicBrainz API for looking up recording lengths and
genre tags.

Set a sensible USER_AGENT_* configuration before using this module; the
MusicBrainz API rejects anonymous clients.
"""

from __future__ import annotations

import logging
import time
import warnings
from collections.abc import Iterable
from dataclasses import dataclass, field
from os import getenv
from typing import Any

import requests
from urllib3.exceptions import InsecureRequestWarning

import listening_stats.config  # noqa: F401 - load .env early

logger = logging.getLogger(__name__)

BASE_URL = "https://musicbrainz.org/ws/2"

# Basic User-Agent configuration (can be overridden via env)
USER_AGENT_APP = getenv("USER_AGENT_APP", "listening-stats")
USER_AGENT_VERSION = getenv("USER_AGENT_VERSION", "0.1.0")
USER_AGENT_CONTACT = getenv("USER_AGENT_CONTACT", "mailto:you@example.com")

HEADERS = {
    "User-Agent": f"{USER_AGENT_APP}/{USER_AGENT_VERSION} ({USER_AGENT_CONTACT})",
}

# Toggle TLS verification via env:
#   MB_VERIFY_TLS=true  (default)
#   MB_VERIFY_TLS=false (local debugging only)
MB_VERIFY_TLS = getenv("MB_VERIFY_TLS", "true").lower() == "true"

if not MB_VERIFY_TLS:
    warnings.filterwarnings("ignore", category=InsecureRequestWarning)
    logger.warning(
        "MusicBrainz TLS verification is DISABLED (MB_VERIFY_TLS=false). "
        "Do not use this setting in production."
    )

_RATE_LIMIT_SECONDS = 1.0
_last_call_ts: float | None = None


@dataclass(slots=True)
class RecordingInfo:
    """Length and tags of a MusicBrainz recording."""

    mbid: str
    title: str
    artist: str
    duration: int | None  # seconds
    tags: list[str] = field(default_factory=list)
    source: str = "musicbrainz"

    @property
    def genre(self) -> str | None:
        return self.tags[0] if self.tags else None


def _sleep_if_needed() -> None:
    if _last_call_ts is None:
        return

    elapsed = time.time() - _last_call_ts
    if elapsed < _RATE_LIMIT_SECONDS:
        time.sleep(_RATE_LIMIT_SECONDS - elapsed)


def _get(path: str, params: dict[str, Any]) -> dict[str, Any]:
    global _last_call_ts

    _sleep_if_needed()
    url = f"{BASE_URL}{path}"

    response = requests.get(
        url,
        headers=HEADERS,
        params=params,
        timeout=10,
        verify=MB_VERIFY_TLS,
    )
    _last_call_ts = time.time()
    response.raise_for_status()
    return response.json()


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def search_recordings(
    artist: str,
    track: str,
    album: str | None = None,
    limit: int = 5,
) -> list[dict[str, Any]]:
    """Search MusicBrainz recordings by artist + track (+ album) name."""
    query = f"recording:{_quote(track)} AND artist:{_quote(artist)}"
    if album:
        query += f" AND release:{_quote(album)}"

    params = {
        "query": query,
        "fmt": "json",
        "limit": limit,
    }

    try:
        data = _get("/recording", params)
    except requests.RequestException as exc:
        logger.warning(
            "MusicBrainz search failed for %s - %s: %s",
            artist,
            track,
            exc,
        )
        return []

    return list(data.get("recordings", []))


def _select_best_recording(
    recordings: Iterable[dict[str, Any]],
) -> dict[str, Any] | None:
    """Pick the highest-scoring candidate, preferring ones with a length."""
    candidates = list(recordings)
    if not candidates:
        return None

    with_length = [r for r in candidates if r.get("length")]
    pool = with_length or candidates
    return max(pool, key=lambda r: int(r.get("score") or 0))


def _lookup_recording_with_tags(mbid: str) -> dict[str, Any] | None:
    """Lookup a recording by MBID including genres and tags."""
    params = {
        "fmt": "json",
        "inc": "genres+tags",
    }

    try:
        data = _get(f"/recording/{mbid}", params)
    except requests.RequestException as exc:
        logger.warning("MusicBrainz lookup failed for mbid=%s: %s", mbid, exc)
        return None

    return data


def _extract_tag_names(recording: dict[str, Any]) -> list[str]:
    """Tag names ordered by vote count; curated genres come first."""
    names: list[str] = []
    for key in ("genres", "tags"):
        raw = sorted(
            recording.get(key) or [],
            key=lambda t: -int(t.get("count") or 0),
        )
        for tag in raw:
            name = (tag.get("name") or "").strip().lower()
            if name and name not in names:
                names.append(name)
    return names


def _artist_name(recording: dict[str, Any], default: str) -> str:
    credits = recording.get("artist-credit") or []
    names = [c.get("name", "") + c.get("joinphrase", "") for c in credits]
    return "".join(names).strip() or default


def fetch_recording_info(
    artist: str,
    track: str,
    album: str | None = None,
) -> RecordingInfo | None:
    """
    Best-effort lookup of length and tags for a track.

    1) Search recordings
    2) Select best candidate
    3) Lookup that recording with genres/tags if the search hit had none
    """
    recordings = search_recordings(artist=artist, track=track, album=album, limit=5)
    best = _select_best_recording(recordings)
    if best is None:
        logger.info("No recording found for %s - %s", artist, track)
        return None

    mbid = best["id"]
    tags = _extract_tag_names(best)
    if not tags:
        detailed = _lookup_recording_with_tags(mbid)
        if detailed is not None:
            tags = _extract_tag_names(detailed)

    length_ms = best.get("length")
    duration = round(int(length_ms) / 1000) if length_ms else None

    logger.debug(
        "Fetched recording %s - %s (mbid=%s, duration=%s, tags=%d)",
        artist,
        track,
        mbid,
        duration,
        len(tags),
    )

    return RecordingInfo(
        mbid=mbid,
        title=best.get("title", track),
        artist=_artist_name(best, artist),
        duration=duration,
        tags=tags,
    )

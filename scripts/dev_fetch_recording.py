#!/usr/bin/env python3
"""Manual script to test MusicBrainz recording lookup."""

from listening_stats.enrichment.musicbrainz_client import fetch_recording_info

if __name__ == "__main__":
    result = fetch_recording_info(artist="Slowdive", track="Alison", album="Souvlaki")
    print(result)

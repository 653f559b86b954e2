"""Tests for reading and writing listening-history CSV files."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from listening_stats.domain.models import PlayEvent
from listening_stats.exceptions import EmptyInputError, FormatError
from listening_stats.io.history_csv import (
    parse_history_csv,
    parse_timestamp,
    read_history_csv,
    serialize_history_csv,
    write_history_csv,
)

RAW_CSV = (
    "uts,utc_time,artist,artist_mbid,album,album_mbid,track,track_mbid\n"
    '1706709900,"31 Jan 2024, 14:05",Artist A,mbid-a,Album X,,Song 1,t1\n'
    "1704117900,,Artist B,,Album Y,,Song 2,\n"
    ',"not a date",Artist A,mbid-a,Album X,,Song 1,t1\n'
)

COUNT_CSV = "Artist,Album,Track,Count\nA,X,T1,3\nA,X,T2,5\n"


def test_parse_raw_event_export() -> None:
    table = parse_history_csv(RAW_CSV)

    assert table.fieldnames[:3] == ["uts", "utc_time", "artist"]
    assert len(table.records) == 3

    first = table.records[0]
    assert first.artist == "Artist A"
    assert first.album == "Album X"
    assert first.track == "Song 1"
    assert first.play_count == 1
    assert first.timestamp == datetime(2024, 1, 31, 14, 5, tzinfo=timezone.utc)

    # Empty utc_time falls back to uts.
    assert table.records[1].timestamp == datetime.fromtimestamp(1704117900, tz=timezone.utc)
    # Neither column parseable.
    assert table.records[2].timestamp is None


def test_parse_pre_aggregated_counts() -> None:
    table = parse_history_csv(COUNT_CSV)
    assert [(r.track, r.play_count) for r in table.records] == [("T1", 3), ("T2", 5)]
    assert all(r.timestamp is None for r in table.records)


def test_header_names_and_values_are_trimmed() -> None:
    text = " Artist , ALBUM,Track ,  count \n  A ,  X , T1 , 2 \n"
    table = parse_history_csv(text)
    assert table.fieldnames == ["Artist", "ALBUM", "Track", "count"]
    assert table.records == [PlayEvent(artist="A", album="X", track="T1", play_count=2)]
    assert table.rows == [{"Artist": "A", "ALBUM": "X", "Track": "T1", "count": "2"}]


def test_blank_rows_are_skipped() -> None:
    text = "artist,album,track,count\n\nA,X,T1,1\n , , , \n\nB,Y,T2,2\n"
    table = parse_history_csv(text)
    assert [r.artist for r in table.records] == ["A", "B"]


def test_metadata_columns_are_read() -> None:
    text = (
        "artist,album,track,count,duration,genre,feat,prod,label\n"
        "A,X,T1,1,3:42,Rock,B,C,Label\n"
        "A,X,T2,1,,,,,\n"
    )
    first, second = parse_history_csv(text).records
    assert first.duration == 222
    assert (first.genre, first.feat, first.prod, first.label) == ("Rock", "B", "C", "Label")
    assert second.duration is None
    assert second.genre is None


@pytest.mark.parametrize("duration", ["long", "\u00b2", "-30"])
def test_unparseable_duration_is_absent(duration: str) -> None:
    text = f"artist,album,track,count,duration\nA,X,T1,1,{duration}\n"
    assert parse_history_csv(text).records[0].duration is None


def test_missing_required_columns() -> None:
    with pytest.raises(FormatError, match="album"):
        parse_history_csv("artist,track,count\nA,T1,1\n")


def test_count_or_timestamp_column_required() -> None:
    with pytest.raises(FormatError, match="count or utc_time"):
        parse_history_csv("artist,album,track\nA,X,T1\n")


def test_row_with_wrong_column_count() -> None:
    with pytest.raises(FormatError) as excinfo:
        parse_history_csv("artist,album,track,count\nA,X,T1,1\nA,X,T2\n")
    assert excinfo.value.line == 3


@pytest.mark.parametrize("count", ["three", "", "1.5", "0", "-2", "1_0", "+3"])
def test_invalid_count(count: str) -> None:
    with pytest.raises(FormatError):
        parse_history_csv(f"artist,album,track,count\nA,X,T1,{count}\n")


def test_duplicate_header_columns() -> None:
    with pytest.raises(FormatError, match="Duplicate"):
        parse_history_csv("artist,Artist,album,track,count\nA,A,X,T1,1\n")


def test_header_only_is_empty_input() -> None:
    with pytest.raises(EmptyInputError):
        parse_history_csv("artist,album,track,count\n\n")


@pytest.mark.parametrize("text", ["", "\n", "  \n\n", "\ufeff"])
def test_blank_text_is_empty_input(text: str) -> None:
    with pytest.raises(EmptyInputError):
        parse_history_csv(text)


def test_byte_order_mark_is_ignored() -> None:
    table = parse_history_csv("\ufeffartist,album,track,count\nA,X,T1,1\n")
    assert table.fieldnames[0] == "artist"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-01-01T14:05:00Z", datetime(2024, 1, 1, 14, 5, tzinfo=timezone.utc)),
        ("2024-01-01 14:05:00", datetime(2024, 1, 1, 14, 5, tzinfo=timezone.utc)),
        ("2024-01-01T16:05:00+02:00", datetime(2024, 1, 1, 14, 5, tzinfo=timezone.utc)),
        ("01 Jan 2024, 14:05", datetime(2024, 1, 1, 14, 5, tzinfo=timezone.utc)),
        ("0", datetime(1970, 1, 1, tzinfo=timezone.utc)),
        ("", None),
        ("soon", None),
    ],
)
def test_parse_timestamp(value: str, expected: datetime | None) -> None:
    assert parse_timestamp(value) == expected


def test_round_trip_raw_export() -> None:
    first = parse_history_csv(RAW_CSV)
    again = parse_history_csv(serialize_history_csv(first.records, first))
    assert again.records == first.records


def test_round_trip_counts_with_metadata() -> None:
    text = "Artist,Album,Track,Count,Duration\nA,X,T1,3,3:42\nA,,T2,5,\n"
    first = parse_history_csv(text)
    again = parse_history_csv(serialize_history_csv(first.records, first))
    assert again.records == first.records


def test_serialize_keeps_original_columns_and_adds_metadata() -> None:
    table = parse_history_csv(COUNT_CSV)
    table.records[0].duration = 120
    table.records[1].genre = "Rock, Indie"

    text = serialize_history_csv(table.records, table)

    assert text == (
        "Artist,Album,Track,Count,duration,genre,feat,prod,label\n"
        "A,X,T1,3,120,,,,\n"
        'A,X,T2,5,,"Rock, Indie",,,\n'
    )


def test_serialize_preserves_unchanged_duration_spelling() -> None:
    text = "artist,album,track,count,duration\nA,X,T1,1,3:42\nA,X,T2,1,3:00\n"
    table = parse_history_csv(text)
    table.records[1].duration = 200

    lines = serialize_history_csv(table.records, table).splitlines()

    assert lines[0] == "artist,album,track,count,duration,genre,feat,prod,label"
    assert lines[1] == "A,X,T1,1,3:42,,,,"
    assert lines[2] == "A,X,T2,1,200,,,,"


def test_serialize_without_table_uses_canonical_columns() -> None:
    record = PlayEvent(
        artist="A",
        album="X",
        track="T1",
        timestamp=datetime(2024, 1, 1, 14, 5, tzinfo=timezone.utc),
        play_count=2,
        duration=200,
    )
    text = serialize_history_csv([record])
    assert text.splitlines() == [
        "utc_time,artist,album,track,count,duration,genre,feat,prod,label",
        "2024-01-01T14:05:00+00:00,A,X,T1,2,200,,,,",
    ]
    assert parse_history_csv(text).records == [record]


def test_serialize_rejects_mismatched_records() -> None:
    table = parse_history_csv(COUNT_CSV)
    with pytest.raises(ValueError):
        serialize_history_csv(table.records[:1], table)


def test_write_and_read_file(tmp_path: Path) -> None:
    table = parse_history_csv(COUNT_CSV)
    path = tmp_path / "out" / "history.csv"

    write_history_csv(path, table.records, table)

    assert read_history_csv(path).records == table.records

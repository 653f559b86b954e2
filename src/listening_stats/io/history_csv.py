# listening_stats/io/history_csv.py

"""Read and write listening-history CSV files.

Two header conventions are accepted as the same schema:

- raw scrobble exports: ``uts, utc_time, artist, album, track, ...``
- pre-aggregated counts: ``Artist, Album, Track, Count``

Both are normalised into PlayEvent records. The trimmed original rows are kept
alongside the records so that exporting preserves every column verbatim.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from listening_stats.domain.models import METADATA_FIELDS, PlayEvent, parse_duration
from listening_stats.exceptions import EmptyInputError, FormatError

logger = logging.getLogger(__name__)

# Canonical column -> accepted (lower-cased) header names, in preference order.
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "artist": ("artist",),
    "album": ("album",),
    "track": ("track", "title", "name"),
    "count": ("count", "playcount", "play_count", "plays"),
    "time": ("utc_time", "timestamp"),
    "uts": ("uts",),
    **{name: (name,) for name in METADATA_FIELDS},
}

CANONICAL_FIELDNAMES: tuple[str, ...] = (
    "utc_time",
    "artist",
    "album",
    "track",
    "count",
    *METADATA_FIELDS,
)

_TEXT_TIME_FORMATS = (
    "%d %b %Y, %H:%M",  # last.fm export, e.g. "31 Jan 2024, 14:05"
    "%d %b %Y %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d/%m/%Y %H:%M",
)


@dataclass(slots=True)
class HistoryTable:
    """Parsed CSV content: header, trimmed original rows and typed records."""

    fieldnames: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)
    records: list[PlayEvent] = field(default_factory=list)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601, last.fm-style or unix-seconds timestamp as UTC."""
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    if text.isdecimal():
        try:
            return datetime.fromtimestamp(int(text), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    except ValueError:
        for fmt in _TEXT_TIME_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _resolve_columns(fieldnames: Sequence[str], line: int = 1) -> dict[str, str]:
    """Map canonical column names to the header names actually present."""
    by_lower: dict[str, str] = {}
    for name in fieldnames:
        lowered = name.lower()
        if lowered in by_lower:
            msg = f"Duplicate column in header: {name!r}"
            raise FormatError(msg, line=line)
        by_lower[lowered] = name

    columns: dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in by_lower:
                columns[canonical] = by_lower[alias]
                break

    missing = [name for name in ("artist", "album", "track") if name not in columns]
    if not ({"count", "time", "uts"} & columns.keys()):
        missing.append("count or utc_time/timestamp")
    if missing:
        msg = f"Missing required columns: {', '.join(missing)}"
        raise FormatError(msg, line=line)

    return columns


def _parse_count(value: str, line: int) -> int:
    if not value.isdecimal():
        msg = f"Play count is not a number: {value!r}"
        raise FormatError(msg, line=line)
    count = int(value)
    if count < 1:
        msg = f"Play count must be at least 1, got {count}"
        raise FormatError(msg, line=line)
    return count


def _optional_text(value: str | None) -> str | None:
    return value or None


def _metadata_value(name: str, value: str | None) -> int | str | None:
    if name == "duration":
        return parse_duration(value)
    return _optional_text(value)


def record_from_row(raw: dict[str, str], columns: dict[str, str], line: int) -> PlayEvent:
    """Convert a trimmed CSV row into a PlayEvent."""

    def cell(canonical: str) -> str:
        column = columns.get(canonical)
        return raw.get(column, "") if column is not None else ""

    timestamp = parse_timestamp(cell("time")) or parse_timestamp(cell("uts"))
    if timestamp is None and (cell("time") or cell("uts")):
        logger.debug("Unparseable timestamp on line %d: %r", line, cell("time") or cell("uts"))

    duration = parse_duration(cell("duration"))
    if duration is None and cell("duration"):
        logger.debug("Unparseable duration on line %d: %r", line, cell("duration"))

    play_count = _parse_count(cell("count"), line) if "count" in columns else 1

    return PlayEvent(
        artist=cell("artist"),
        album=cell("album"),
        track=cell("track"),
        timestamp=timestamp,
        play_count=play_count,
        duration=duration,
        genre=_optional_text(cell("genre")),
        feat=_optional_text(cell("feat")),
        prod=_optional_text(cell("prod")),
        label=_optional_text(cell("label")),
    )


def record_to_row(record: PlayEvent) -> dict[str, str]:
    """Convert a PlayEvent into a row using the canonical column names."""
    return {
        "utc_time": record.timestamp.isoformat() if record.timestamp else "",
        "artist": record.artist,
        "album": record.album,
        "track": record.track,
        "count": str(record.play_count),
        **{name: _format_metadata(getattr(record, name)) for name in METADATA_FIELDS},
    }


def _format_metadata(value: int | str | None) -> str:
    if value is None:
        return ""
    return str(value)


def parse_history_csv(text: str) -> HistoryTable:
    """Parse CSV text into a HistoryTable.

    Raises:
        FormatError: required columns are missing, a row has the wrong number
            of fields, or a play count is not a positive integer.
        EmptyInputError: the input is blank, or the header is valid but no
            data rows follow.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))

    columns: dict[str, str] = {}
    table: HistoryTable | None = None

    try:
        for row in reader:
            values = [value.strip() for value in row]
            if not any(values):
                continue

            if table is None:
                columns = _resolve_columns(values, reader.line_num)
                table = HistoryTable(fieldnames=values)
                continue

            fieldnames = table.fieldnames
            if len(values) != len(fieldnames):
                msg = f"Expected {len(fieldnames)} fields, found {len(values)}"
                raise FormatError(msg, line=reader.line_num)

            raw = dict(zip(fieldnames, values))
            table.rows.append(raw)
            table.records.append(record_from_row(raw, columns, reader.line_num))
    except csv.Error as exc:
        raise FormatError(str(exc), line=reader.line_num) from exc

    if table is None or not table.records:
        msg = "No data rows found in CSV input"
        raise EmptyInputError(msg)

    logger.debug(
        "Parsed %d rows with columns %s.",
        len(table.records),
        ", ".join(table.fieldnames),
    )
    return table


def _export_fieldnames(table: HistoryTable) -> tuple[list[str], dict[str, str]]:
    fieldnames = list(table.fieldnames)
    by_lower = {name.lower(): name for name in fieldnames}

    metadata_columns: dict[str, str] = {}
    for name in METADATA_FIELDS:
        column = by_lower.get(name)
        if column is None:
            column = name
            fieldnames.append(column)
        metadata_columns[name] = column
    return fieldnames, metadata_columns


def _merge_row(
    shadow: dict[str, str],
    record: PlayEvent,
    metadata_columns: dict[str, str],
) -> dict[str, str]:
    row = dict(shadow)
    for name, column in metadata_columns.items():
        original = shadow.get(column, "")
        current = getattr(record, name)
        # Keep the original spelling (e.g. "3:42") when the value is unchanged.
        if _metadata_value(name, original) == current:
            row[column] = original
        else:
            row[column] = _format_metadata(current)
    return row


def serialize_history_csv(
    records: Iterable[PlayEvent],
    table: HistoryTable | None = None,
) -> str:
    """Serialise records back to CSV text.

    With a table, its header and original rows are reused and the metadata
    columns are filled from the records. Without one, canonical columns are
    written.
    """
    records = list(records)

    if table is None:
        fieldnames = list(CANONICAL_FIELDNAMES)
        rows = [record_to_row(r) for r in records]
    else:
        if len(records) != len(table.rows):
            msg = (
                f"Cannot serialise {len(records)} records against "
                f"{len(table.rows)} original rows."
            )
            raise ValueError(msg)
        fieldnames, metadata_columns = _export_fieldnames(table)
        rows = [
            _merge_row(shadow, record, metadata_columns)
            for shadow, record in zip(table.rows, records)
        ]

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fieldnames, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def read_history_csv(path: str | Path) -> HistoryTable:
    """Load and parse a listening-history CSV file."""
    file_path = Path(path)
    text = file_path.read_text(encoding="utf-8-sig")
    return parse_history_csv(text)


def write_history_csv(
    path: str | Path,
    records: Iterable[PlayEvent],
    table: HistoryTable | None = None,
) -> None:
    """Write records to a CSV file, creating parent directories as needed."""
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_history_csv(records, table), encoding="utf-8")

# src/listening_stats/cli.py

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from listening_stats.analysis.artist_stats import enrichment_progress, format_duration
from listening_stats.analysis.genre_stats import genre_stats
from listening_stats.config import get_store_path
from listening_stats.domain.models import METADATA_FIELDS, Statistics
from listening_stats.exceptions import ListeningStatsError
from listening_stats.history import ListeningHistory
from listening_stats.io.kv_store import JsonFileStore

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the listening-stats CLI."""
    args = _build_arg_parser().parse_args(argv)

    _configure_logging(verbose=args.verbose)

    store_path = Path(args.store) if args.store else get_store_path()

    try:
        history = ListeningHistory(JsonFileStore(store_path))
        history.load_file(args.input)

        if args.command == "analyze":
            _cmd_analyze(history, top_n=args.top, as_json=args.json)
        elif args.command == "genres":
            _cmd_genres(history)
        elif args.command == "set":
            _cmd_set(history, args)
        elif args.command == "export":
            history.export(args.output)
        elif args.command == "enrich":
            _cmd_enrich(history, limit=args.limit, output=args.output)
        else:
            msg = f"Unknown command: {args.command}"
            raise ValueError(msg)
    except (ListeningStatsError, OSError) as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user. Exiting.")
        sys.exit(1)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="listening-stats",
        description="Analyse a music listening-history CSV file.",
    )

    parser.add_argument(
        "--store",
        default=None,
        help=(
            "JSON file holding track metadata you entered "
            "(default: $LISTENING_STATS_STORE or data/metadata_store.json)."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        help="Sub-command to run.",
    )

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Print listening statistics.",
    )
    analyze_parser.add_argument("input", help="Listening-history CSV file.")
    analyze_parser.add_argument(
        "--top",
        type=_non_negative_int,
        default=None,
        help="Only list the top N artists, albums and tracks.",
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full statistics as JSON.",
    )

    genres_parser = subparsers.add_parser(
        "genres",
        help="Print per-genre statistics.",
    )
    genres_parser.add_argument("input", help="Listening-history CSV file.")

    set_parser = subparsers.add_parser(
        "set",
        help="Store metadata for one track.",
    )
    set_parser.add_argument("input", help="Listening-history CSV file.")
    set_parser.add_argument("--artist", required=True)
    set_parser.add_argument("--album", required=True)
    set_parser.add_argument("--track", required=True)
    for name in METADATA_FIELDS:
        set_parser.add_argument(
            f"--{name}",
            default=None,
            help=(
                "Duration in seconds or m:ss."
                if name == "duration"
                else f"Track {name}."
            ),
        )
    set_parser.add_argument(
        "--output",
        default=None,
        help="Also write the enriched CSV to this path.",
    )

    export_parser = subparsers.add_parser(
        "export",
        help="Write the CSV with stored metadata filled in.",
    )
    export_parser.add_argument("input", help="Listening-history CSV file.")
    export_parser.add_argument("output", help="Path of the CSV file to write.")

    enrich_parser = subparsers.add_parser(
        "enrich",
        help="Look up missing durations and genres on MusicBrainz.",
    )
    enrich_parser.add_argument("input", help="Listening-history CSV file.")
    enrich_parser.add_argument(
        "--limit",
        type=_non_negative_int,
        default=None,
        help="Look up at most this many tracks.",
    )
    enrich_parser.add_argument(
        "--output",
        default=None,
        help="Also write the enriched CSV to this path.",
    )

    return parser


def _non_negative_int(value: str) -> int:
    if not value.isdecimal():
        msg = f"expected a non-negative integer, got {value!r}"
        raise argparse.ArgumentTypeError(msg)
    return int(value)


def _configure_logging(*, verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _print_summary(stats: Statistics) -> None:
    print(f"Total plays:            {stats.total_plays}")
    print(f"Total listening time:   {stats.total_listening_time:.1f} h")
    print(f"Average track duration: {stats.average_track_duration:.1f} min")

    with_duration, total = enrichment_progress(stats, "duration")
    with_genre, _ = enrichment_progress(stats, "genre")
    print(f"Tracks with duration:   {with_duration}/{total}")
    print(f"Tracks with genre:      {with_genre}/{total}")

    print("\nTop artists:")
    for item in stats.top_artists:
        print(f"  {item.count:6d}  {item.name}")

    print("\nTop albums:")
    for item in stats.top_albums:
        print(f"  {item.count:6d}  {item.name}")

    print("\nTop tracks:")
    for track in stats.top_tracks:
        print(f"  {track.count:6d}  {track.artist} - {track.name}")

    patterns = stats.listening_patterns
    print("\nBy hour (UTC):")
    for hour in patterns.by_hour:
        print(f"  {hour.hour:02d}  {hour.count}")
    print("\nBy weekday:")
    for day in patterns.by_day:
        print(f"  {day.day:<10}  {day.count}")
    print("\nBy month:")
    for month in patterns.by_month:
        print(f"  {month.month:<10}  {month.count}")


def _cmd_analyze(history: ListeningHistory, *, top_n: int | None, as_json: bool) -> None:
    stats = history.analyze(top_n=top_n)
    if as_json:
        print(json.dumps(stats.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_summary(stats)


def _cmd_genres(history: ListeningHistory) -> None:
    rollup = genre_stats(history.analyze())
    if not rollup:
        logger.info("No tracks have a genre yet. Use 'set' or 'enrich' first.")
        return

    for genre in rollup:
        print(
            f"{genre.name}: {genre.play_count} plays, {genre.track_count} tracks, "
            f"{genre.artists} artists, {genre.albums} albums, "
            f"{format_duration(genre.total_duration)}"
        )


def _cmd_set(history: ListeningHistory, args: argparse.Namespace) -> None:
    fields = {
        name: getattr(args, name)
        for name in METADATA_FIELDS
        if getattr(args, name) is not None
    }
    if not fields:
        msg = "Nothing to set. Pass at least one of: " + ", ".join(
            f"--{name}" for name in METADATA_FIELDS
        )
        raise ListeningStatsError(msg)

    try:
        history.update_metadata(args.artist, args.album, args.track, **fields)
    except ValueError as exc:
        raise ListeningStatsError(str(exc)) from exc

    if args.output:
        history.export(args.output)


def _cmd_enrich(history: ListeningHistory, *, limit: int | None, output: str | None) -> None:
    from listening_stats.enrichment.enrich import enrich_missing

    updated = enrich_missing(history, limit=limit)
    print(f"Enriched {updated} tracks.")

    if output:
        history.export(output)


if __name__ == "__main__":
    # python -m listening_stats.cli analyze data/history.csv --top 10
    # python -m listening_stats.cli set data/history.csv --artist A --album X --track T1 --duration 3:42
    main()

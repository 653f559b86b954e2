# listening_stats/config.py

"""Shared configuration and environment setup."""

from __future__ import annotations

from pathlib import Path

try:
    from dotenv import load_dotenv

    load_dotenv(override=True)
except ImportError:
    pass

DEFAULT_STORE_FILENAME = "metadata_store.json"


def get_project_root() -> Path:
    """Return the project root directory.

    Prefers LISTENING_STATS_PROJECT_ROOT env var. Falls back to current working
    directory.
    """
    from os import getenv

    if root := getenv("LISTENING_STATS_PROJECT_ROOT"):
        return Path(root).resolve()
    return Path.cwd()


def get_store_path() -> Path:
    """Return the path of the JSON file holding persisted track metadata."""
    from os import getenv

    if store := getenv("LISTENING_STATS_STORE"):
        return Path(store).expanduser()
    return get_project_root() / "data" / DEFAULT_STORE_FILENAME

# listening_stats/io/kv_store.py

"""String key-value stores used to persist track metadata between sessions."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal durable storage interface: string keys to string values."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryStore:
    """Dict-backed store. Lives as long as the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """Store that keeps all keys in a single JSON object on disk.

    The file is read once on construction and rewritten in full on every
    `set`. A missing file is treated as an empty store.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._data: dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        data = {**self._data, key: value}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        self._data = data
        logger.debug("Wrote key %s to %s.", key, self._path)

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        with self._path.open("r", encoding="utf-8") as f:
            text = f.read()
        if not text.strip():
            return {}

        try:
            obj = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring invalid JSON store %s: %s", self._path, exc)
            return {}
        if not isinstance(obj, dict):
            logger.warning("Ignoring JSON store %s: top level is not an object.", self._path)
            return {}

        return {k: v for k, v in obj.items() if isinstance(v, str)}

# src/merlin/session/storage.py

"""
Client-local persistent key-value storage for the session.

Keys are plain strings, values are strings (the user object is stored as
JSON text by the session store, the same way a browser keeps it in
localStorage).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class MemoryStorage:
    """In-process storage. Used by tests and when persistence is disabled."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """
    Small JSON-file backed storage.

    - Every write rewrites the whole file via tmp + os.replace (no torn files).
    - The file holds a bearer token, so it is chmod'ed to 0600 (best-effort).
    - A missing or corrupt file reads as empty; it is never an error.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, str] = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.warning("Session file %s is unreadable; starting empty.", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Session file %s has unexpected shape; starting empty.", self._path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            os.chmod(self._path, 0o600)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

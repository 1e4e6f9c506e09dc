"""
Persisted crawl cursors: source name -> highest post id seen.

Read once when a crawl starts (update mode stops at this id) and written once
when it completes.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Optional

from .store import atomic_write_json


class CursorStore:
    def __init__(self, *, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"{self._path}: expected a JSON object")
        return raw

    def load_all(self) -> dict[str, int]:
        """
        Raises:
            ValueError: a stored cursor is not an integer.
        """
        with self._lock:
            return {name: _parse_cursor(name, value) for name, value in self._read().items()}

    def get(self, source: str) -> int:
        """Last known cursor for `source`, 0 when it was never crawled."""
        with self._lock:
            value: Optional[object] = self._read().get(source)
        if value is None:
            return 0
        return _parse_cursor(source, value)

    def save(self, source: str, post_id: int) -> None:
        with self._lock:
            data = self._read()
            data[source] = str(int(post_id))
            atomic_write_json(self._path, dict(sorted(data.items())))

    def delete(self, source: str) -> bool:
        with self._lock:
            data = self._read()
            if source not in data:
                return False
            data.pop(source)
            atomic_write_json(self._path, dict(sorted(data.items())))
            return True


def _parse_cursor(source: str, value: object) -> int:
    try:
        if isinstance(value, bool):
            raise TypeError
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"cursor for {source!r} is not an integer: {value!r}") from None
    if parsed < 0:
        raise ValueError(f"cursor for {source!r} is negative: {value!r}")
    return parsed

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable

from .models import GlobalSettings

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, payload: Any) -> None:
    """Write `payload` next to `path` first, then rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(path.name + ".tmp")
    staging.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    staging.replace(path)


class SettingsStore:
    """
    JSON-file backed GlobalSettings.

    A missing or unreadable file yields defaults; nothing is written until
    the first save.
    """

    def __init__(self, *, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_raw(self) -> dict:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("settings %s unreadable, using defaults: %s", self._path, exc)
            return {}
        return raw if isinstance(raw, dict) else {}

    def load(self) -> GlobalSettings:
        with self._lock:
            raw = self._read_raw()
        return GlobalSettings.from_persist_dict(raw) if raw else GlobalSettings()

    def save(self, settings: GlobalSettings) -> None:
        with self._lock:
            atomic_write_json(self._path, settings.to_persist_dict())

    def update(self, *, mutator: Callable[[GlobalSettings], GlobalSettings]) -> GlobalSettings:
        with self._lock:
            updated = mutator(self.load())
            if not isinstance(updated, GlobalSettings):
                raise TypeError("mutator must return GlobalSettings")
            self.save(updated)
            return updated

    def set_value(self, *, key: str, value: Any) -> GlobalSettings:
        """Replace one top-level field; unknown keys raise KeyError."""

        def _assign(settings: GlobalSettings) -> GlobalSettings:
            if not hasattr(settings, key):
                raise KeyError(key)
            setattr(settings, key, value)
            return settings

        return self.update(mutator=_assign)

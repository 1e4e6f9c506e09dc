"""
Thread-safe counters for crawl/download telemetry.

Counters are independent commutative increments; reads during a run are
best-effort snapshots with no ordering relationship between fields.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any


@dataclass
class CrawlStats:
    """Process-wide counters shared by every source in a run."""
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    total_found: int = 0
    already_exists: int = 0
    files_downloaded: int = 0
    bytes_downloaded: int = 0
    failed: int = 0

    def inc(self, name: str, amount: int = 1) -> None:
        with self.lock:
            setattr(self, name, getattr(self, name) + amount)

    def add_bytes(self, n: int) -> None:
        self.inc("bytes_downloaded", int(n))

    def snapshot(self) -> dict[str, int]:
        with self.lock:
            return {
                "total_found": self.total_found,
                "already_exists": self.already_exists,
                "files_downloaded": self.files_downloaded,
                "bytes_downloaded": self.bytes_downloaded,
                "failed": self.failed,
            }


class SourceProgress:
    """
    Per-source progress sink.

    `total` is the expected amount of work (raised when a task is queued),
    `done` counts finished downloads.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._total = 0
        self._done = 0

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def done(self) -> int:
        with self._lock:
            return self._done

    def add_total(self, n: int = 1) -> None:
        with self._lock:
            self._total += n

    def increment(self) -> None:
        with self._lock:
            self._done += 1

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {"source": self.name, "total": self._total, "done": self._done}

    def __repr__(self) -> str:
        return f"SourceProgress({self.name!r}, {self.done}/{self.total})"

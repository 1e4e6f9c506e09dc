from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def _as_utc(dt: datetime) -> datetime:
    # Naive datetimes are taken to be UTC already.
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


def compute_runtime_s(
    started_at: Optional[datetime],
    finished_at: Optional[datetime],
    *,
    now: Optional[datetime] = None,
) -> float:
    """
    Seconds between `started_at` and `finished_at`, never negative.

    Not started means 0.0; an unfinished crawl is measured up to `now`
    (default: the current time).
    """
    if started_at is None:
        return 0.0

    end = finished_at or now or datetime.now(timezone.utc)
    elapsed = _as_utc(end) - _as_utc(started_at)
    return max(0.0, elapsed.total_seconds())


def compute_avg_speed(files_downloaded: int, already_exists: int, runtime_s: float) -> float:
    """Handled files per second; files already on disk count as handled."""
    if runtime_s <= 0:
        return 0.0
    return (int(files_downloaded) + int(already_exists)) / float(runtime_s)


def format_bytes(n: int) -> str:
    size = float(max(0, int(n)))
    if size < 1024:
        return f"{size:.0f} B"
    for unit in ("KiB", "MiB", "GiB"):
        size /= 1024
        if size < 1024 or unit == "GiB":
            break
    return f"{size:.1f} {unit}"

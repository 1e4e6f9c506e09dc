from __future__ import annotations

from .counters import CrawlStats, SourceProgress
from .metrics import compute_avg_speed, compute_runtime_s, format_bytes

__all__ = [
    "CrawlStats",
    "SourceProgress",
    "compute_avg_speed",
    "compute_runtime_s",
    "format_bytes",
]

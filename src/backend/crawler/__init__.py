"""
Pagination + extraction + dedup pipeline for one source.

- models.py: Source, DownloadTask, CrawlPhase, QUEUE_CLOSED
- signals.py: StopSignal (one-shot) and HighestIdCursor
- dedup.py: existence-based filter in front of the output queue
- coordinator.py: the paging loop and per-page extraction tasks
"""

from .coordinator import CrawlCoordinator
from .dedup import DedupQueueFilter
from .models import QUEUE_CLOSED, CrawlPhase, CrawlResult, DownloadTask, Source
from .signals import HighestIdCursor, StopSignal

__all__ = [
    "QUEUE_CLOSED",
    "CrawlCoordinator",
    "CrawlPhase",
    "CrawlResult",
    "DedupQueueFilter",
    "DownloadTask",
    "HighestIdCursor",
    "Source",
    "StopSignal",
]

"""
Dedup & queue filter: only media without a file on disk reaches the downloader.

The check is by destination path (<root>/<source>/<basename>), not content;
an existing file is trusted as-is.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.backend.fs.storage import SourceStorageManager
from src.shared.stats.counters import CrawlStats

from .models import DownloadTask

logger = logging.getLogger(__name__)


class DedupQueueFilter:
    def __init__(
        self,
        *,
        storage: SourceStorageManager,
        queue: asyncio.Queue[Any],
        stats: CrawlStats,
    ) -> None:
        self._storage = storage
        self._queue = queue
        self._stats = stats

    @property
    def queue(self) -> asyncio.Queue[Any]:
        return self._queue

    async def offer(self, task: DownloadTask) -> bool:
        """
        Queue `task` unless its destination already exists.

        Counters are raised before the (possibly blocking) put, so the
        progress total can briefly include tasks not yet delivered.

        Returns:
            True if the task was queued.
        """
        try:
            exists = self._storage.exists(task.source, task.url)
        except ValueError as exc:
            logger.warning("%s: skipping unusable URL %s: %s", task.source, task.url, exc)
            return False

        if exists:
            self._stats.inc("already_exists")
            return False

        task.progress.add_total(1)
        self._stats.inc("total_found")
        await self._queue.put(task)
        return True

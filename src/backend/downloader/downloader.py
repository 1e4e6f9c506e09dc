"""
Media downloader: consumes DownloadTasks from a crawl's output queue.

- Destination: <root>/<source>/<basename-of-url>
- Writes go to a temp file in the same directory and are atomically renamed
- The file mtime is set to the post's timestamp
- Transport failures are retried (RetryConfig); a task that still fails is
  logged and counted, the worker moves on
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from src.backend.crawler.models import QUEUE_CLOSED, DownloadTask
from src.backend.fs.storage import SourceStorageManager
from src.backend.net.retry import RetryConfig, with_retry
from src.shared.stats.counters import CrawlStats

logger = logging.getLogger(__name__)


class DownloadStatus(str, Enum):
    """Status of a single download."""
    SUCCESS = "success"
    SKIPPED_EXISTING = "skipped_existing"
    FAILED = "failed"


@dataclass
class DownloadResult:
    status: DownloadStatus
    task: DownloadTask
    file_path: Optional[Path] = None
    size: int = 0
    error: Optional[str] = None


# Type for download function: (url) -> bytes
DownloadFunc = Callable[[str], bytes]


class MediaDownloader:
    """
    Usage:
        downloader = MediaDownloader(storage=storage, download_func=client.get_bytes, stats=stats)
        await downloader.consume(queue, workers=4)
    """

    def __init__(
        self,
        *,
        storage: SourceStorageManager,
        download_func: DownloadFunc,
        stats: CrawlStats,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        self._storage = storage
        self._download_func = download_func
        self._stats = stats
        self._retry = retry or RetryConfig()

    def download(self, task: DownloadTask) -> DownloadResult:
        """Download one task (blocking)."""
        try:
            final_path = self._storage.media_path(task.source, task.url)
            if final_path.exists():
                # Another task in this run already fetched the same file name.
                return DownloadResult(status=DownloadStatus.SKIPPED_EXISTING, task=task, file_path=final_path)

            content = with_retry(lambda: self._download_func(task.url), config=self._retry)
            self._atomic_write_bytes(final_path, content)
            self._set_mtime(final_path, task.unix_timestamp)
        except Exception as exc:  # noqa: BLE001 - one bad file must not stop the run
            self._stats.inc("failed")
            logger.error("%s: download failed %s: %s", task.source, task.url, exc)
            return DownloadResult(status=DownloadStatus.FAILED, task=task, error=str(exc))
        finally:
            task.progress.increment()

        self._stats.inc("files_downloaded")
        self._stats.add_bytes(len(content))
        logger.debug("%s: saved %s (%d bytes)", task.source, final_path.name, len(content))
        return DownloadResult(status=DownloadStatus.SUCCESS, task=task, file_path=final_path, size=len(content))

    async def worker(self, wid: int, queue: asyncio.Queue[Any]) -> list[DownloadResult]:
        results: list[DownloadResult] = []
        while True:
            item = await queue.get()
            try:
                if item is QUEUE_CLOSED:
                    # Hand the sentinel on so sibling workers stop too.
                    queue.put_nowait(QUEUE_CLOSED)
                    logger.debug("Downloader %d received QUEUE_CLOSED", wid)
                    return results
                results.append(await asyncio.to_thread(self.download, item))
            finally:
                queue.task_done()

    async def consume(self, queue: asyncio.Queue[Any], *, workers: int = 1) -> list[DownloadResult]:
        """Run `workers` consumers until the queue is closed."""
        batches = await asyncio.gather(*(self.worker(i, queue) for i in range(max(1, workers))))
        return [r for batch in batches for r in batch]

    @staticmethod
    def _atomic_write_bytes(final_path: Path, content: bytes) -> None:
        final_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path_str = tempfile.mkstemp(
            dir=str(final_path.parent),
            prefix=f".{final_path.name}.",
            suffix=".tmp",
        )
        tmp_path = Path(tmp_path_str)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, final_path)
        finally:
            try:
                tmp_path.unlink()
            except FileNotFoundError:
                pass

    @staticmethod
    def _set_mtime(path: Path, unix_timestamp: int) -> None:
        if unix_timestamp <= 0:
            return
        try:
            os.utime(path, (os.stat(path).st_atime, unix_timestamp))
        except OSError as exc:
            logger.warning("could not set mtime on %s: %s", path, exc)

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from src.backend.crawler.coordinator import CrawlCoordinator
from src.backend.crawler.dedup import DedupQueueFilter
from src.backend.crawler.models import CrawlResult, Source
from src.backend.downloader.downloader import DownloadStatus, MediaDownloader
from src.backend.fs.storage import SourceStorageManager
from src.backend.net.http_client import HttpClient
from src.backend.net.throttle import Throttle
from src.backend.scheduler.models import Run
from src.backend.scraper.gfycat import GfycatResolver
from src.backend.scraper.page_fetcher import PageFetcher
from src.backend.settings.cursors import CursorStore
from src.backend.settings.models import GlobalSettings
from src.backend.settings.store import SettingsStore
from src.shared.feed.extractor import ExtractionConfig, MediaExtractor
from src.shared.stats.counters import CrawlStats
from src.shared.stats.metrics import compute_runtime_s

logger = logging.getLogger(__name__)


@dataclass
class SourceRunSummary:
    source: str
    crawl: CrawlResult
    downloaded: int
    skipped_existing: int
    failed: int
    runtime_s: float
    progress: dict[str, Any] = field(default_factory=dict)


def _build_coordinator(
    *,
    settings: GlobalSettings,
    client: HttpClient,
    storage: SourceStorageManager,
    queue: asyncio.Queue[Any],
    stats: CrawlStats,
    throttle: Throttle,
    cursor_store: CursorStore,
    update_mode: bool,
) -> CrawlCoordinator:
    retry = settings.get_retry()
    resolver = GfycatResolver(client=client, retry=retry)
    extractor = MediaExtractor(
        resolver=resolver,
        config=ExtractionConfig(
            ignore_photos=settings.ignore_photos,
            ignore_videos=settings.ignore_videos,
        ),
    )
    return CrawlCoordinator(
        fetcher=PageFetcher(client=client, retry=retry),
        extractor=extractor,
        dedup_filter=DedupQueueFilter(storage=storage, queue=queue, stats=stats),
        throttle=throttle,
        cursor_store=cursor_store,
        update_mode=update_mode,
    )


async def run_source_pipeline(
    *,
    source: Source,
    settings: GlobalSettings,
    cursor_store: CursorStore,
    throttle: Throttle,
    stats: CrawlStats,
    update_mode: bool = False,
    client: Optional[HttpClient] = None,
) -> SourceRunSummary:
    """
    Single-source runner: crawl -> dedup -> download, concurrently.

    The crawl fills a bounded queue that the download workers drain; the
    crawl closes the queue when it is done, which ends the workers.
    """
    started_at = datetime.now(timezone.utc)
    client = client or HttpClient(proxy=settings.get_proxy())
    storage = SourceStorageManager(Path(settings.download_root))
    await asyncio.to_thread(storage.ensure_source_dir, source.name)

    queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=settings.queue_size)
    coordinator = _build_coordinator(
        settings=settings,
        client=client,
        storage=storage,
        queue=queue,
        stats=stats,
        throttle=throttle,
        cursor_store=cursor_store,
        update_mode=update_mode,
    )
    downloader = MediaDownloader(
        storage=storage,
        download_func=client.get_bytes,
        stats=stats,
        retry=settings.get_retry(),
    )

    consumer = asyncio.create_task(
        downloader.consume(queue, workers=settings.download_workers),
        name=f"download-{source.name}",
    )
    try:
        crawl = await coordinator.crawl(source)
    except BaseException:
        consumer.cancel()
        await asyncio.gather(consumer, return_exceptions=True)
        raise

    results = await consumer
    summary = SourceRunSummary(
        source=source.name,
        crawl=crawl,
        downloaded=sum(1 for r in results if r.status == DownloadStatus.SUCCESS),
        skipped_existing=sum(1 for r in results if r.status == DownloadStatus.SKIPPED_EXISTING),
        failed=sum(1 for r in results if r.status == DownloadStatus.FAILED),
        runtime_s=compute_runtime_s(started_at, datetime.now(timezone.utc)),
        progress=source.progress.to_dict(),
    )
    logger.info(
        "%s: %d pages, %d downloaded, %d failed, cursor=%d",
        source.name,
        crawl.pages_fetched,
        summary.downloaded,
        summary.failed,
        crawl.highest_post_id,
    )
    return summary


def create_source_runner(
    *,
    store: SettingsStore,
    cursor_store: CursorStore,
    throttle: Throttle,
    stats: CrawlStats,
) -> Callable[[Run], Awaitable[None]]:
    """Adapter for the Scheduler: one Run -> one source pipeline."""

    async def _runner(run: Run) -> None:
        source = Source(
            name=run.source,
            tag=run.tag,
            last_post_id=await asyncio.to_thread(cursor_store.get, run.source),
        )
        summary = await run_source_pipeline(
            source=source,
            settings=store.load(),
            cursor_store=cursor_store,
            throttle=throttle,
            stats=stats,
            update_mode=(run.kind == "update"),
        )
        if summary.failed:
            raise RuntimeError(
                f"download failures: {summary.failed} failed "
                f"(downloaded={summary.downloaded}, pages={summary.crawl.pages_fetched})"
            )

    return _runner

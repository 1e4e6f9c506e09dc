"""
Crawl coordinator: drives paging for one source and fans out extraction.

    PAGING -> AWAIT_RATE_LIMIT -> PAGING -> EXTRACTING -> PAGING -> ...
                      |                |
                      +-- stop --------+-- empty page --> DRAINING -> DONE

Pages are requested strictly in order (1, 2, 3, ...). Each non-empty page is
handed to its own extraction task and paging continues without waiting for
it. The highest post id seen is tracked across tasks under a lock and
persisted once every task has finished; the output queue is then closed with
QUEUE_CLOSED.

In update mode, the first post at or below the source's previous cursor fires
the stop signal: no further page is requested, the rest of that page is
skipped, and posts before it on the same page are still extracted.

A page that could not be decoded is stepped over. A failed extraction task
(e.g. a broken short-link API) fires the stop signal too: paging ends at once,
the remaining tasks are cancelled and the error is re-raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from src.backend.net.throttle import Throttle
from src.backend.settings.cursors import CursorStore
from src.shared.feed.extractor import MediaExtractor
from src.shared.feed.models import Page, Post

from .dedup import DedupQueueFilter
from .models import QUEUE_CLOSED, CrawlPhase, CrawlResult, DownloadTask, Source
from .signals import HighestIdCursor, StopSignal

logger = logging.getLogger(__name__)

# Consecutive undecodable pages after which the blog is taken to be gone.
DEFAULT_MAX_MALFORMED_PAGES = 5


class PageSource(Protocol):
    async def fetch(self, name: str, page: int, *, tag: Optional[str] = None) -> Page: ...


@dataclass
class _CrawlState:
    stop: StopSignal = field(default_factory=StopSignal)
    cursor: HighestIdCursor = field(default_factory=HighestIdCursor)
    tasks: list[asyncio.Task[None]] = field(default_factory=list)
    pages_fetched: int = 0
    malformed_in_row: int = 0
    failure: Optional[BaseException] = None


class CrawlCoordinator:
    def __init__(
        self,
        *,
        fetcher: PageSource,
        extractor: MediaExtractor,
        dedup_filter: DedupQueueFilter,
        throttle: Throttle,
        cursor_store: Optional[CursorStore] = None,
        update_mode: bool = False,
        max_malformed_pages: int = DEFAULT_MAX_MALFORMED_PAGES,
    ) -> None:
        self._fetcher = fetcher
        self._extractor = extractor
        self._dedup = dedup_filter
        self._throttle = throttle
        self._cursor_store = cursor_store
        self._update_mode = bool(update_mode)
        self._max_malformed_pages = max(1, int(max_malformed_pages))
        self._phase = CrawlPhase.PAGING

    @property
    def phase(self) -> CrawlPhase:
        return self._phase

    @property
    def queue(self) -> asyncio.Queue[Any]:
        return self._dedup.queue

    def _set_phase(self, source: Source, phase: CrawlPhase) -> None:
        if phase != self._phase:
            logger.debug("%s: %s -> %s", source.name, self._phase.value, phase.value)
        self._phase = phase

    async def crawl(self, source: Source) -> CrawlResult:
        """
        Crawl `source` to the end (or to the known cursor in update mode).

        Raises whatever an extraction task raised (e.g. a fatal resolver
        error) once paging has stopped and the other tasks are cancelled; the
        queue is closed in every case, the cursor only on success.
        """
        state = _CrawlState()
        self._phase = CrawlPhase.PAGING

        try:
            await self._page_loop(source, state)
        except asyncio.CancelledError:
            for task in state.tasks:
                task.cancel()
            await asyncio.gather(*state.tasks, return_exceptions=True)
            self._close_queue_nowait()
            self._set_phase(source, CrawlPhase.DONE)
            raise
        except Exception:
            await self._drain(source, state, raise_errors=False)
            await self._close_queue()
            self._set_phase(source, CrawlPhase.DONE)
            raise

        try:
            await self._drain(source, state, raise_errors=True)
            highest = state.cursor.value
            if self._cursor_store is not None and highest > 0:
                self._cursor_store.save(source.name, highest)
        finally:
            await self._close_queue()
            self._set_phase(source, CrawlPhase.DONE)

        logger.info("Done scraping for %s (%d pages)", source.name, state.pages_fetched)
        return CrawlResult(
            source=source.name,
            pages_fetched=state.pages_fetched,
            highest_post_id=state.cursor.value,
            stopped_early=state.stop.is_set(),
        )

    async def _page_loop(self, source: Source, state: _CrawlState) -> None:
        page_index = 1
        while True:
            self._set_phase(source, CrawlPhase.PAGING)
            if state.stop.is_set():
                return

            self._set_phase(source, CrawlPhase.AWAIT_RATE_LIMIT)
            if not await self._throttle.wait_async(cancel=state.stop.event):
                return

            self._set_phase(source, CrawlPhase.PAGING)
            logger.info("%s is on page %d", source.name, page_index)
            page = await self._fetcher.fetch(source.name, page_index, tag=source.tag)
            state.pages_fetched += 1

            if page.malformed:
                state.malformed_in_row += 1
                if state.malformed_in_row >= self._max_malformed_pages:
                    logger.error(
                        "%s: %d undecodable pages in a row, ending crawl",
                        source.name,
                        state.malformed_in_row,
                    )
                    return
                page_index += 1
                continue
            state.malformed_in_row = 0

            if page.is_empty:
                return

            self._set_phase(source, CrawlPhase.EXTRACTING)
            task = asyncio.create_task(
                self._extract_page(source, page, state),
                name=f"extract-{source.name}-{page_index}",
            )
            task.add_done_callback(lambda t: self._on_extract_done(source, state, t))
            state.tasks.append(task)
            page_index += 1

    def _on_extract_done(self, source: Source, state: _CrawlState, task: asyncio.Task[None]) -> None:
        if task.cancelled() or task.exception() is None:
            return
        if state.failure is None:
            state.failure = task.exception()
            logger.error("%s: extraction failed, stopping crawl: %s", source.name, state.failure)
        state.stop.trigger()

    async def _drain(self, source: Source, state: _CrawlState, *, raise_errors: bool) -> None:
        self._set_phase(source, CrawlPhase.DRAINING)
        if state.failure is not None:
            for task in state.tasks:
                task.cancel()
        results = await asyncio.gather(*state.tasks, return_exceptions=True)
        errors = [r for r in results if isinstance(r, Exception)]
        first = state.failure or (errors[0] if errors else None)
        for err in errors:
            if err is not first:
                logger.error("%s: extraction failed: %s", source.name, err)
        if first is not None and raise_errors:
            raise first

    def _accept_posts(self, source: Source, page: Page, state: _CrawlState) -> list[Post]:
        """
        Raise the shared cursor for each post in order and apply the update
        mode stop rule. Returns the posts to extract.

        Runs without awaiting so the stop decision for a page is made before
        the paging loop can ask for the next one.
        """
        accepted: list[Post] = []
        for post in page.posts:
            state.cursor.observe(post.post_id)
            if self._update_mode and post.post_id <= source.last_post_id:
                if state.stop.trigger():
                    logger.info(
                        "%s: reached known post %d on page %d, stopping",
                        source.name,
                        post.post_id,
                        page.index,
                    )
                break
            accepted.append(post)
        return accepted

    async def _extract_page(self, source: Source, page: Page, state: _CrawlState) -> None:
        for post in self._accept_posts(source, page, state):
            urls = await asyncio.to_thread(self._extractor.extract, post)
            for url in urls:
                await self._dedup.offer(
                    DownloadTask(
                        source=source.name,
                        url=url,
                        unix_timestamp=post.unix_timestamp,
                        progress=source.progress,
                    )
                )

    async def _close_queue(self) -> None:
        await self.queue.put(QUEUE_CLOSED)

    def _close_queue_nowait(self) -> None:
        try:
            self.queue.put_nowait(QUEUE_CLOSED)
        except asyncio.QueueFull:
            logger.warning("output queue full while cancelling; consumers must be cancelled too")

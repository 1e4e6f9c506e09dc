from __future__ import annotations

import asyncio
import logging
from typing import Optional

from src.backend.net.http_client import HttpClient, HttpResponse
from src.backend.net.retry import RetryConfig, with_retry_async
from src.shared.feed.models import Page

from .tumblr_api import PagePayloadError, build_read_url, parse_page

logger = logging.getLogger(__name__)


class PageFetcher:
    """
    Fetches and decodes one read-API page.

    Transport failures are retried on the same page without limit; pages must
    be processed in order with no gaps. A payload that cannot be decoded (or a
    non-retryable HTTP status) is logged and yields a page marked malformed,
    which the crawl steps over.
    """

    def __init__(
        self,
        *,
        client: HttpClient,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        self._client = client
        self._retry = retry or RetryConfig()

    async def fetch(self, name: str, page: int, *, tag: Optional[str] = None) -> Page:
        url = build_read_url(name, page, tag=tag)

        def _on_retry(attempt: int, exc: Exception, delay: float) -> None:
            logger.warning("%s: page %d failed (attempt %d), retrying in %.2fs: %s", name, page, attempt + 1, delay, exc)

        resp: HttpResponse = await with_retry_async(
            lambda: asyncio.to_thread(self._client.get, url),
            config=self._retry,
            on_retry=_on_retry,
        )

        if not resp.ok:
            logger.error("%s: page %d answered HTTP %d, skipping it", name, page, resp.status)
            return Page(index=page, malformed=True)

        try:
            return parse_page(resp.text(), index=page)
        except PagePayloadError as exc:
            logger.error("%s: %s", name, exc)
            return Page(index=page, malformed=True)

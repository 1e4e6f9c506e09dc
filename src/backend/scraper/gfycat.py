"""
Gfycat short-link resolution.

Captions link to gfycat pages (`href="https://gfycat.com/<slug>"`); the
download needs the direct mp4 URL from the lookup endpoint.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from src.backend.net.http_client import HttpClient
from src.backend.net.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

LOOKUP_URL = "https://gfycat.com/cajax/get/{slug}"
NOT_FOUND_BODY = "Not Found"


class ResolverContractError(RuntimeError):
    """
    The lookup endpoint answered with something that is neither the
    "Not Found" marker nor JSON. Treated as fatal: the API contract changed.
    """


def parse_lookup_body(body: str, *, slug: str = "") -> str:
    """
    Map a lookup response body to a direct URL ("" when absent).

    Raises:
        ResolverContractError: body is not valid JSON.
    """
    if body == NOT_FOUND_BODY:
        return ""

    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ResolverContractError(f"gfycat {slug}: malformed lookup response: {body[:200]!r}") from exc

    item = data.get("gfyItem") if isinstance(data, dict) else None
    if not isinstance(item, dict):
        return ""
    url = item.get("mp4Url")
    return url if isinstance(url, str) else ""


class GfycatResolver:
    """Callable resolver: slug -> direct mp4 URL, or "" when absent."""

    def __init__(self, *, client: HttpClient, retry: Optional[RetryConfig] = None) -> None:
        self._client = client
        self._retry = retry or RetryConfig()

    def resolve(self, slug: str) -> str:
        url = LOOKUP_URL.format(slug=slug)
        resp = with_retry(lambda: self._client.get(url), config=self._retry)
        resolved = parse_lookup_body(resp.text(), slug=slug)
        if not resolved:
            logger.info("gfycat %s: not found", slug)
        return resolved

    __call__ = resolve

"""
Tumblr v1 read API: request URLs and payload decoding.

The endpoint answers with JavaScript rather than JSON:

    var tumblr_api_read = {"tumblelog": {...}, "posts": [...]};

so the variable prefix and the semicolons are stripped before decoding.
"""

from __future__ import annotations

import json
from typing import Any, Optional
from urllib.parse import urlencode

from src.shared.feed.models import Page, PostPayloadError

PAGE_SIZE = 50
READ_API_URL = "http://{name}.tumblr.com/api/read/json"
SCRIPT_PREFIX = "var tumblr_api_read = "


class PagePayloadError(ValueError):
    """A page body could not be decoded into posts."""


def page_offset(page: int) -> int:
    """Zero-based offset of 1-based page `page`."""
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    return (page - 1) * PAGE_SIZE


def build_read_url(name: str, page: int, *, tag: Optional[str] = None) -> str:
    params: dict[str, Any] = {"num": PAGE_SIZE, "start": page_offset(page)}
    if tag:
        params["tagged"] = tag
    return f"{READ_API_URL.format(name=name)}?{urlencode(params)}"


def strip_script_wrapper(text: str) -> str:
    # Every ';' goes, including ones inside captions; the payload only
    # decodes cleanly with all of them removed.
    return text.replace(SCRIPT_PREFIX, "", 1).replace(";", "")


def parse_page(text: str, *, index: int) -> Page:
    """
    Decode a read-API body into a Page.

    Raises:
        PagePayloadError: body is not the expected structure.
    """
    try:
        data = json.loads(strip_script_wrapper(text))
    except json.JSONDecodeError as exc:
        raise PagePayloadError(f"page {index}: invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise PagePayloadError(f"page {index}: expected object, got {type(data).__name__}")

    try:
        return Page.from_dict(data, index=index)
    except PostPayloadError as exc:
        raise PagePayloadError(f"page {index}: {exc}") from exc

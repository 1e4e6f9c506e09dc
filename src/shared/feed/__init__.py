from __future__ import annotations

from .extractor import (
    VIDEO_RULES,
    ExtractionConfig,
    MediaExtractor,
    VideoRule,
    extract_video_url,
    find_inline_media,
    find_short_links,
)
from .models import Page, Post, PostKind, PostPayloadError, parse_post_id

__all__ = [
    "VIDEO_RULES",
    "ExtractionConfig",
    "MediaExtractor",
    "Page",
    "Post",
    "PostKind",
    "PostPayloadError",
    "VideoRule",
    "extract_video_url",
    "find_inline_media",
    "find_short_links",
    "parse_post_id",
]

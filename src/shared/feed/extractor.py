"""
Media URL extraction: one Post -> zero or more raw media URLs.

Dispatch by post kind:
- photo:    gallery URLs (or the single photo URL), then short-link references
            found in the caption
- answer /
  regular:  inline media URLs embedded in the text body
- video:    direct URL pulled from the embedded player markup by the first
            matching VideoRule, then short-link references in the caption
- other:    nothing

Short-link references (gfycat slugs) are resolved through an injected resolver
so this module stays free of network code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .models import Post, PostKind


INLINE_MEDIA_PATTERN = re.compile(
    r"(http://\d{2}\.media\.tumblr\.com/\w{32}/tumblr_inline_\w+\.\w+)"
)
GFYCAT_LINK_PATTERN = re.compile(r'href="https?://(?:www\.)?gfycat\.com/(\w+)')

VIDEO_EXTENSION = ".mp4"

# slug -> direct URL ("" when the resource is absent)
Resolver = Callable[[str], str]


@dataclass(frozen=True)
class VideoRule:
    """A pattern whose first group captures the video URL inside player markup."""
    name: str
    pattern: re.Pattern[str]

    def match(self, player: str) -> Optional[str]:
        m = self.pattern.search(player)
        if m is None:
            return None
        return m.group(1)


# Ordered; the first rule that matches wins. Both are heuristics over the
# player markup and may need replacing when the embed format changes.
VIDEO_RULES: tuple[VideoRule, ...] = (
    VideoRule(name="hd_url", pattern=re.compile(r'"hdUrl":"(.*/tumblr_\w+)"')),
    VideoRule(name="source_tag", pattern=re.compile(r'source src="(.*tumblr_\w+)(?:/\d+)?" type')),
)


@dataclass(frozen=True)
class ExtractionConfig:
    ignore_photos: bool = False
    ignore_videos: bool = False


def find_inline_media(text: str) -> list[str]:
    return INLINE_MEDIA_PATTERN.findall(text or "")


def find_short_links(text: str) -> list[str]:
    """Return gfycat slugs in left-to-right order."""
    return [m.group(1) for m in GFYCAT_LINK_PATTERN.finditer(text or "")]


def extract_video_url(player: str, rules: Sequence[VideoRule] = VIDEO_RULES) -> Optional[str]:
    """
    Pull a direct video URL out of embedded player markup.

    Returns None for embeds hosted elsewhere (YouTube, Vine, ...).
    """
    for rule in rules:
        raw = rule.match(player or "")
        if raw is None:
            continue
        return raw.replace("\\", "") + VIDEO_EXTENSION
    return None


class MediaExtractor:
    def __init__(
        self,
        *,
        resolver: Resolver,
        config: Optional[ExtractionConfig] = None,
        video_rules: Sequence[VideoRule] = VIDEO_RULES,
    ) -> None:
        self._resolver = resolver
        self._config = config or ExtractionConfig()
        self._video_rules = tuple(video_rules)

    @property
    def config(self) -> ExtractionConfig:
        return self._config

    def extract(self, post: Post) -> list[str]:
        if post.kind == PostKind.PHOTO:
            return self._extract_photo(post)
        if post.kind == PostKind.ANSWER:
            return self._extract_inline(post.answer)
        if post.kind == PostKind.REGULAR:
            return self._extract_inline(post.regular_body)
        if post.kind == PostKind.VIDEO:
            return self._extract_video(post)
        return []

    def resolve_short_links(self, text: str) -> list[str]:
        """Resolve every short-link reference in `text`; absent ones are omitted."""
        urls: list[str] = []
        for slug in find_short_links(text):
            url = self._resolver(slug)
            if url:
                urls.append(url)
        return urls

    def _extract_photo(self, post: Post) -> list[str]:
        urls: list[str] = []
        if not self._config.ignore_photos:
            if post.photos:
                urls.extend(post.photos)
            elif post.photo_url:
                urls.append(post.photo_url)

        if not self._config.ignore_videos:
            urls.extend(self.resolve_short_links(post.photo_caption))
        return urls

    def _extract_inline(self, body: str) -> list[str]:
        if self._config.ignore_photos:
            return []
        return find_inline_media(body)

    def _extract_video(self, post: Post) -> list[str]:
        if self._config.ignore_videos:
            return []

        video_url = extract_video_url(post.video_player, self._video_rules)
        if video_url is None:
            return []

        urls = [video_url]
        urls.extend(self.resolve_short_links(post.video_caption))
        return urls

"""
Domain models for the Tumblr read-API feed (pure logic layer).

A page of the v1 read API is a JSON object ``{"posts": [...]}``; each post is a
flat record whose populated fields depend on its ``type``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

logger = logging.getLogger(__name__)


class PostKind(str, Enum):
    PHOTO = "photo"
    ANSWER = "answer"
    REGULAR = "regular"
    VIDEO = "video"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "PostKind":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


class PostPayloadError(ValueError):
    """A single post record cannot be turned into a Post."""


def parse_post_id(value: Any) -> int:
    """
    Parse a post identifier (the API sends numeric strings) into an int.

    Raises:
        PostPayloadError: if the value is not a non-negative integer.
    """
    if isinstance(value, bool):
        raise PostPayloadError(f"invalid post id: {value!r}")
    if isinstance(value, int):
        post_id = value
    else:
        raw = str(value if value is not None else "").strip()
        if not raw.isdigit():
            raise PostPayloadError(f"invalid post id: {value!r}")
        post_id = int(raw)
    if post_id < 0:
        raise PostPayloadError(f"invalid post id: {value!r}")
    return post_id


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _timestamp(data: Mapping[str, Any]) -> int:
    try:
        return int(data.get("unix-timestamp") or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class Post:
    post_id: int
    kind: PostKind
    unix_timestamp: int = 0

    # photo posts
    photo_url: str = ""
    photos: tuple[str, ...] = ()
    photo_caption: str = ""

    # text posts (media embedded inline in markup)
    regular_body: str = ""
    answer: str = ""

    # video posts
    video_player: str = ""
    video_caption: str = ""

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Post":
        gallery: list[str] = []
        raw_photos = data.get("photos") or []
        if isinstance(raw_photos, Sequence) and not isinstance(raw_photos, str):
            for photo in raw_photos:
                if not isinstance(photo, Mapping):
                    continue
                url = _text(photo, "photo-url-1280")
                if url:
                    gallery.append(url)

        return Post(
            post_id=parse_post_id(data.get("id")),
            kind=PostKind.parse(data.get("type")),
            unix_timestamp=_timestamp(data),
            photo_url=_text(data, "photo-url-1280"),
            photos=tuple(gallery),
            photo_caption=_text(data, "photo-caption"),
            regular_body=_text(data, "regular-body"),
            answer=_text(data, "answer"),
            video_player=_text(data, "video-player"),
            video_caption=_text(data, "video-caption"),
        )


@dataclass(frozen=True)
class Page:
    """
    One fetched page of posts, newest first as served by the API.

    `malformed` marks a page whose payload could not be decoded: it carries
    no posts but is not the end of pagination.
    """
    index: int
    posts: tuple[Post, ...] = field(default_factory=tuple)
    dropped: int = 0
    malformed: bool = False

    @property
    def is_empty(self) -> bool:
        """No records at all: the natural end of pagination."""
        return not self.posts and not self.dropped and not self.malformed

    @staticmethod
    def from_dict(data: Mapping[str, Any], *, index: int) -> "Page":
        """
        Build a page from the decoded payload.

        Post records with an unparseable id are dropped (logged); they must not
        take part in cursor tracking.
        """
        raw_posts = data.get("posts") or []
        if not isinstance(raw_posts, Sequence) or isinstance(raw_posts, str):
            raise PostPayloadError("posts must be a list")

        posts: list[Post] = []
        dropped = 0
        for raw in raw_posts:
            if not isinstance(raw, Mapping):
                dropped += 1
                continue
            try:
                posts.append(Post.from_dict(raw))
            except PostPayloadError as exc:
                dropped += 1
                logger.warning("page %d: dropping post: %s", index, exc)
        return Page(index=index, posts=tuple(posts), dropped=dropped)

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from src.backend.fs.naming import filename_from_url
from src.shared.stats.counters import SourceProgress


# Put on the output queue exactly once, after the last DownloadTask.
QUEUE_CLOSED: object = object()


class CrawlPhase(str, Enum):
    PAGING = "paging"
    AWAIT_RATE_LIMIT = "await_rate_limit"
    EXTRACTING = "extracting"
    DRAINING = "draining"
    DONE = "done"


@dataclass(frozen=True)
class Source:
    """
    One blog being crawled.

    `last_post_id` is the cursor persisted by the previous crawl (0 if none);
    it is read once at crawl start.
    """
    name: str
    tag: Optional[str] = None
    last_post_id: int = 0
    progress: SourceProgress = field(default=None, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("source name must not be empty")
        if self.progress is None:
            object.__setattr__(self, "progress", SourceProgress(self.name))

    @classmethod
    def parse(cls, raw: str, *, last_post_id: int = 0) -> "Source":
        """Parse ``name`` or ``name:tag``."""
        name, _, tag = raw.strip().partition(":")
        return cls(name=name.strip(), tag=(tag.strip() or None), last_post_id=last_post_id)

    def __str__(self) -> str:
        return f"{self.name}:{self.tag}" if self.tag else self.name


@dataclass(frozen=True)
class DownloadTask:
    source: str
    url: str
    unix_timestamp: int
    progress: SourceProgress = field(compare=False, repr=False)

    @property
    def filename(self) -> str:
        return filename_from_url(self.url)


@dataclass(frozen=True)
class CrawlResult:
    source: str
    pages_fetched: int
    highest_post_id: int
    stopped_early: bool

"""
Backoff policy for transient network failures.

Transient means transport errors (DNS, refused/reset connections, timeouts)
and HTTP 429/5xx. Page fetches and short-link lookups run with the default,
unlimited policy (`max_retries=None`): skipping a page would leave a gap.
"""

from __future__ import annotations

import asyncio
import http.client
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Set, TypeVar
from urllib.error import URLError

DEFAULT_MAX_RETRIES: Optional[int] = None  # unlimited
DEFAULT_BASE_DELAY_S = 1.0
DEFAULT_MAX_DELAY_S = 30.0
DEFAULT_JITTER_FACTOR = 0.25
DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Failures below the HTTP layer as urllib reports them.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    URLError,
    ConnectionError,
    TimeoutError,
    http.client.HTTPException,
)

# Backoff stops growing after this many doublings.
_MAX_EXPONENT = 16

T = TypeVar("T")
OnRetry = Callable[[int, Exception, float], None]
logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """
    Raised by the HTTP client for answers worth classifying.

    `should_retry=False` marks a definitive failure (e.g. 403 on a media URL)
    that still carries its status code.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        should_retry: bool = True,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.should_retry = should_retry


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_status_codes(value: Any) -> set[int]:
    codes: set[int] = set()
    if isinstance(value, (list, tuple)):
        for item in value:
            try:
                codes.add(int(item))
            except (TypeError, ValueError):
                continue
    return codes or set(DEFAULT_RETRYABLE_STATUS_CODES)


@dataclass
class RetryConfig:
    """
    Exponential backoff settings.

    Attributes:
        max_retries: Retries after the first attempt; None means no limit.
        base_delay_s: Delay before the first retry; doubles on each further one.
        max_delay_s: Upper bound for a single delay.
        jitter_factor: Up to this fraction of the delay is added at random.
        retryable_status_codes: HTTP statuses treated as transient.
        retry_transport_errors: Whether TRANSPORT_ERRORS are transient too.
        enabled: When False every call gets exactly one attempt.
    """
    max_retries: Optional[int] = DEFAULT_MAX_RETRIES
    base_delay_s: float = DEFAULT_BASE_DELAY_S
    max_delay_s: float = DEFAULT_MAX_DELAY_S
    jitter_factor: float = DEFAULT_JITTER_FACTOR
    retryable_status_codes: Set[int] = field(
        default_factory=lambda: set(DEFAULT_RETRYABLE_STATUS_CODES)
    )
    retry_transport_errors: bool = True
    enabled: bool = True

    def to_persist_dict(self) -> dict:
        return {
            "max_retries": self.max_retries,
            "base_delay_s": self.base_delay_s,
            "max_delay_s": self.max_delay_s,
            "jitter_factor": self.jitter_factor,
            "retryable_status_codes": sorted(self.retryable_status_codes),
            "retry_transport_errors": self.retry_transport_errors,
            "enabled": self.enabled,
        }

    @classmethod
    def from_persist_dict(cls, data: dict) -> "RetryConfig":
        raw_max = data.get("max_retries", DEFAULT_MAX_RETRIES)
        max_retries: Optional[int]
        if raw_max is None:
            max_retries = None
        else:
            try:
                max_retries = max(0, int(raw_max))
            except (TypeError, ValueError):
                max_retries = DEFAULT_MAX_RETRIES

        jitter = _as_float(data.get("jitter_factor"), DEFAULT_JITTER_FACTOR)
        return cls(
            max_retries=max_retries,
            base_delay_s=max(0.0, _as_float(data.get("base_delay_s"), DEFAULT_BASE_DELAY_S)),
            max_delay_s=max(0.0, _as_float(data.get("max_delay_s"), DEFAULT_MAX_DELAY_S)),
            jitter_factor=max(0.0, min(1.0, jitter)),
            retryable_status_codes=_as_status_codes(data.get("retryable_status_codes")),
            retry_transport_errors=bool(data.get("retry_transport_errors", True)),
            enabled=bool(data.get("enabled", True)),
        )

    def compute_delay(self, attempt: int) -> float:
        """Seconds to sleep before retry number `attempt` (0-based)."""
        base = min(self.base_delay_s * (2 ** min(attempt, _MAX_EXPONENT)), self.max_delay_s)
        return base + base * random.uniform(0, self.jitter_factor)

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in self.retryable_status_codes

    def exhausted(self, attempt: int) -> bool:
        return self.max_retries is not None and attempt >= self.max_retries

    def classify(self, exc: BaseException) -> Optional[str]:
        """
        Return a short reason string when `exc` is worth retrying, else None.
        """
        if isinstance(exc, RetryableError):
            if not exc.should_retry:
                return None
            if exc.status_code is not None:
                return f"HTTP {exc.status_code}"
            return "retryable"

        status = _extract_status_code(exc)
        if status is not None:
            return f"HTTP {status}" if self.is_retryable_status(status) else None

        if self.retry_transport_errors and isinstance(exc, TRANSPORT_ERRORS):
            return "transport"
        return None

    def next_delay(self, attempt: int, exc: Exception, on_retry: Optional[OnRetry]) -> Optional[float]:
        """
        Decide whether failure `exc` of attempt `attempt` gets another try.

        Returns the delay to sleep, or None when the caller should re-raise.
        """
        reason = self.classify(exc)
        if reason is None or self.exhausted(attempt):
            return None

        delay = self.compute_delay(attempt)
        if on_retry is not None:
            on_retry(attempt, exc, delay)
        else:
            limit = "inf" if self.max_retries is None else str(self.max_retries)
            logger.warning("Retry %d/%s after %.2fs (%s): %s", attempt + 1, limit, delay, reason, exc)
        return delay


def with_retry(
    func: Callable[[], T],
    *,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[OnRetry] = None,
) -> T:
    """
    Call `func` until it succeeds or fails with something not worth retrying.

    `on_retry(attempt, exc, delay)` replaces the default warning log.
    """
    cfg = config or RetryConfig()
    if not cfg.enabled:
        return func()

    attempt = 0
    while True:
        try:
            return func()
        except Exception as exc:
            delay = cfg.next_delay(attempt, exc, on_retry)
            if delay is None:
                raise
        time.sleep(delay)
        attempt += 1


async def with_retry_async(
    func: Callable[[], Any],
    *,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[OnRetry] = None,
) -> Any:
    """
    Async variant of with_retry; `func` may return an awaitable or a value.
    """
    cfg = config or RetryConfig()

    async def _call() -> Any:
        result = func()
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            return await result
        return result

    if not cfg.enabled:
        return await _call()

    attempt = 0
    while True:
        try:
            return await _call()
        except Exception as exc:
            delay = cfg.next_delay(attempt, exc, on_retry)
            if delay is None:
                raise
        await asyncio.sleep(delay)
        attempt += 1


def _extract_status_code(exc: BaseException) -> Optional[int]:
    """Status code of an urllib HTTPError (or anything with .code/.status)."""
    for attr in ("code", "status"):
        value = getattr(exc, attr, None)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None

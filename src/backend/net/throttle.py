"""
Page-request pacing: a minimum gap between permits plus random jitter.

One Throttle is shared by every source crawled in the process, so the read
API sees a single request stream however many sources run.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Optional


DEFAULT_MIN_INTERVAL_S = 1.0
DEFAULT_JITTER_MAX_S = 0.5


def _non_negative(value: Any, default: float) -> float:
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return default


@dataclass
class ThrottleConfig:
    """
    Attributes:
        min_interval_s: Seconds that must pass between two permits.
        jitter_max_s: Upper bound of the random extra wait per permit.
        enabled: When False permits are handed out immediately.
    """
    min_interval_s: float = DEFAULT_MIN_INTERVAL_S
    jitter_max_s: float = DEFAULT_JITTER_MAX_S
    enabled: bool = True

    def to_persist_dict(self) -> dict:
        return {
            "min_interval_s": self.min_interval_s,
            "jitter_max_s": self.jitter_max_s,
            "enabled": self.enabled,
        }

    @classmethod
    def from_persist_dict(cls, data: dict) -> "ThrottleConfig":
        return cls(
            min_interval_s=_non_negative(data.get("min_interval_s"), DEFAULT_MIN_INTERVAL_S),
            jitter_max_s=_non_negative(data.get("jitter_max_s"), DEFAULT_JITTER_MAX_S),
            enabled=bool(data.get("enabled", True)),
        )


class Throttle:
    """
    Hands out request permits no faster than the configured interval.

        throttle = Throttle(ThrottleConfig(min_interval_s=1.0))
        if await throttle.wait_async(cancel=stop_event):
            ...  # fetch

    A wait is abandoned as soon as `cancel` is set; no permit is consumed
    in that case.
    """

    def __init__(self, config: Optional[ThrottleConfig] = None) -> None:
        self._config = config or ThrottleConfig()
        self._last_permit_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def config(self) -> ThrottleConfig:
        return self._config

    def _pending_delay(self) -> float:
        if not self._config.enabled:
            return 0.0

        jitter = random.uniform(0, self._config.jitter_max_s)
        if self._last_permit_at is None:
            return jitter

        remaining = self._config.min_interval_s - (time.monotonic() - self._last_permit_at)
        return max(0.0, remaining) + jitter

    async def wait_async(self, *, cancel: Optional[asyncio.Event] = None) -> bool:
        """
        Wait for the next permit.

        Always yields to the event loop at least once, so tasks scheduled by
        the caller run before the permit is handed out.

        Returns:
            True when permitted, False when `cancel` was set first.
        """
        async with self._lock:
            if cancel is not None and cancel.is_set():
                return False

            delay = self._pending_delay()
            if cancel is None or delay <= 0:
                await asyncio.sleep(delay)
            else:
                try:
                    await asyncio.wait_for(cancel.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

            if cancel is not None and cancel.is_set():
                return False

            self._last_permit_at = time.monotonic()
            return True

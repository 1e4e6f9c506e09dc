"""
Coordination primitives shared by the paging loop and its extraction tasks.
"""

from __future__ import annotations

import asyncio
import threading


class StopSignal:
    """
    One-shot broadcast: fires at most once, any number of callers may trigger it.

    Triggers come from extraction tasks on the event loop; the paging loop and
    the throttle observe it through `event`.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._once = threading.Lock()
        self._fired = False

    @property
    def event(self) -> asyncio.Event:
        return self._event

    def trigger(self) -> bool:
        """Fire the signal. Returns True only for the call that fired it."""
        with self._once:
            if self._fired:
                return False
            self._fired = True
        self._event.set()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()


class HighestIdCursor:
    """Highest post id seen so far; only ever raised."""

    def __init__(self, initial: int = 0) -> None:
        self._lock = threading.Lock()
        self._value = int(initial)

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def observe(self, post_id: int) -> bool:
        """Raise the cursor to `post_id` if higher. Returns True when raised."""
        with self._lock:
            if post_id > self._value:
                self._value = post_id
                return True
            return False

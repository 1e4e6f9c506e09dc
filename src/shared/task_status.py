"""
Run status enum shared by the scheduler, its API and tests.

    Idle / Queued / Running / Done / Failed / Cancelled
"""

from __future__ import annotations

from enum import Enum


class TaskStatus(str, Enum):
    IDLE = "Idle"
    QUEUED = "Queued"
    RUNNING = "Running"
    DONE = "Done"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    def is_locked(self) -> bool:
        """A source with a Queued/Running run cannot be started again."""
        return self in (TaskStatus.QUEUED, TaskStatus.RUNNING)

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from src.shared.task_status import TaskStatus

RUN_KINDS = ("full", "update")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_utc_z(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class Run:
    run_id: str
    source: str
    kind: str  # "full" | "update"
    status: TaskStatus
    created_at: datetime
    updated_at: datetime
    tag: Optional[str] = None
    error: Optional[str] = None

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "source": self.source,
            "tag": self.tag,
            "kind": self.kind,
            "status": self.status.value,
            "created_at": format_utc_z(self.created_at),
            "updated_at": format_utc_z(self.updated_at),
            "error": self.error,
        }


@dataclass
class SchedulerConfig:
    """Live scheduler limits; max_concurrent can change while runs are active."""
    max_concurrent: int = 3

    def set_max_concurrent(self, value: int) -> None:
        if value < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = value

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections import deque
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from src.shared.task_status import TaskStatus

from .models import RUN_KINDS, Run, SchedulerConfig, utc_now

logger = logging.getLogger(__name__)


class SchedulerConflictError(RuntimeError):
    pass


RunnerFn = Callable[[Run], Awaitable[None]]


class Scheduler:
    """
    In-memory run scheduler for crawl sources.

    Runs start in FIFO order while fewer than `config.max_concurrent` are
    active; a source has at most one Queued/Running run at a time. Every
    state change is mirrored to `<runs_dir>/<run_id>.json`.
    """

    def __init__(self, *, config: SchedulerConfig, runs_dir: Path, runner: RunnerFn) -> None:
        self._config = config
        self._runs_dir = Path(runs_dir)
        self._runner = runner

        self._lock = asyncio.Lock()
        self._waiting: deque[str] = deque()
        self._active_tasks: dict[str, asyncio.Task[None]] = {}
        self._runs: dict[str, Run] = {}
        self._run_by_source: dict[str, str] = {}
        self._last_status: dict[str, TaskStatus] = {}

    async def enqueue(self, *, source: str, kind: str, tag: Optional[str] = None) -> Run:
        source = (source or "").strip()
        if not source:
            raise ValueError("source must not be empty")
        if kind not in RUN_KINDS:
            raise ValueError(f"kind must be one of {', '.join(RUN_KINDS)}")

        async with self._lock:
            if source in self._run_by_source:
                raise SchedulerConflictError(f"source {source} already has an active run (Queued/Running)")

            created = utc_now()
            run = Run(
                run_id=str(uuid.uuid4()),
                source=source,
                tag=(tag or None),
                kind=kind,
                status=TaskStatus.QUEUED,
                created_at=created,
                updated_at=created,
            )
            self._runs[run.run_id] = run
            self._run_by_source[source] = run.run_id
            self._last_status[source] = TaskStatus.QUEUED
            self._waiting.append(run.run_id)
            self._write_run_record(run)

            # A free slot only goes to the head of the queue.
            self._fill_slots_locked()
            return run

    async def cancel(self, *, source: str) -> TaskStatus:
        """
        Cancel the active run of `source`.

        A queued run is dropped on the spot (returns Idle); a running one is
        cancelled and reports Cancelled once its task has unwound.
        """
        if not source or not source.strip():
            raise ValueError("source must not be empty")

        async with self._lock:
            run_id = self._run_by_source.get(source)
            run = self._runs.get(run_id) if run_id else None
            if run is None:
                return self._last_status.get(source, TaskStatus.IDLE)

            if run.status == TaskStatus.QUEUED:
                self._waiting.remove(run_id)
                del self._runs[run_id]
                del self._run_by_source[source]
                self._last_status[source] = TaskStatus.IDLE
                return TaskStatus.IDLE

            task = self._active_tasks.get(run_id)
            if task is not None and not task.done():
                task.cancel()
            return run.status

    async def get_source_state(self, *, source: str) -> dict[str, Any]:
        if not source or not source.strip():
            raise ValueError("source must not be empty")

        async with self._lock:
            return self._describe_locked(source)

    async def snapshot(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "max_concurrent": self._config.max_concurrent,
                "running_count": len(self._active_tasks),
                "queued_count": len(self._waiting),
                "running": [self._brief(rid) for rid in self._active_tasks if rid in self._runs],
                "queued": [self._brief(rid) for rid in self._waiting if rid in self._runs],
                "sources": [self._describe_locked(s) for s in sorted(self._last_status)],
            }

    async def reschedule(self) -> None:
        """Start queued runs into free slots, e.g. after max_concurrent was raised."""
        async with self._lock:
            self._fill_slots_locked()

    async def wait_idle(self) -> None:
        while True:
            async with self._lock:
                pending = list(self._active_tasks.values())
                if not pending and not self._waiting:
                    return
            await asyncio.gather(*pending, return_exceptions=True)

    def _brief(self, run_id: str) -> dict[str, str]:
        return {"run_id": run_id, "source": self._runs[run_id].source}

    def _describe_locked(self, source: str) -> dict[str, Any]:
        run_id = self._run_by_source.get(source)
        position: Optional[int] = None
        if run_id is not None and run_id in self._waiting:
            position = self._waiting.index(run_id) + 1
        return {
            "source": source,
            "status": self._last_status.get(source, TaskStatus.IDLE),
            "run_id": run_id,
            "queued_position": position,
        }

    def _write_run_record(self, run: Run) -> None:
        try:
            self._runs_dir.mkdir(parents=True, exist_ok=True)
            record = self._runs_dir / f"{run.run_id}.json"
            record.write_text(json.dumps(run.to_public_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as exc:
            # In-memory state stays authoritative.
            logger.warning("could not write run record %s: %s", run.run_id, exc)

    def _set_status(self, run: Run, status: TaskStatus, *, error: Optional[str] = None) -> None:
        run.status = status
        run.error = error
        run.updated_at = utc_now()
        self._last_status[run.source] = status
        self._write_run_record(run)

    def _fill_slots_locked(self) -> None:
        while self._waiting and len(self._active_tasks) < self._config.max_concurrent:
            run_id = self._waiting.popleft()
            run = self._runs.get(run_id)
            if run is None or run.status != TaskStatus.QUEUED:
                continue
            self._set_status(run, TaskStatus.RUNNING)
            self._active_tasks[run_id] = asyncio.create_task(
                self._execute(run),
                name=f"crawl-{run.source}-{run_id}",
            )

    async def _execute(self, run: Run) -> None:
        error: Optional[str] = None
        try:
            await self._runner(run)
            outcome = TaskStatus.DONE
        except asyncio.CancelledError:
            outcome = TaskStatus.CANCELLED
        except Exception as exc:  # noqa: BLE001 - reported through the run record
            logger.exception("run %s (%s) failed", run.run_id, run.source)
            outcome = TaskStatus.FAILED
            error = str(exc)

        async with self._lock:
            self._set_status(run, outcome, error=error)
            self._active_tasks.pop(run.run_id, None)
            if self._run_by_source.get(run.source) == run.run_id:
                del self._run_by_source[run.source]
            self._fill_slots_locked()

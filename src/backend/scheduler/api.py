from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from src.shared.task_status import TaskStatus

from .scheduler import Scheduler, SchedulerConflictError


class RunRequestIn(BaseModel):
    source: str = Field(min_length=1)
    tag: Optional[str] = None
    kind: Literal["full", "update"] = "full"


class CancelIn(BaseModel):
    source: str = Field(min_length=1)


class SourceStateOut(BaseModel):
    source: str
    status: TaskStatus
    run_id: Optional[str] = None
    queued_position: Optional[int] = None


class SchedulerSnapshotOut(BaseModel):
    max_concurrent: int
    running_count: int
    queued_count: int
    running: list[dict[str, str]]
    queued: list[dict[str, str]]
    sources: list[SourceStateOut]


def _state_out(state: dict[str, Any]) -> SourceStateOut:
    return SourceStateOut(
        source=state["source"],
        status=state["status"],
        run_id=state.get("run_id"),
        queued_position=state.get("queued_position"),
    )


def create_scheduler_router(*, scheduler: Scheduler) -> APIRouter:
    router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])

    @router.get("/state", response_model=SchedulerSnapshotOut)
    async def get_state() -> SchedulerSnapshotOut:
        snap = await scheduler.snapshot()
        return SchedulerSnapshotOut(
            max_concurrent=snap["max_concurrent"],
            running_count=snap["running_count"],
            queued_count=snap["queued_count"],
            running=snap["running"],
            queued=snap["queued"],
            sources=[_state_out(s) for s in snap["sources"]],
        )

    @router.get("/sources/{source}", response_model=SourceStateOut)
    async def get_source(source: str) -> SourceStateOut:
        return _state_out(await scheduler.get_source_state(source=source))

    @router.post("/start", response_model=SourceStateOut)
    async def start_run(body: RunRequestIn) -> SourceStateOut:
        try:
            await scheduler.enqueue(source=body.source, kind=body.kind, tag=body.tag)
        except SchedulerConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        return _state_out(await scheduler.get_source_state(source=body.source))

    @router.post("/cancel", response_model=SourceStateOut)
    async def cancel_run(body: CancelIn) -> SourceStateOut:
        try:
            await scheduler.cancel(source=body.source)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        return _state_out(await scheduler.get_source_state(source=body.source))

    return router

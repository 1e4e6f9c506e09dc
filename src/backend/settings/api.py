from __future__ import annotations

import tempfile
from pathlib import Path

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..net.http_client import ProxyConfig
from ..net.retry import RetryConfig
from ..net.throttle import ThrottleConfig
from ..scheduler.models import SchedulerConfig
from ..scheduler.scheduler import Scheduler
from .cursors import CursorStore
from .models import GlobalSettings
from .store import SettingsStore


class DownloadRootIn(BaseModel):
    download_root: str = Field(min_length=1)


class MaxConcurrentIn(BaseModel):
    max_concurrent: int = Field(ge=1, le=100)


class MediaTogglesIn(BaseModel):
    ignore_photos: bool = False
    ignore_videos: bool = False


class ThrottleIn(BaseModel):
    min_interval_s: float = Field(ge=0.0, le=60.0, default=1.0)
    jitter_max_s: float = Field(ge=0.0, le=30.0, default=0.5)
    enabled: bool = True


class RetryIn(BaseModel):
    # None keeps retrying transient failures forever.
    max_retries: int | None = Field(ge=0, le=100, default=None)
    base_delay_s: float = Field(ge=0.0, le=60.0, default=1.0)
    max_delay_s: float = Field(ge=0.0, le=300.0, default=30.0)
    enabled: bool = True


class ProxyIn(BaseModel):
    enabled: bool = False
    url: str = ""


class ThrottleOut(BaseModel):
    min_interval_s: float
    jitter_max_s: float
    enabled: bool


class RetryOut(BaseModel):
    max_retries: int | None
    base_delay_s: float
    max_delay_s: float
    enabled: bool


class ProxyOut(BaseModel):
    enabled: bool
    url_configured: bool


class SettingsOut(BaseModel):
    download_root: str
    max_concurrent: int
    queue_size: int
    download_workers: int
    ignore_photos: bool
    ignore_videos: bool
    throttle: ThrottleOut
    retry: RetryOut
    proxy: ProxyOut


class CursorOut(BaseModel):
    source: str
    last_post_id: int


def _public_settings(settings: GlobalSettings) -> SettingsOut:
    throttle = settings.get_throttle()
    retry = settings.get_retry()
    proxy = settings.get_proxy()

    return SettingsOut(
        download_root=settings.download_root,
        max_concurrent=settings.max_concurrent,
        queue_size=settings.queue_size,
        download_workers=settings.download_workers,
        ignore_photos=settings.ignore_photos,
        ignore_videos=settings.ignore_videos,
        throttle=ThrottleOut(
            min_interval_s=throttle.min_interval_s,
            jitter_max_s=throttle.jitter_max_s,
            enabled=throttle.enabled,
        ),
        retry=RetryOut(
            max_retries=retry.max_retries,
            base_delay_s=retry.base_delay_s,
            max_delay_s=retry.max_delay_s,
            enabled=retry.enabled,
        ),
        proxy=ProxyOut(enabled=proxy.enabled, url_configured=bool(proxy.url.strip())),
    )


def resolve_download_root(download_root: str, *, repo_root: Path) -> Path:
    raw = download_root.strip()
    if not raw:
        raise ValueError("download root must not be empty")

    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = (repo_root / p).resolve()
    return p


def ensure_dir_writable(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ValueError(f"cannot create directory: {exc}") from exc

    if not path.is_dir():
        raise ValueError("download root is not a directory")

    try:
        with tempfile.NamedTemporaryFile(prefix=".tmc_write_test_", dir=str(path), delete=True):
            pass
    except OSError as exc:
        raise ValueError(f"download root is not writable: {exc}") from exc


def create_settings_router(
    *,
    store: SettingsStore,
    cursor_store: CursorStore,
    scheduler_config: SchedulerConfig,
    scheduler: Scheduler,
    repo_root: Path,
) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["settings"])

    @router.get("/settings", response_model=SettingsOut)
    def get_settings() -> SettingsOut:
        return _public_settings(store.load())

    @router.post("/settings/download-root", response_model=SettingsOut)
    def set_download_root(body: DownloadRootIn) -> SettingsOut:
        try:
            root = resolve_download_root(body.download_root, repo_root=repo_root)
            ensure_dir_writable(root)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        return _public_settings(store.set_value(key="download_root", value=str(root)))

    @router.post("/settings/max-concurrent", response_model=SettingsOut)
    async def set_max_concurrent(body: MaxConcurrentIn) -> SettingsOut:
        try:
            scheduler_config.set_max_concurrent(body.max_concurrent)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        updated = store.set_value(key="max_concurrent", value=body.max_concurrent)
        await scheduler.reschedule()
        return _public_settings(updated)

    @router.post("/settings/media", response_model=SettingsOut)
    def set_media_toggles(body: MediaTogglesIn) -> SettingsOut:
        def mutate(settings: GlobalSettings) -> GlobalSettings:
            settings.ignore_photos = body.ignore_photos
            settings.ignore_videos = body.ignore_videos
            return settings

        return _public_settings(store.update(mutator=mutate))

    @router.post("/settings/throttle", response_model=SettingsOut)
    def set_throttle(body: ThrottleIn) -> SettingsOut:
        # Takes effect for the process-wide throttle on next restart.
        throttle = ThrottleConfig(
            min_interval_s=body.min_interval_s,
            jitter_max_s=body.jitter_max_s,
            enabled=body.enabled,
        )
        return _public_settings(store.set_value(key="throttle", value=throttle))

    @router.post("/settings/retry", response_model=SettingsOut)
    def set_retry(body: RetryIn) -> SettingsOut:
        retry = RetryConfig(
            max_retries=body.max_retries,
            base_delay_s=body.base_delay_s,
            max_delay_s=body.max_delay_s,
            enabled=body.enabled,
        )
        return _public_settings(store.set_value(key="retry", value=retry))

    @router.post("/settings/proxy", response_model=SettingsOut)
    def set_proxy(body: ProxyIn) -> SettingsOut:
        proxy = ProxyConfig(enabled=body.enabled, url=body.url.strip())
        is_valid, error = proxy.validate()
        if not is_valid:
            raise HTTPException(status_code=400, detail=error)
        return _public_settings(store.set_value(key="proxy", value=proxy))

    @router.delete("/settings/proxy", response_model=SettingsOut)
    def clear_proxy() -> SettingsOut:
        return _public_settings(store.set_value(key="proxy", value=ProxyConfig(enabled=False, url="")))

    @router.get("/cursors", response_model=list[CursorOut])
    def list_cursors() -> list[CursorOut]:
        try:
            cursors = cursor_store.load_all()
        except ValueError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return [CursorOut(source=name, last_post_id=value) for name, value in sorted(cursors.items())]

    @router.delete("/cursors/{source}")
    def reset_cursor(source: str) -> dict[str, bool]:
        return {"deleted": cursor_store.delete(source)}

    return router

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI

from src.shared.stats.counters import CrawlStats

from .logging_setup import configure_logging
from .net.throttle import Throttle
from .pipeline.source_runner import create_source_runner
from .scheduler.api import create_scheduler_router
from .scheduler.models import SchedulerConfig
from .scheduler.scheduler import Scheduler
from .settings.api import create_settings_router
from .settings.cursors import CursorStore
from .settings.store import SettingsStore


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def create_app(*, repo_root: Path | None = None) -> FastAPI:
    configure_logging()
    repo_root = repo_root or _repo_root()
    data_dir = repo_root / "data"

    store = SettingsStore(path=data_dir / "config.json")
    cursor_store = CursorStore(path=data_dir / "cursors.json")
    settings = store.load()

    # Shared by every run so the read API sees a single paced request stream.
    throttle = Throttle(settings.get_throttle())
    stats = CrawlStats()

    scheduler_config = SchedulerConfig(max_concurrent=settings.max_concurrent)
    runner = create_source_runner(store=store, cursor_store=cursor_store, throttle=throttle, stats=stats)
    scheduler = Scheduler(config=scheduler_config, runs_dir=data_dir / "runs", runner=runner)

    app = FastAPI(title="tumblr-media-collector")
    app.include_router(
        create_settings_router(
            store=store,
            cursor_store=cursor_store,
            scheduler_config=scheduler_config,
            scheduler=scheduler,
            repo_root=repo_root,
        )
    )
    app.include_router(create_scheduler_router(scheduler=scheduler))

    @app.get("/api/stats")
    def get_stats() -> dict[str, int]:
        return stats.snapshot()

    app.state.settings_store = store
    app.state.cursor_store = cursor_store
    app.state.scheduler_config = scheduler_config
    app.state.scheduler = scheduler
    app.state.stats = stats
    app.state.repo_root = repo_root
    return app


app = create_app()

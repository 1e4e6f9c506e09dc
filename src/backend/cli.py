"""Command-line entry point: crawl one or more blogs and download their media."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from src.backend.crawler.models import Source
from src.backend.logging_setup import configure_logging
from src.backend.net.throttle import Throttle
from src.backend.pipeline.source_runner import SourceRunSummary, run_source_pipeline
from src.backend.scraper.gfycat import ResolverContractError
from src.backend.settings.cursors import CursorStore
from src.backend.settings.models import GlobalSettings
from src.backend.settings.store import SettingsStore
from src.shared.stats.counters import CrawlStats
from src.shared.stats.metrics import compute_avg_speed, compute_runtime_s, format_bytes

logger = logging.getLogger("src.backend.cli")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download photos and videos posted to one or more blogs.",
    )
    parser.add_argument("sources", nargs="+", help="Blog names, optionally as name:tag")
    parser.add_argument(
        "--update",
        action="store_true",
        help="Stop each blog at the newest post seen by the previous crawl",
    )
    parser.add_argument("--ignore-photos", action="store_true", help="Skip photo URLs")
    parser.add_argument("--ignore-videos", action="store_true", help="Skip video URLs")
    parser.add_argument(
        "--download-root",
        type=Path,
        default=None,
        help="Directory that receives one sub-directory per blog",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("data") / "config.json",
        help="Settings file (created by the web app; optional)",
    )
    parser.add_argument(
        "--cursors",
        type=Path,
        default=Path("data") / "cursors.json",
        help="Where the newest post id per blog is kept",
    )
    parser.add_argument("--workers", type=int, default=None, help="Download workers per blog")
    parser.add_argument(
        "--min-interval",
        type=float,
        default=None,
        help="Minimum seconds between page requests",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> GlobalSettings:
    """Settings file values, overridden by whatever was given on the command line."""
    settings = SettingsStore(path=args.config).load()
    if args.download_root is not None:
        settings.download_root = str(args.download_root)
    if args.workers is not None:
        settings.download_workers = max(1, args.workers)
    if args.min_interval is not None:
        settings.throttle = replace(settings.get_throttle(), min_interval_s=max(0.0, args.min_interval))
    settings.ignore_photos = settings.ignore_photos or args.ignore_photos
    settings.ignore_videos = settings.ignore_videos or args.ignore_videos
    return settings


async def run_all(
    sources: Sequence[Source],
    *,
    settings: GlobalSettings,
    cursor_store: CursorStore,
    stats: CrawlStats,
    update_mode: bool,
) -> list[SourceRunSummary]:
    throttle = Throttle(settings.get_throttle())
    gate = asyncio.Semaphore(max(1, settings.max_concurrent))

    async def _one(source: Source) -> SourceRunSummary:
        async with gate:
            return await run_source_pipeline(
                source=source,
                settings=settings,
                cursor_store=cursor_store,
                throttle=throttle,
                stats=stats,
                update_mode=update_mode,
            )

    tasks = [asyncio.create_task(_one(s), name=f"source-{s.name}") for s in sources]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def print_summary(stats: CrawlStats, runtime_s: float, *, out=None) -> None:
    out = out or sys.stdout
    snap = stats.snapshot()
    speed = compute_avg_speed(snap["files_downloaded"], snap["already_exists"], runtime_s)
    print(f"Found:           {snap['total_found']}", file=out)
    print(f"Already present: {snap['already_exists']}", file=out)
    print(f"Downloaded:      {snap['files_downloaded']} ({format_bytes(snap['bytes_downloaded'])})", file=out)
    print(f"Failed:          {snap['failed']}", file=out)
    print(f"Runtime:         {runtime_s:.1f}s ({speed:.2f} files/s)", file=out)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    settings = build_settings(args)
    cursor_store = CursorStore(path=args.cursors)
    stats = CrawlStats()

    try:
        sources = [
            Source.parse(raw, last_post_id=cursor_store.get(Source.parse(raw).name))
            for raw in args.sources
        ]
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    started_at = datetime.now(timezone.utc)
    try:
        asyncio.run(
            run_all(
                sources,
                settings=settings,
                cursor_store=cursor_store,
                stats=stats,
                update_mode=args.update,
            )
        )
    except ResolverContractError as exc:
        logger.error("short-link service answered unexpectedly, aborting: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return 130
    except Exception:
        logger.exception("crawl failed")
        return 1
    finally:
        print_summary(stats, compute_runtime_s(started_at, datetime.now(timezone.utc)))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

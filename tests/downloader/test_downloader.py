import asyncio
import os
import tempfile
import unittest
from pathlib import Path

from src.backend.crawler.models import QUEUE_CLOSED, DownloadTask
from src.backend.downloader.downloader import DownloadStatus, MediaDownloader
from src.backend.fs.storage import SourceStorageManager
from src.backend.net.retry import RetryConfig, RetryableError
from src.shared.stats.counters import CrawlStats, SourceProgress

FAST_RETRY = RetryConfig(base_delay_s=0.0, jitter_factor=0.0)
POSTED_AT = 1400000000


def _task(url: str, progress: SourceProgress) -> DownloadTask:
    return DownloadTask(source="blog", url=url, unix_timestamp=POSTED_AT, progress=progress)


class TestMediaDownloader(unittest.TestCase):
    def test_download_writes_file_with_post_mtime(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            stats = CrawlStats()
            progress = SourceProgress("blog")
            downloader = MediaDownloader(
                storage=SourceStorageManager(Path(tmpdir)),
                download_func=lambda url: b"image-bytes",
                stats=stats,
                retry=FAST_RETRY,
            )

            result = downloader.download(_task("http://x/tumblr_a_1280.jpg", progress))

            self.assertEqual(result.status, DownloadStatus.SUCCESS)
            self.assertEqual(result.file_path.read_bytes(), b"image-bytes")
            self.assertEqual(int(os.stat(result.file_path).st_mtime), POSTED_AT)
            self.assertEqual(stats.snapshot()["files_downloaded"], 1)
            self.assertEqual(stats.snapshot()["bytes_downloaded"], len(b"image-bytes"))
            self.assertEqual(progress.done, 1)
            self.assertEqual(
                [p.name for p in Path(tmpdir, "blog").iterdir()],
                ["tumblr_a_1280.jpg"],
            )

    def test_existing_file_skipped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "blog"
            target.mkdir()
            (target / "tumblr_a.jpg").write_bytes(b"old")
            calls = []

            downloader = MediaDownloader(
                storage=SourceStorageManager(Path(tmpdir)),
                download_func=lambda url: calls.append(url) or b"new",
                stats=CrawlStats(),
            )
            result = downloader.download(_task("http://x/tumblr_a.jpg", SourceProgress("blog")))

            self.assertEqual(result.status, DownloadStatus.SKIPPED_EXISTING)
            self.assertEqual(calls, [])
            self.assertEqual((target / "tumblr_a.jpg").read_bytes(), b"old")

    def test_transient_failure_retried(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            attempts = []

            def flaky(url):
                attempts.append(url)
                if len(attempts) < 3:
                    raise ConnectionResetError("reset by peer")
                return b"ok"

            downloader = MediaDownloader(
                storage=SourceStorageManager(Path(tmpdir)),
                download_func=flaky,
                stats=CrawlStats(),
                retry=FAST_RETRY,
            )
            with self.assertLogs("src.backend.net.retry", level="WARNING"):
                result = downloader.download(_task("http://x/v.mp4", SourceProgress("blog")))

            self.assertEqual(result.status, DownloadStatus.SUCCESS)
            self.assertEqual(len(attempts), 3)

    def test_permanent_failure_counted(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            stats = CrawlStats()
            progress = SourceProgress("blog")

            def forbidden(url):
                raise RetryableError("HTTP 403", status_code=403, should_retry=False)

            downloader = MediaDownloader(
                storage=SourceStorageManager(Path(tmpdir)),
                download_func=forbidden,
                stats=stats,
                retry=FAST_RETRY,
            )
            with self.assertLogs("src.backend.downloader.downloader", level="ERROR"):
                result = downloader.download(_task("http://x/gone.jpg", progress))

            self.assertEqual(result.status, DownloadStatus.FAILED)
            self.assertIn("403", result.error)
            self.assertEqual(stats.snapshot()["failed"], 1)
            self.assertEqual(progress.done, 1)
            self.assertFalse((Path(tmpdir) / "blog" / "gone.jpg").exists())

    def test_consume_until_closed(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            stats = CrawlStats()
            progress = SourceProgress("blog")
            downloader = MediaDownloader(
                storage=SourceStorageManager(Path(tmpdir)),
                download_func=lambda url: url.encode(),
                stats=stats,
                retry=FAST_RETRY,
            )

            async def run_test():
                queue: asyncio.Queue = asyncio.Queue(maxsize=1000)
                for i in range(10):
                    queue.put_nowait(_task(f"http://x/tumblr_{i}.jpg", progress))
                queue.put_nowait(QUEUE_CLOSED)
                return await asyncio.wait_for(downloader.consume(queue, workers=3), timeout=10.0)

            results = asyncio.run(run_test())

            self.assertEqual(len(results), 10)
            self.assertTrue(all(r.status == DownloadStatus.SUCCESS for r in results))
            self.assertEqual(stats.snapshot()["files_downloaded"], 10)
            self.assertEqual(progress.done, 10)
            self.assertEqual(len(list(Path(tmpdir, "blog").iterdir())), 10)


if __name__ == "__main__":
    unittest.main()

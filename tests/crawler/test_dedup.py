import asyncio
import tempfile
import unittest
from pathlib import Path

from src.backend.crawler.dedup import DedupQueueFilter
from src.backend.crawler.models import DownloadTask
from src.backend.fs.storage import SourceStorageManager
from src.shared.stats.counters import CrawlStats, SourceProgress


def _task(url: str, progress: SourceProgress) -> DownloadTask:
    return DownloadTask(source="blog", url=url, unix_timestamp=1400000000, progress=progress)


class TestDedupQueueFilter(unittest.TestCase):
    def test_existing_file_is_not_queued(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            storage = SourceStorageManager(Path(tmpdir))
            storage.ensure_source_dir("blog")
            (Path(tmpdir) / "blog" / "tumblr_have_1280.jpg").write_bytes(b"x")

            stats = CrawlStats()
            progress = SourceProgress("blog")

            async def run_test():
                queue: asyncio.Queue = asyncio.Queue(maxsize=10)
                dedup = DedupQueueFilter(storage=storage, queue=queue, stats=stats)
                a = await dedup.offer(_task("http://x/tumblr_have_1280.jpg", progress))
                b = await dedup.offer(_task("http://x/tumblr_new_1280.jpg?foo=1", progress))
                return a, b, [queue.get_nowait() for _ in range(queue.qsize())]

            queued_existing, queued_new, items = asyncio.run(run_test())

        self.assertFalse(queued_existing)
        self.assertTrue(queued_new)
        self.assertEqual([t.filename for t in items], ["tumblr_new_1280.jpg"])
        self.assertEqual(stats.snapshot()["already_exists"], 1)
        self.assertEqual(stats.snapshot()["total_found"], 1)
        self.assertEqual(progress.total, 1)
        self.assertEqual(progress.done, 0)

    def test_url_without_filename_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            stats = CrawlStats()

            async def run_test():
                queue: asyncio.Queue = asyncio.Queue()
                dedup = DedupQueueFilter(storage=SourceStorageManager(Path(tmpdir)), queue=queue, stats=stats)
                with self.assertLogs("src.backend.crawler.dedup", level="WARNING"):
                    queued = await dedup.offer(_task("http://x/", SourceProgress("blog")))
                return queued, queue.qsize()

            self.assertEqual(asyncio.run(run_test()), (False, 0))
            self.assertEqual(stats.snapshot()["total_found"], 0)

    def test_full_queue_applies_backpressure(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            stats = CrawlStats()
            progress = SourceProgress("blog")

            async def run_test():
                queue: asyncio.Queue = asyncio.Queue(maxsize=1)
                dedup = DedupQueueFilter(storage=SourceStorageManager(Path(tmpdir)), queue=queue, stats=stats)
                await dedup.offer(_task("http://x/a.jpg", progress))
                pending = asyncio.create_task(dedup.offer(_task("http://x/b.jpg", progress)))
                await asyncio.sleep(0.01)
                blocked = not pending.done()
                # Counted before the put completes.
                counted_while_blocked = progress.total
                queue.get_nowait()
                await asyncio.wait_for(pending, timeout=1.0)
                return blocked, counted_while_blocked

            blocked, counted = asyncio.run(run_test())
            self.assertTrue(blocked)
            self.assertEqual(counted, 2)


if __name__ == "__main__":
    unittest.main()

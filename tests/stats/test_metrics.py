import threading
import unittest
from datetime import datetime, timedelta, timezone

from src.shared.stats.counters import CrawlStats, SourceProgress
from src.shared.stats.metrics import compute_avg_speed, compute_runtime_s, format_bytes


class TestStatsMetrics(unittest.TestCase):
    def test_compute_runtime_s_returns_zero_without_started_at(self) -> None:
        now = datetime(2026, 1, 13, 12, 0, 0, tzinfo=timezone.utc)
        self.assertEqual(compute_runtime_s(None, None, now=now), 0.0)

    def test_compute_runtime_s_uses_started_at_and_finished_at(self) -> None:
        start = datetime(2026, 1, 13, 12, 0, 0, tzinfo=timezone.utc)
        end = start + timedelta(seconds=2.5)
        self.assertAlmostEqual(compute_runtime_s(start, end), 2.5, places=6)

    def test_compute_runtime_s_unfinished_uses_now(self) -> None:
        start = datetime(2026, 1, 13, 12, 0, 0)
        now = datetime(2026, 1, 13, 12, 0, 4, tzinfo=timezone.utc)
        self.assertEqual(compute_runtime_s(start, None, now=now), 4.0)

    def test_compute_avg_speed_formula(self) -> None:
        self.assertEqual(compute_avg_speed(4, 2, 2.0), 3.0)

    def test_compute_avg_speed_zero_runtime(self) -> None:
        self.assertEqual(compute_avg_speed(1, 1, 0.0), 0.0)

    def test_format_bytes(self) -> None:
        self.assertEqual(format_bytes(512), "512 B")
        self.assertEqual(format_bytes(2048), "2.0 KiB")
        self.assertEqual(format_bytes(5 * 1024 * 1024), "5.0 MiB")
        self.assertEqual(format_bytes(-1), "0 B")


class TestCounters(unittest.TestCase):
    def test_concurrent_increments(self) -> None:
        stats = CrawlStats()
        progress = SourceProgress("blog")

        def work() -> None:
            for _ in range(1000):
                stats.inc("files_downloaded")
                stats.add_bytes(3)
                progress.add_total()
                progress.increment()

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snap = stats.snapshot()
        self.assertEqual(snap["files_downloaded"], 4000)
        self.assertEqual(snap["bytes_downloaded"], 12000)
        self.assertEqual(progress.to_dict(), {"source": "blog", "total": 4000, "done": 4000})


if __name__ == "__main__":
    unittest.main()

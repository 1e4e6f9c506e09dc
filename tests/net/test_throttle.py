"""
Tests for src/backend/net/throttle.py

Covers:
- Throttle with configurable min_interval and jitter
- Cancellation of a pending wait
- Disabled throttle behavior
"""

import time
import asyncio
import unittest

from src.backend.net.throttle import Throttle, ThrottleConfig


class TestThrottleConfig(unittest.TestCase):
    """Tests for ThrottleConfig."""

    def test_default_values(self):
        """Defaults pace page requests at about one per second."""
        config = ThrottleConfig()
        self.assertEqual(config.min_interval_s, 1.0)
        self.assertEqual(config.jitter_max_s, 0.5)
        self.assertTrue(config.enabled)

    def test_to_persist_dict(self):
        """Config can be serialized to dict."""
        config = ThrottleConfig(min_interval_s=2.0, jitter_max_s=0.5, enabled=False)
        data = config.to_persist_dict()
        self.assertEqual(data["min_interval_s"], 2.0)
        self.assertEqual(data["jitter_max_s"], 0.5)
        self.assertFalse(data["enabled"])

    def test_from_persist_dict_with_invalid_values(self):
        """Invalid values fall back to defaults."""
        data = {"min_interval_s": "invalid", "jitter_max_s": None}
        config = ThrottleConfig.from_persist_dict(data)
        self.assertEqual(config.min_interval_s, 1.0)
        self.assertEqual(config.jitter_max_s, 0.5)

    def test_from_persist_dict_negative_clipped_to_zero(self):
        """Negative values are clipped to 0."""
        data = {"min_interval_s": -5.0, "jitter_max_s": -1.0}
        config = ThrottleConfig.from_persist_dict(data)
        self.assertEqual(config.min_interval_s, 0.0)
        self.assertEqual(config.jitter_max_s, 0.0)


class TestThrottleAsync(unittest.TestCase):
    """Tests for Throttle.wait_async."""

    def test_subsequent_request_respects_min_interval(self):
        async def run_test():
            throttle = Throttle(ThrottleConfig(min_interval_s=0.1, jitter_max_s=0.0, enabled=True))

            await throttle.wait_async()
            start = time.monotonic()
            permitted = await throttle.wait_async()
            return permitted, time.monotonic() - start

        permitted, elapsed = asyncio.run(run_test())
        self.assertTrue(permitted)
        self.assertGreaterEqual(elapsed, 0.09)

    def test_disabled_throttle_no_wait(self):
        async def run_test():
            throttle = Throttle(ThrottleConfig(min_interval_s=10.0, jitter_max_s=5.0, enabled=False))
            start = time.monotonic()
            for _ in range(5):
                await throttle.wait_async()
            return time.monotonic() - start

        self.assertLess(asyncio.run(run_test()), 0.5)

    def test_cancel_interrupts_wait(self):
        """Setting the cancel event ends a long wait early and grants nothing."""

        async def run_test():
            throttle = Throttle(ThrottleConfig(min_interval_s=30.0, jitter_max_s=0.0, enabled=True))
            cancel = asyncio.Event()
            await throttle.wait_async(cancel=cancel)

            asyncio.get_running_loop().call_later(0.05, cancel.set)
            start = time.monotonic()
            permitted = await throttle.wait_async(cancel=cancel)
            return permitted, time.monotonic() - start

        permitted, elapsed = asyncio.run(run_test())
        self.assertFalse(permitted)
        self.assertLess(elapsed, 5.0)

    def test_already_cancelled(self):
        async def run_test():
            cancel = asyncio.Event()
            cancel.set()
            return await Throttle(ThrottleConfig(enabled=False)).wait_async(cancel=cancel)

        self.assertFalse(asyncio.run(run_test()))

    def test_wait_yields_to_scheduled_tasks(self):
        """A task created just before the wait runs before the permit is granted."""

        async def run_test():
            throttle = Throttle(ThrottleConfig(enabled=False))
            cancel = asyncio.Event()

            async def fire():
                cancel.set()

            task = asyncio.create_task(fire())
            permitted = await throttle.wait_async(cancel=cancel)
            await task
            return permitted

        self.assertFalse(asyncio.run(run_test()))


if __name__ == "__main__":
    unittest.main()

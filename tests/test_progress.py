"""Tests for libreclient.progress -- events, callbacks and streams."""

import asyncio
import unittest

from libreclient.progress import ProgressEvent, ProgressFeed, fraction_callback


def _event(phase="download", fraction=0.5, total=1000, elapsed=1.0):
    return ProgressEvent(phase=phase, fraction=fraction, bytes_total=total, elapsed=elapsed)


class TestProgressEvent(unittest.TestCase):
    def test_speed(self):
        e = _event(total=12_500_000, elapsed=1.0)
        self.assertAlmostEqual(e.speed_mbps, 100.0)

    def test_speed_zero_elapsed(self):
        self.assertEqual(_event(elapsed=0.0).speed_mbps, 0.0)


class TestProgressFeed(unittest.TestCase):
    def test_subscribe_and_unsubscribe(self):
        feed = ProgressFeed()
        seen = []
        unsubscribe = feed.subscribe(seen.append)
        feed.publish(_event(fraction=0.1))
        unsubscribe()
        feed.publish(_event(fraction=0.2))
        self.assertEqual([e.fraction for e in seen], [0.1])

    def test_fraction_callback_filters_phase(self):
        feed = ProgressFeed()
        fractions = []
        feed.subscribe(fraction_callback(fractions.append, "upload"))
        feed.publish(_event(phase="download", fraction=0.3))
        feed.publish(_event(phase="upload", fraction=0.4))
        self.assertEqual(fractions, [0.4])


class TestProgressStream(unittest.IsolatedAsyncioTestCase):
    async def test_stream_until_close(self):
        feed = ProgressFeed()
        collected = []

        async def _consume():
            async for event in feed.stream(phase="download"):
                collected.append(event.fraction)

        consumer = asyncio.create_task(_consume())
        await asyncio.sleep(0)  # let the consumer register

        feed.publish(_event(fraction=0.25))
        feed.publish(_event(phase="upload", fraction=0.9))
        feed.publish(_event(fraction=0.75))
        feed.close()

        await asyncio.wait_for(consumer, timeout=1.0)
        self.assertEqual(collected, [0.25, 0.75])


if __name__ == "__main__":
    unittest.main()

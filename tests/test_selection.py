"""Tests for best-server selection."""

import asyncio
import math
import time
import unittest

from libreclient.cancel import CancelToken
from libreclient.errors import NoServerAvailable, NoSuccessfulProbes, TestCancelled
from libreclient.selection import UNREACHABLE, ServerSelector
from libreclient.server import Server


class _StubSampler:
    """Stands in for PingSampler: latency per server name, None = unreachable."""

    def __init__(self, latencies, delay=0.0):
        self.latencies = latencies
        self.delay = delay
        self.probed = []
        self.finished = []

    async def sample(self, server, token=None):
        self.probed.append(server.name)
        if token is not None:
            token.raise_if_cancelled()
        try:
            delay = self.delay.get(server.name, 0.0) if isinstance(self.delay, dict) else self.delay
            if delay:
                await asyncio.sleep(delay)
            if token is not None:
                token.raise_if_cancelled()
            latency = self.latencies[server.name]
            if latency is None:
                raise NoSuccessfulProbes(server.name, 1)
            server.latency_ms = latency
            server.jitter_ms = 1.0
            return latency
        finally:
            self.finished.append(server.name)


def _servers(*names):
    return [Server(name=n, base_url=f"http://{n}.test/") for n in names]


class TestServerSelector(unittest.IsolatedAsyncioTestCase):
    async def test_picks_lowest_latency(self):
        servers = _servers("a", "b", "c")
        sampler = _StubSampler({"a": 50.0, "b": 10.0, "c": 30.0})
        best = await ServerSelector(sampler).select(servers)
        self.assertIs(best, servers[1])
        self.assertEqual(best.latency_ms, 10.0)

    async def test_tie_goes_to_first_listed(self):
        servers = _servers("a", "b", "c")
        sampler = _StubSampler({"a": 20.0, "b": 10.0, "c": 10.0})
        best = await ServerSelector(sampler).select(servers)
        self.assertIs(best, servers[1])

    async def test_unreachable_marked(self):
        servers = _servers("a", "b")
        sampler = _StubSampler({"a": None, "b": 80.0})
        best = await ServerSelector(sampler).select(servers)
        self.assertIs(best, servers[1])
        self.assertTrue(math.isinf(servers[0].latency_ms))
        self.assertEqual(servers[0].latency_ms, UNREACHABLE)

    async def test_all_unreachable(self):
        sampler = _StubSampler({"a": None, "b": None})
        with self.assertRaises(NoServerAvailable):
            await ServerSelector(sampler).select(_servers("a", "b"))

    async def test_empty_list(self):
        with self.assertRaises(NoServerAvailable):
            await ServerSelector(_StubSampler({})).select([])

    async def test_max_servers_cap(self):
        servers = _servers("a", "b", "c", "d")
        sampler = _StubSampler({"a": 40.0, "b": 30.0, "c": 20.0, "d": 1.0})
        best = await ServerSelector(sampler).select(servers, max_servers=2)
        self.assertIs(best, servers[1])
        self.assertEqual(sorted(sampler.probed), ["a", "b"])

    async def test_probes_run_concurrently(self):
        names = ["s%d" % i for i in range(5)]
        sampler = _StubSampler({n: 10.0 for n in names}, delay=0.2)
        start = time.perf_counter()
        await ServerSelector(sampler).select(_servers(*names))
        self.assertLess(time.perf_counter() - start, 0.8)

    async def test_cancellation_propagates(self):
        token = CancelToken()
        token.cancel()
        sampler = _StubSampler({"a": 10.0})
        with self.assertRaises(TestCancelled):
            await ServerSelector(sampler).select(_servers("a"), token=token)

    async def test_cancellation_waits_for_every_probe(self):
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        sampler = _StubSampler(
            {"a": 10.0, "b": 10.0, "c": 10.0},
            delay={"a": 0.1, "b": 0.4, "c": 0.4},
        )
        with self.assertRaises(TestCancelled):
            await ServerSelector(sampler).select(_servers("a", "b", "c"), token=token)
        self.assertEqual(sorted(sampler.finished), ["a", "b", "c"])

    async def test_unreachable_clears_stale_jitter(self):
        servers = _servers("a", "b")
        servers[0].jitter_ms = 7.5
        sampler = _StubSampler({"a": None, "b": 20.0})
        await ServerSelector(sampler).select(servers)
        self.assertEqual(servers[0].latency_ms, UNREACHABLE)
        self.assertEqual(servers[0].jitter_ms, 0.0)


if __name__ == "__main__":
    unittest.main()

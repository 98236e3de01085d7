"""Tests for libreclient.cancel -- the cancellation token tree."""

import asyncio
import time
import unittest

from libreclient.cancel import CancelToken
from libreclient.errors import TestCancelled


class TestTokenTree(unittest.TestCase):
    def test_parent_cancels_descendants(self):
        root = CancelToken()
        child = root.linked()
        grandchild = child.linked()
        root.cancel()
        self.assertTrue(child.cancelled)
        self.assertTrue(grandchild.cancelled)

    def test_child_never_cancels_parent(self):
        root = CancelToken()
        child = root.linked()
        sibling = root.linked()
        child.cancel()
        self.assertFalse(root.cancelled)
        self.assertFalse(sibling.cancelled)

    def test_linked_from_cancelled_parent_starts_cancelled(self):
        root = CancelToken()
        root.cancel()
        self.assertTrue(root.linked().cancelled)

    def test_context_exit_detaches_and_cancels(self):
        root = CancelToken()
        with root.linked() as phase:
            self.assertFalse(phase.cancelled)
        self.assertTrue(phase.cancelled)
        self.assertFalse(root.cancelled)
        self.assertEqual(root._children, [])

    def test_detached_child_ignores_parent(self):
        root = CancelToken()
        child = root.linked()
        child.detach()
        root.cancel()
        self.assertFalse(child.cancelled)

    def test_callbacks_run_once(self):
        calls = []
        token = CancelToken()
        token.add_callback(lambda: calls.append(1))
        token.cancel()
        token.cancel()
        self.assertEqual(calls, [1])

    def test_callback_on_cancelled_token_runs_immediately(self):
        calls = []
        token = CancelToken()
        token.cancel()
        token.add_callback(lambda: calls.append(1))
        self.assertEqual(calls, [1])

    def test_raise_if_cancelled(self):
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel()
        with self.assertRaises(TestCancelled):
            token.raise_if_cancelled()


class TestTokenWaiting(unittest.IsolatedAsyncioTestCase):
    async def test_sleep_runs_full_duration(self):
        token = CancelToken()
        self.assertFalse(await token.sleep(0.05))

    async def test_sleep_interrupted(self):
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        start = time.perf_counter()
        self.assertTrue(await token.sleep(5.0))
        self.assertLess(time.perf_counter() - start, 1.0)

    async def test_wait_via_parent(self):
        root = CancelToken()
        child = root.linked()
        asyncio.get_running_loop().call_later(0.02, root.cancel)
        await asyncio.wait_for(child.wait(), timeout=1.0)

    async def test_guard_returns_result(self):
        async def _work():
            await asyncio.sleep(0.01)
            return 42

        self.assertEqual(await CancelToken().guard(_work()), 42)

    async def test_guard_propagates_errors(self):
        async def _fail():
            raise OSError("boom")

        with self.assertRaises(OSError):
            await CancelToken().guard(_fail())

    async def test_guard_abandons_on_cancel(self):
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        start = time.perf_counter()
        with self.assertRaises(TestCancelled):
            await token.guard(asyncio.sleep(10))
        self.assertLess(time.perf_counter() - start, 1.0)

    async def test_guard_on_cancelled_token(self):
        token = CancelToken()
        token.cancel()
        coro = asyncio.sleep(0)
        with self.assertRaises(TestCancelled):
            await token.guard(coro)
        coro.close()


if __name__ == "__main__":
    unittest.main()

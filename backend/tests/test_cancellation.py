"""Cancellation tokens and the per-conversation active slot."""
from __future__ import annotations

import asyncio
import unittest

from src.stream_orchestrator.cancellation import ActiveRequests, CancellationToken
from src.stream_orchestrator.errors import RequestCancelled


class TestActiveRequests(unittest.TestCase):
    def test_begin_supersedes_previous_handle(self) -> None:
        active = ActiveRequests()
        first = active.begin("conv")
        second = active.begin("conv")
        self.assertTrue(first.cancelled)
        self.assertFalse(second.cancelled)
        self.assertIs(active.current("conv"), second)

    def test_release_of_stale_handle_keeps_current(self) -> None:
        active = ActiveRequests()
        first = active.begin("conv")
        second = active.begin("conv")
        active.release(first)
        self.assertIs(active.current("conv"), second)
        active.release(second)
        self.assertIsNone(active.current("conv"))

    def test_cancel_by_key(self) -> None:
        active = ActiveRequests()
        handle = active.begin("conv")
        self.assertTrue(active.cancel("conv"))
        self.assertTrue(handle.cancelled)
        self.assertFalse(active.cancel("conv"))


class TestCancellationToken(unittest.IsolatedAsyncioTestCase):
    async def test_guard_interrupts_pending_await(self) -> None:
        token = CancellationToken()
        never = asyncio.Event()
        task = asyncio.create_task(token.guard(never.wait()))
        await asyncio.sleep(0)
        token.cancel()
        with self.assertRaises(RequestCancelled):
            await asyncio.wait_for(task, timeout=1)

    async def test_guard_returns_result(self) -> None:
        async def value():
            return 42

        self.assertEqual(await CancellationToken().guard(value()), 42)

    async def test_sleep_reports_cancellation(self) -> None:
        token = CancellationToken()
        self.assertTrue(await token.sleep(0))
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        self.assertFalse(await token.sleep(5))

    async def test_cancel_from_worker_thread_wakes_guard(self) -> None:
        token = CancellationToken()
        never = asyncio.Event()
        task = asyncio.create_task(token.guard(never.wait()))
        await asyncio.sleep(0)
        await asyncio.to_thread(token.cancel)
        with self.assertRaises(RequestCancelled):
            await asyncio.wait_for(task, timeout=1)


if __name__ == "__main__":
    unittest.main()

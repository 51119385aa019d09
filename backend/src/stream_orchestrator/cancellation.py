"""Cancellation tokens, request handles and the per-conversation active slot."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass, field
from typing import TypeVar

from .config import DEFAULT_RETRY_POLICY, RetryPolicy
from .errors import RequestCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal checked at every suspension point.

    ``guard`` and ``iterate`` race an awaitable against the token so a
    blocked network read is interrupted, not just skipped afterwards.
    ``cancel`` may be called from any thread; the event is always set on
    the loop that awaits it.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            event, loop = self._event, self._loop
        if event is None or loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            event.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(event.set)

    def _get_event(self) -> asyncio.Event:
        # Created lazily so the token can be built outside a running loop.
        with self._lock:
            if self._event is None:
                self._event = asyncio.Event()
                self._loop = asyncio.get_running_loop()
                if self._cancelled:
                    self._event.set()
            return self._event

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds. Returns False if cancelled first."""
        if self._cancelled:
            return False
        try:
            await asyncio.wait_for(self._get_event().wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first, then raise RequestCancelled."""
        task = asyncio.ensure_future(awaitable)
        if self._cancelled:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise RequestCancelled()
        waiter = asyncio.ensure_future(self._get_event().wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise RequestCancelled()

    async def iterate(self, source: AsyncIterator[T]) -> AsyncIterator[T]:
        """Yield from ``source`` with every ``__anext__`` guarded by the token."""
        iterator = source.__aiter__()
        while True:
            try:
                item = await self.guard(iterator.__anext__())
            except StopAsyncIteration:
                return
            yield item


@dataclass
class RequestHandle:
    """Owns the lifetime of one logical user request across both phases."""

    key: str
    token: CancellationToken = field(default_factory=CancellationToken)
    retry: RetryPolicy = DEFAULT_RETRY_POLICY

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def cancel(self) -> None:
        self.token.cancel()


class ActiveRequests:
    """At most one active RequestHandle per conversation key.

    ``begin`` cancels and replaces whatever handle currently owns the key.
    """

    def __init__(self, retry: RetryPolicy = DEFAULT_RETRY_POLICY) -> None:
        self._retry = retry
        self._lock = threading.Lock()
        self._active: dict[str, RequestHandle] = {}

    def begin(self, key: str) -> RequestHandle:
        handle = RequestHandle(key=key, retry=self._retry)
        with self._lock:
            previous = self._active.get(key)
            self._active[key] = handle
        if previous is not None:
            logger.info("Superseding in-flight request for %s", key)
            previous.cancel()
        return handle

    def release(self, handle: RequestHandle) -> None:
        with self._lock:
            if self._active.get(handle.key) is handle:
                del self._active[handle.key]

    def current(self, key: str) -> RequestHandle | None:
        with self._lock:
            return self._active.get(key)

    def cancel(self, key: str) -> bool:
        with self._lock:
            handle = self._active.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

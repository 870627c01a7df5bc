"""Runs one asyncio loop in a daemon thread so synchronous callers can use a session.

Every coroutine submitted through ``call`` executes on that single loop,
which keeps all cache and buffer mutation on one thread.
"""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class RosterRuntime:
    def __init__(self, *, timeout: Optional[float] = 30.0) -> None:
        self.timeout = timeout
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="roster-loop", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self.loop.is_closed()

    def call(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory()`` on the loop and block until it finishes."""

        async def runner() -> T:
            return await factory()

        future = asyncio.run_coroutine_threadsafe(runner(), self.loop)
        return future.result(self.timeout)

    def call_sync(self, func: Callable[..., T], *args: Any) -> T:
        """Run a plain function on the loop thread."""

        async def runner() -> T:
            return func(*args)

        return self.call(runner)

    def stop(self) -> None:
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        self.loop.close()


__all__ = ["RosterRuntime"]

"""Single-slot timers: scheduling again replaces whatever was pending."""
from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol


class Timer(Protocol):
    @property
    def pending(self) -> bool: ...

    def schedule(self, delay: float, callback: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[], Timer]


class LoopTimer:
    """One ``call_later`` handle on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()

        def fire() -> None:
            self._handle = None
            callback()

        self._handle = loop.call_later(max(0.0, delay), fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


__all__ = ["Timer", "TimerFactory", "LoopTimer"]

"""Deferred callbacks used to pace AI replies."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> None: ...


class AsyncioScheduler:
    """Runs callbacks on the event loop that is current when they are scheduled.

    Callbacks are never cancelled; whatever they act on must be re-checked
    when they fire.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(max(0.0, delay), callback)

"""Scheduler implementation on the running asyncio event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from botfleet.domain.ports.services import Scheduler, TimerHandle


logger = structlog.get_logger(__name__)


class AsyncioTimerHandle(TimerHandle):
    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
        # A callback that already started is left to finish


class AsyncioScheduler(Scheduler):
    """Runs delayed coroutine callbacks with ``loop.call_later``."""

    def __init__(self) -> None:
        self._running: set[asyncio.Task[None]] = set()

    def call_later(
        self, delay_seconds: float, callback: Callable[[], Awaitable[None]]
    ) -> TimerHandle:
        loop = asyncio.get_running_loop()
        timer = AsyncioTimerHandle()

        def _fire() -> None:
            if timer.cancelled:
                return
            task = loop.create_task(self._run(callback))
            timer._task = task
            self._running.add(task)
            task.add_done_callback(self._running.discard)

        timer._handle = loop.call_later(delay_seconds, _fire)
        return timer

    @staticmethod
    async def _run(callback: Callable[[], Awaitable[None]]) -> None:
        try:
            await callback()
        except Exception as e:
            logger.exception("scheduled_callback_failed", error=str(e))

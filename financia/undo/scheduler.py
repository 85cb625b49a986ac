"""
Timer scheduling on top of the asyncio event loop.

The undo manager needs two kinds of deferred work: a one-shot task per
registration and a repeating sweep. Both must be cancellable so that a
torn-down session never acts on freed state. All durations are in
milliseconds, matching the undo settings.
"""

import asyncio
import time
from typing import Callable, Optional

import structlog


logger = structlog.get_logger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class Timer:
    """Handle for a one-shot callback."""

    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class RepeatingTask:
    """Runs `callback` every `interval_ms` until cancelled."""

    def __init__(self, interval_ms: float, callback: Callable[[], object], name: str):
        self._interval = interval_ms / 1000
        self._callback = callback
        self._name = name
        self._task = asyncio.get_running_loop().create_task(self._run(), name=name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._callback()
            except Exception:
                # The task outlives a failing tick
                logger.exception("repeating_task_failed", task=self._name)

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()


class Scheduler:
    """
    Creates timers on the running event loop.

    Args:
        clock: Returns the current time in milliseconds. Defaults to a
            monotonic clock; tests pass a controllable one.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or monotonic_ms

    def now_ms(self) -> float:
        return self._clock()

    def call_later(self, delay_ms: float, callback: Callable, *args) -> Timer:
        """Schedule `callback(*args)` once after `delay_ms`."""
        loop = asyncio.get_running_loop()
        return Timer(loop.call_later(delay_ms / 1000, callback, *args))

    def call_every(
        self,
        interval_ms: float,
        callback: Callable[[], object],
        name: str = "repeating",
    ) -> RepeatingTask:
        """Schedule `callback()` every `interval_ms` until cancelled."""
        return RepeatingTask(interval_ms, callback, name)

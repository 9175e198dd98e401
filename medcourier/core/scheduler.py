"""
Timer scheduling for tracking sessions.

Sessions never create timers themselves; they go through a Scheduler so
that the event-loop implementation can be swapped for a virtual clock.
"""

import abc
import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TimerHandle(abc.ABC):
    """A scheduled callback that can be cancelled."""

    @abc.abstractmethod
    def cancel(self) -> None:
        ...

    @property
    @abc.abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(abc.ABC):
    """Clock plus one-shot and recurring callbacks (seconds)."""

    @abc.abstractmethod
    def now(self) -> float:
        """Current time as epoch seconds."""

    @abc.abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""

    @abc.abstractmethod
    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""


class _LoopTimer(TimerHandle):
    """One-shot or repeating timer on an asyncio event loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        delay: float,
        callback: Callable[[], None],
        repeat: bool,
    ) -> None:
        self._loop = loop
        self._delay = delay
        self._callback = callback
        self._repeat = repeat
        self._cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        if self._repeat:
            # Re-arm before running so cancel() inside the callback wins
            self._handle = self._loop.call_later(self._delay, self._fire)
        else:
            self._handle = None
        try:
            self._callback()
        except Exception:
            logger.exception("Timer callback failed")

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop and wall-clock time."""

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return _LoopTimer(asyncio.get_running_loop(), delay, callback, repeat=False)

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        return _LoopTimer(asyncio.get_running_loop(), interval, callback, repeat=True)

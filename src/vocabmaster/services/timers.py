"""Cancellable scheduled callbacks for session feedback delays."""
import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """Handle of a scheduled callback."""

    def __init__(self, cancel: Optional[Callable[[], None]] = None):
        self._cancel = cancel
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._cancel:
            self._cancel()


class BaseScheduler(ABC):
    """Runs callbacks after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule callback to run after delay seconds."""
        raise NotImplementedError("Subclasses must implement this method")


class AsyncioScheduler(BaseScheduler):
    """Scheduler backed by the asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self.loop or asyncio.get_running_loop()
        handle = loop.call_later(delay, callback)
        return TimerHandle(handle.cancel)


class ManualScheduler(BaseScheduler):
    """Scheduler driven by an explicit virtual clock.

    Nothing runs until advance() moves the clock past a callback's due time,
    which makes delayed session behaviour reproducible without sleeping.
    """

    def __init__(self):
        self.now = 0.0
        self._counter = itertools.count()
        self._queue: List[Tuple[float, int, Callable[[], None], TimerHandle]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._counter), callback, handle))
        return handle

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that were not cancelled."""
        return sum(1 for *_, handle in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run every callback that became due."""
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, callback, handle = heapq.heappop(self._queue)
            self.now = due
            if handle.cancelled:
                continue
            handle.cancel()
            callback()
            ran += 1
        self.now = target
        return ran

    def run_all(self) -> int:
        """Run every pending callback regardless of its delay."""
        ran = 0
        while self._queue:
            due = self._queue[0][0]
            ran += self.advance(max(due - self.now, 0))
        return ran

#!/usr/bin/env python3
"""
Scheduler for AutoApply
@file purpose: Single-threaded timer queue that drives one automation run.

Every timer, keepalive and port delivery for a run is executed by the
thread that calls run_pending(), so Playwright's sync API is only ever
touched from that thread.
"""

import heapq
import itertools
import logging
import time
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class TimerHandle:
    """Handle returned by call_later/call_every, used to cancel the timer"""

    def __init__(
        self,
        due: float,
        callback: Callable,
        args: tuple,
        interval: Optional[float] = None,
        name: str = "",
    ):
        self.due = due
        self.callback = callback
        self.args = args
        self.interval = interval
        self.name = name or getattr(callback, "__name__", "timer")
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def __repr__(self) -> str:
        kind = f"every {self.interval}s" if self.interval else "once"
        return f"<TimerHandle {self.name} due={self.due:.2f} {kind}>"


class Scheduler:
    """
    Minimal timer queue (heap of due times) with a monotonic clock

    The clock is injectable so tests can advance time without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._heap: List[tuple] = []
        self._counter = itertools.count()
        self._running: List[TimerHandle] = []

    def _push(self, handle: TimerHandle):
        heapq.heappush(self._heap, (handle.due, next(self._counter), handle))

    def call_later(self, delay: float, callback: Callable, *args: Any) -> TimerHandle:
        """Run callback once after ``delay`` seconds"""
        handle = TimerHandle(self.clock() + max(delay, 0), callback, args)
        self._push(handle)
        return handle

    def call_soon(self, callback: Callable, *args: Any) -> TimerHandle:
        return self.call_later(0, callback, *args)

    def call_every(self, interval: float, callback: Callable, *args: Any) -> TimerHandle:
        """Run callback every ``interval`` seconds until cancelled"""
        handle = TimerHandle(self.clock() + interval, callback, args, interval=interval)
        self._push(handle)
        return handle

    @staticmethod
    def cancel(handle: Optional[TimerHandle]):
        if handle is not None:
            handle.cancel()

    def run_pending(self) -> int:
        """
        Run every timer that was due when the pass started

        Callbacks scheduled while the pass runs wait for the next pass, so a
        callback that re-arms itself with call_soon cannot starve the caller.
        Returns the number of callbacks executed. Callback exceptions are
        logged and do not stop the queue.
        """
        executed = 0
        now = self.clock()
        batch = []
        while self._heap and self._heap[0][0] <= now:
            batch.append(heapq.heappop(self._heap)[2])
        self._running = batch

        for handle in batch:
            if handle.cancelled:
                continue

            if handle.interval:
                handle.due = now + handle.interval
                self._push(handle)

            try:
                handle.callback(*handle.args)
            except Exception as e:
                logger.error(f"Scheduled callback {handle.name} failed: {e}", exc_info=True)
            executed += 1
        self._running = []
        return executed

    def time_until_next(self) -> Optional[float]:
        """Seconds until the next live timer, or None when nothing is scheduled"""
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)
        if not self._heap:
            return None
        return max(0.0, self._heap[0][0] - self.clock())

    def pending_count(self) -> int:
        return sum(1 for _, _, handle in self._heap if not handle.cancelled)

    def clear(self):
        for _, _, handle in self._heap:
            handle.cancel()
        for handle in self._running:
            handle.cancel()
        self._heap = []

    def run_until(
        self,
        should_stop: Callable[[], bool],
        max_idle_sleep: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Pump timers until ``should_stop()`` returns True"""
        while not should_stop():
            self.run_pending()
            wait = self.time_until_next()
            if wait is None or wait > max_idle_sleep:
                wait = max_idle_sleep
            if wait > 0:
                sleep(wait)

"""
Single-threaded timer clocks for deferred scheduler actions.

Both clocks run callbacks on the caller's thread, one at a time, in due
order. ManualClock advances virtual time explicitly (dry runs, tests);
RealtimeClock sleeps on time.monotonic between due callbacks.
"""

import heapq
import itertools
import logging
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancelable handle for one deferred callback."""

    __slots__ = ("when", "_callback", "cancelled", "fired")

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self._callback = callback
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        """True while the callback may still run."""
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True

    def _run(self) -> None:
        self.fired = True
        self._callback()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "fired" if self.fired else "pending"
        return f"TimerHandle(when={self.when:.3f}, {state})"


class _TimerQueue:
    """Heap of handles ordered by due time, then insertion order."""

    def __init__(self):
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    def push(self, handle: TimerHandle) -> None:
        heapq.heappush(self._heap, (handle.when, next(self._counter), handle))

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)

    def next_due(self) -> Optional[float]:
        self._drop_cancelled()
        return self._heap[0][0] if self._heap else None

    def pop_due(self, now: float) -> Optional[TimerHandle]:
        self._drop_cancelled()
        if self._heap and self._heap[0][0] <= now:
            return heapq.heappop(self._heap)[2]
        return None

    def live(self) -> int:
        return sum(1 for _, _, h in self._heap if h.active)


class ManualClock:
    """
    Virtual-time clock.

    Time only moves in advance(); callbacks due within the advanced span
    fire in order, each seeing now() equal to its own due time.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue = _TimerQueue()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._now + max(0.0, delay), callback)
        self._queue.push(handle)
        return handle

    def pending(self) -> int:
        """Number of timers that have neither fired nor been cancelled."""
        return self._queue.live()

    def advance(self, seconds: float) -> int:
        """
        Move time forward, firing every callback that falls due.

        Returns:
            Number of callbacks fired
        """
        target = self._now + max(0.0, seconds)
        fired = 0
        while True:
            handle = self._queue.pop_due(target)
            if handle is None:
                break
            self._now = max(self._now, handle.when)
            handle._run()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, limit: float = 24 * 3600.0) -> float:
        """Advance until no timers remain (or limit seconds pass); returns elapsed time."""
        start = self._now
        while True:
            due = self._queue.next_due()
            if due is None or due - start > limit:
                break
            self.advance(due - self._now)
        return self._now - start


class RealtimeClock:
    """Wall-clock timer loop driven from the calling thread."""

    def __init__(self):
        self._queue = _TimerQueue()

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.now() + max(0.0, delay), callback)
        self._queue.push(handle)
        return handle

    def pending(self) -> int:
        return self._queue.live()

    def run(self, until: Optional[float] = None) -> None:
        """
        Run due callbacks until the queue empties or ``until`` seconds elapse.

        Args:
            until: Maximum seconds to run, or None to run until idle
        """
        deadline = self.now() + until if until is not None else None
        while True:
            due = self._queue.next_due()
            if due is None:
                return
            if deadline is not None and due > deadline:
                time.sleep(max(0.0, deadline - self.now()))
                return
            time.sleep(max(0.0, due - self.now()))
            handle = self._queue.pop_due(self.now())
            if handle is not None:
                handle._run()

from __future__ import annotations

"""Clocks and a cooperative one-shot timer queue.

Timers never run on their own thread: the session tick calls
``TimerQueue.run_due()`` so callbacks fire on the same context as every
other core mutation.
"""

import heapq
import itertools
import time
from typing import Callable, List, Optional, Tuple


class MonotonicClock:
    """Wall-independent millisecond clock."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0


class ManualClock:
    """Clock that only moves when told to (tests, replays)."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        self._now += float(ms)
        return self._now


class TimerHandle:
    def __init__(self, due_ms: float, callback: Callable[[], None], label: str = "") -> None:
        self.due_ms = due_ms
        self.label = label
        self._callback: Optional[Callable[[], None]] = callback
        self.fired = False

    @property
    def cancelled(self) -> bool:
        return self._callback is None and not self.fired

    @property
    def pending(self) -> bool:
        return self._callback is not None

    def cancel(self) -> None:
        self._callback = None

    def _fire(self) -> None:
        cb = self._callback
        if cb is None:
            return
        self._callback = None
        self.fired = True
        cb()


class TimerQueue:
    def __init__(self, clock) -> None:
        self.clock = clock
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None], label: str = "") -> TimerHandle:
        handle = TimerHandle(self.clock.now_ms() + max(0.0, float(delay_ms)), callback, label)
        heapq.heappush(self._heap, (handle.due_ms, next(self._seq), handle))
        return handle

    def run_due(self, now_ms: Optional[float] = None) -> int:
        """Fire every pending timer due at or before ``now_ms``; return how many fired."""
        now = self.clock.now_ms() if now_ms is None else now_ms
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            if handle.pending:
                handle._fire()
                fired += 1
        return fired

    def cancel_all(self) -> None:
        for _, _, handle in self._heap:
            handle.cancel()
        self._heap.clear()

    def pending_count(self) -> int:
        return sum(1 for _, _, h in self._heap if h.pending)

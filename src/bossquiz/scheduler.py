"""Cancellable deferred calls on a manually advanced clock."""
import heapq
import itertools
from typing import Callable

# Absorbs float drift when repeated delays are summed
_EPSILON = 1e-9


class ScheduledCall:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self):
        state = "cancelled" if self.cancelled else "pending"
        return f"<ScheduledCall at {self.when:.2f} {state}>"


class ManualScheduler:
    """Event-loop style timer queue whose clock only moves via advance().

    Tests step it deterministically; the CLI feeds it measured wall-clock time.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        call = ScheduledCall(self._now + delay, callback)
        heapq.heappush(self._queue, (call.when, next(self._counter), call))
        return call

    def pending(self) -> list[ScheduledCall]:
        return [call for _, _, call in sorted(self._queue) if not call.cancelled]

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due calls in time order.

        Calls scheduled by callbacks fire too if they fall inside the window.
        Returns the number of callbacks run.
        """
        if seconds < 0:
            raise ValueError("cannot move the clock backwards")
        deadline = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= deadline + _EPSILON:
            when, _, call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self._now = max(self._now, when)
            call.callback()
            fired += 1
        self._now = max(self._now, deadline)
        return fired

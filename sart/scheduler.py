"""A discrete-event scheduler driving simulated time."""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple


@dataclass
class Event:
    """A callback due at a point in simulated time."""

    time: float
    callback: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        """Prevent the callback from running."""
        self.cancelled = True


class Scheduler:
    """Runs callbacks in order of due time; ties run in the order scheduled."""

    def __init__(self) -> None:
        self._now = 0.0
        self._queue: List[Tuple[float, int, Event]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        """Current simulated time in seconds."""
        return self._now

    def schedule(self, delay: float, callback: Callable[..., Any], *args: Any) -> Event:
        """Run ``callback(*args)`` after ``delay`` seconds of simulated time."""
        if delay < 0:
            raise ValueError("delay must not be negative")
        event = Event(self._now + delay, callback, args)
        heapq.heappush(self._queue, (event.time, next(self._seq), event))
        return event

    def cancel(self, event: Optional[Event]) -> None:
        """Cancel ``event``; None is ignored."""
        if event is not None:
            event.cancel()

    def __len__(self) -> int:
        return sum(1 for _, _, event in self._queue if not event.cancelled)

    def run(self, until: Optional[float] = None) -> int:
        """Run due events up to ``until`` (or all of them); return how many ran."""
        executed = 0
        while self._queue:
            time, _, event = self._queue[0]
            if until is not None and time > until:
                break
            heapq.heappop(self._queue)
            if event.cancelled:
                continue
            self._now = time
            event.callback(*event.args)
            executed += 1
        if until is not None and until > self._now:
            self._now = until
        return executed
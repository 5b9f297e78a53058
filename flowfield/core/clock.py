"""
Host clock: discrete tick counter driving scripted level edits.

A host loop advances the clock once per simulation tick. Edits planned ahead
of time (a structure placed at tick 5, destroyed at tick 12) sit in a
tick-ordered queue and run when their tick comes up; edits registered for
the same tick run in registration order.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable


@dataclass(order=True)
class ScheduledCallback:
    """A callback due at ``tick``. Ordered by (tick, registration order)."""

    tick: int
    seq: int
    name: str = field(compare=False)
    callback: Callable[[], None] = field(compare=False, repr=False)
    every: int | None = field(default=None, compare=False)  # repeat interval in ticks


class Clock:
    """
    Tick counter with a queue of scheduled callbacks.

    Attributes:
        tick: Ticks elapsed; the first ``advance()`` moves to 1.
        max_ticks: Tick limit for ``is_done`` (0 = unlimited).
    """

    def __init__(self, max_ticks: int = 0):
        self.tick: int = 0
        self.max_ticks: int = max_ticks
        self._queue: list[ScheduledCallback] = []
        self._seq = itertools.count()

    @property
    def is_done(self) -> bool:
        return self.max_ticks > 0 and self.tick >= self.max_ticks

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def next_due(self) -> int | None:
        """Tick of the earliest queued callback, or None."""
        return self._queue[0].tick if self._queue else None

    def schedule(
        self,
        tick: int,
        name: str,
        callback: Callable[[], None],
        recurring: int | None = None,
    ) -> None:
        """Queue ``callback`` for ``tick``, repeating every ``recurring`` ticks if given."""
        if recurring is not None and recurring <= 0:
            raise ValueError(f"Recurring interval must be positive, got {recurring}")
        heapq.heappush(self._queue, ScheduledCallback(tick, next(self._seq), name, callback, recurring))

    def cancel(self, name: str) -> int:
        """Drop every queued callback called ``name``. Returns how many were dropped."""
        kept = [entry for entry in self._queue if entry.name != name]
        dropped = len(self._queue) - len(kept)
        if dropped:
            heapq.heapify(kept)
            self._queue = kept
        return dropped

    def advance(self) -> list[str]:
        """
        Step to the next tick and run everything due by then.

        Overdue callbacks (scheduled for a tick already passed) run too.
        Repeats are re-queued after this tick's batch, so they never fire
        twice in one advance.

        Returns:
            Names of the callbacks that ran, in order.
        """
        self.tick += 1
        fired: list[str] = []
        repeats: list[ScheduledCallback] = []

        while self._queue and self._queue[0].tick <= self.tick:
            entry = heapq.heappop(self._queue)
            entry.callback()
            fired.append(entry.name)
            if entry.every is not None:
                repeats.append(entry)

        for entry in repeats:
            self.schedule(self.tick + entry.every, entry.name, entry.callback, entry.every)
        return fired

    def reset(self) -> None:
        self.tick = 0
        self._queue.clear()

    def __repr__(self) -> str:
        return f"Clock(tick={self.tick}, pending={len(self._queue)}, next_due={self.next_due})"

"""
Field scheduler: drives recomputation from a host simulation loop.

The host calls ``init()`` once and ``tick()`` once per simulation step. Level
edits mark the field dirty; the scheduler recomputes at most once per tick, at
the end of the tick's scheduled callbacks, so several edits in one tick cost a
single recompute.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from flowfield.core.clock import Clock
from flowfield.engine import ConfigurationError, FlowFieldEngine
from flowfield.field import FlowField

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What happened during one scheduler tick."""

    tick: int
    events_fired: list[str] = field(default_factory=list)
    recomputed: bool = False
    generation: int | None = None
    error: str | None = None


class FieldScheduler:
    """
    Explicit init/tick driver around a FlowFieldEngine.

    Recomputation is synchronous and runs to completion inside ``tick()``.
    """

    def __init__(self, engine: FlowFieldEngine, clock: Clock | None = None):
        self.engine = engine
        self.clock = clock or Clock()
        self.recompute_count = 0
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        """Request a recompute at the end of the current (or next) tick."""
        self._dirty = True

    def schedule(
        self, tick: int, name: str, callback: Callable[[], None], recurring: int | None = None
    ) -> None:
        self.clock.schedule(tick, name, callback, recurring)

    def init(self) -> bool:
        """Compute the first generation. Returns False if the level has no usable exit."""
        self._dirty = False
        try:
            self._recompute()
        except ConfigurationError:
            return False
        return True

    def tick(self) -> TickReport:
        """Advance one tick: fire due callbacks, then recompute if dirty."""
        fired = self.clock.advance()
        report = TickReport(tick=self.clock.tick, events_fired=fired)

        if self._dirty:
            self._dirty = False
            try:
                flow = self._recompute()
            except ConfigurationError as exc:
                report.error = str(exc)
            else:
                report.recomputed = True
                report.generation = flow.generation

        return report

    def run(self, ticks: int) -> list[TickReport]:
        """Run ``ticks`` ticks, initializing first if the engine has no field."""
        if self.engine.field is None:
            self.init()
        return [self.tick() for _ in range(ticks)]

    def _recompute(self) -> FlowField:
        flow = self.engine.recompute()
        self.recompute_count += 1
        return flow

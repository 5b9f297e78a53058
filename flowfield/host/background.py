"""
Background recomputation: build the next generation off the host thread.

``request()`` captures a point-in-time copy of the level on the caller's
thread and wakes a daemon worker. The worker builds the field from that copy
and publishes it with the engine's single reference swap, so readers keep
querying the previous generation until the new one is complete. Requests
that arrive while a build is running are coalesced into one follow-up build
from the latest copy.
"""

from __future__ import annotations

import logging
import threading
from typing import Sequence

from flowfield.core.grid import Cell, GridClassifier, LayeredGrid
from flowfield.engine import ConfigurationError, FlowFieldEngine

logger = logging.getLogger(__name__)


class BackgroundRecomputer:
    """Runs FlowFieldEngine.build_field() on a worker thread."""

    def __init__(self, engine: FlowFieldEngine) -> None:
        self.engine = engine
        self.last_error: Exception | None = None

        self._cond = threading.Condition()
        self._stop = False
        self._requested = 0
        self._served = 0
        self._pending: tuple[GridClassifier, tuple[Cell, ...]] | None = None

        self._thread = threading.Thread(target=self._run_loop, name="flowfield-recompute", daemon=True)
        self._thread.start()

    # ── Host side ────────────────────────────────────────────────────

    def request(self) -> int:
        """
        Queue a rebuild of the level as it is right now.

        Returns:
            Request number; ``wait_idle`` returning True means it was served.
        """
        grid = self.engine.grid
        snapshot = grid.snapshot() if isinstance(grid, LayeredGrid) else grid
        goals: Sequence[Cell] = tuple(self.engine.goals)
        with self._cond:
            if self._stop:
                raise RuntimeError("BackgroundRecomputer is closed")
            self._requested += 1
            self._pending = (snapshot, goals)
            self._cond.notify_all()
            return self._requested

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every request made so far has been served."""
        with self._cond:
            return self._cond.wait_for(lambda: self._served >= self._requested, timeout)

    @property
    def busy(self) -> bool:
        with self._cond:
            return self._served < self._requested

    def close(self, timeout: float = 1.0) -> None:
        with self._cond:
            self._stop = True
            self._cond.notify_all()
        self._thread.join(timeout=timeout)

    def __enter__(self) -> BackgroundRecomputer:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Worker side ──────────────────────────────────────────────────

    def _run_loop(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._stop or self._pending is not None)
                if self._stop:
                    return
                grid, goals = self._pending
                self._pending = None
                target = self._requested

            self._build(grid, goals)
            with self._cond:
                self._served = target
                self._cond.notify_all()

    def _build(self, grid: GridClassifier, goals: Sequence[Cell]) -> None:
        try:
            flow = self.engine.build_field(grid=grid, goals=goals)
        except ConfigurationError as exc:
            logger.error("Background recomputation failed: %s", exc)
            self.engine.invalidate()
            self.last_error = exc
        except Exception as exc:
            # Worker stays up; the host sees the failure through last_error
            logger.exception("Background recomputation crashed: %s", exc)
            self.last_error = exc
        else:
            self.engine.publish(flow)
            self.last_error = None

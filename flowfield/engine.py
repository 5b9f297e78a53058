"""
Flow field engine: recomputes the exit flow field and answers per-cell queries.

Recomputation runs two search passes:

1. Strict pass from the exits, avoiding every obstacle.
2. Relaxed pass from every conditional obstacle, avoiding only permanent
   ones. Cells that could not reach an exit follow this pass toward the
   nearest obstacle they can break through, preferring (on equal distance)
   the obstacle whose removal leaves the shortest way to an exit.

The combined result is published as one immutable FlowField by a single
reference swap, so queries see either the previous generation or the new one.
"""

from __future__ import annotations

import enum
import itertools
import logging
import time
from typing import Sequence

from flowfield.core.grid import AvoidanceMode, Cell, GridClassifier, LayeredGrid, TileLayer, as_cell
from flowfield.field import BLOCKED_NODE, FieldNode, FlowField
from flowfield.pathing.combine import combine_fields
from flowfield.pathing.dijkstra import compute_costs
from flowfield.pathing.reachability import breach_costs, find_unreached

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """The level cannot produce a flow field (no usable exit)."""


class EngineState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class FlowFieldEngine:
    """
    Owns the current flow field generation.

    The grid and goal list are held by reference and re-read on every
    recomputation; the engine never mutates either.
    """

    def __init__(self, grid: GridClassifier, goals: Sequence[Cell]):
        self.grid = grid
        self.goals = goals
        self._field: FlowField | None = None
        self._generations = itertools.count(1)

    @classmethod
    def from_layers(
        cls,
        ground: TileLayer,
        goals: Sequence[Cell],
        permanent_layers: list[TileLayer] | None = None,
        conditional_layers: list[TileLayer] | None = None,
    ) -> FlowFieldEngine:
        """Build an engine over a LayeredGrid wrapping the given layers."""
        grid = LayeredGrid(ground, permanent_layers, conditional_layers)
        return cls(grid, goals)

    # ── State ────────────────────────────────────────────────────────

    @property
    def state(self) -> EngineState:
        return EngineState.READY if self._field is not None else EngineState.UNINITIALIZED

    @property
    def field(self) -> FlowField | None:
        """Currently published generation, or None."""
        return self._field

    # ── Recomputation ────────────────────────────────────────────────

    def valid_goals(
        self, grid: GridClassifier | None = None, goals: Sequence[Cell] | None = None
    ) -> list[Cell]:
        """Goals that lie on walkable ground, deduplicated, in input order."""
        grid = grid if grid is not None else self.grid
        goals = goals if goals is not None else self.goals
        valid: list[Cell] = []
        for goal in goals:
            cell = as_cell(goal)
            if not grid.is_walkable(cell):
                logger.warning("Exit cell %s is not on walkable ground. Skipping.", cell)
                continue
            if cell not in valid:
                valid.append(cell)
        return valid

    def build_field(
        self, grid: GridClassifier | None = None, goals: Sequence[Cell] | None = None
    ) -> FlowField:
        """
        Compute a new generation without publishing it.

        Args:
            grid: Classifier to read instead of ``self.grid`` (e.g. a snapshot).
            goals: Goal list to read instead of ``self.goals``.

        Raises:
            ConfigurationError: no goal lies on walkable ground.
        """
        grid = grid if grid is not None else self.grid
        goals = goals if goals is not None else self.goals

        if not goals:
            raise ConfigurationError("Cannot calculate flow field: no exit cells are set")
        exits = self.valid_goals(grid, goals)
        if not exits:
            raise ConfigurationError("No valid exit cells found on walkable ground")

        logger.info("Starting flow field calculation from %d exits", len(exits))
        started = time.perf_counter()

        # Phase 1: nearest exit, every obstacle blocks
        strict = compute_costs(grid, exits, AvoidanceMode.STRICT)

        # Phase 2: what the exits cannot reach, and the obstacles it could break
        partition = find_unreached(grid, strict.costs)

        # Phase 3: nearest conditional obstacle, only permanent obstacles block
        ranks = breach_costs(grid, partition.fallback_sources, strict.costs)
        relaxed = compute_costs(grid, partition.fallback_sources, AvoidanceMode.RELAXED, ranks)

        # Phase 4: merge
        nodes = combine_fields(grid, strict, relaxed, partition.unreached)

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        flow = FlowField(
            nodes,
            goals=tuple(exits),
            generation=next(self._generations),
            elapsed_ms=elapsed_ms,
        )
        logger.info(
            "Flow field calculation finished in %.1f ms. Processed %d cells.",
            elapsed_ms,
            len(flow),
        )
        return flow

    def publish(self, flow: FlowField) -> None:
        """Make ``flow`` the generation all queries read."""
        self._field = flow

    def recompute(self) -> FlowField:
        """
        Rebuild and publish the flow field.

        On a configuration error the current field is dropped (the engine goes
        back to UNINITIALIZED) and the error is re-raised.
        """
        try:
            flow = self.build_field()
        except ConfigurationError as exc:
            self._field = None
            logger.error("Flow field recomputation failed: %s", exc)
            raise
        self.publish(flow)
        return flow

    def invalidate(self) -> None:
        """Drop the current field. Idempotent."""
        if self._field is not None:
            logger.info("Flow field data invalidated.")
        self._field = None

    # ── Queries ──────────────────────────────────────────────────────

    def get_node(self, cell: Cell | Sequence[int]) -> FieldNode:
        """Node for ``cell``, or BLOCKED_NODE if unknown. Never raises."""
        flow = self._field
        if flow is None:
            logger.debug("Flow field not initialized; returning blocked node for %s", cell)
            return BLOCKED_NODE
        try:
            key = as_cell(cell)
        except (TypeError, ValueError):
            return BLOCKED_NODE
        return flow.get(key)

    def __repr__(self) -> str:
        return f"FlowFieldEngine(state={self.state.value}, goals={len(self.goals)}, field={self._field!r})"

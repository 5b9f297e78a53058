"""
Flow field snapshot: the immutable, queryable result of one recomputation.

A FlowField maps every processed cell to a FieldNode. Snapshots are built
wholesale and never mutated after construction, so any number of readers can
hold one while the engine prepares the next.
"""

from __future__ import annotations

import enum
import math
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping

import numpy as np
from numpy.typing import NDArray

from flowfield.core.grid import ZERO_OFFSET, Cell

# Cost reported for anything that cannot reach a target.
UNREACHABLE_COST = 2**31 - 1


class FieldStatus(enum.IntEnum):
    """What a cell's path leads to."""

    BLOCKED = 0  # reaches nothing
    REACHES_GOAL = 1  # leads to the nearest exit
    REACHES_FALLBACK = 2  # no exit reachable; leads to the nearest conditional obstacle


@dataclass(frozen=True, slots=True)
class FieldNode:
    """
    Per-cell flow field entry.

    Attributes:
        predecessor_offset: Unit offset from this cell to the neighbour it was
            reached from during the search. That neighbour is one step closer
            to the target, so it is the cell to move into next. (0, 0) on a
            target cell and on blocked cells.
        cost: Steps to the target, or UNREACHABLE_COST.
        status: Target class of the path.
    """

    predecessor_offset: Cell
    cost: int
    status: FieldStatus

    @property
    def direction(self) -> tuple[float, float]:
        """Normalized (dx, dy) toward the next cell; (0.0, 0.0) if none."""
        dx, dy = self.predecessor_offset.x, self.predecessor_offset.y
        mag = math.hypot(dx, dy)
        if mag == 0:
            return (0.0, 0.0)
        return (dx / mag, dy / mag)

    @property
    def is_target(self) -> bool:
        """Cost-0 cell of a reachable status: an exit or a fallback obstacle."""
        return self.status is not FieldStatus.BLOCKED and self.cost == 0

    @property
    def is_reachable(self) -> bool:
        return self.status is not FieldStatus.BLOCKED

    def next_cell(self, cell: Cell) -> Cell:
        """Cell an agent standing on ``cell`` should step into."""
        return cell + self.predecessor_offset


BLOCKED_NODE = FieldNode(ZERO_OFFSET, UNREACHABLE_COST, FieldStatus.BLOCKED)


@dataclass(frozen=True)
class FieldArrays:
    """Dense NumPy export of a field over its bounding box."""

    origin: Cell
    cost: NDArray[np.float64]  # inf where unreachable or absent
    dx: NDArray[np.int8]
    dy: NDArray[np.int8]
    status: NDArray[np.int8]  # -1 where absent


@dataclass(frozen=True, eq=False)
class FlowField:
    """
    One complete generation of the flow field.

    Attributes:
        nodes: Read-only mapping cell -> FieldNode.
        goals: Goal cells that seeded this generation.
        generation: Monotonic build counter of the owning engine.
        elapsed_ms: Wall time the build took.
    """

    nodes: Mapping[Cell, FieldNode]
    goals: tuple[Cell, ...] = ()
    generation: int = 0
    elapsed_ms: float = 0.0
    _counts: Counter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Private read-only copy of the caller's mapping
        object.__setattr__(self, "nodes", MappingProxyType(dict(self.nodes)))
        object.__setattr__(self, "_counts", Counter(n.status for n in self.nodes.values()))

    # ── Lookup ───────────────────────────────────────────────────────

    def get(self, cell: Cell) -> FieldNode:
        return self.nodes.get(cell, BLOCKED_NODE)

    def __contains__(self, cell: object) -> bool:
        return cell in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Cell]:
        return iter(self.nodes)

    def items(self):
        return self.nodes.items()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FlowField):
            return NotImplemented
        return self.goals == other.goals and dict(self.nodes) == dict(other.nodes)

    __hash__ = None  # type: ignore[assignment]

    # ── Statistics ───────────────────────────────────────────────────

    def status_counts(self) -> dict[FieldStatus, int]:
        return {status: self._counts.get(status, 0) for status in FieldStatus}

    def max_cost(self, status: FieldStatus | None = None) -> int | None:
        """Largest finite cost, optionally restricted to one status."""
        costs = [
            n.cost
            for n in self.nodes.values()
            if n.status is not FieldStatus.BLOCKED and (status is None or n.status is status)
        ]
        return max(costs) if costs else None

    def bounds(self) -> tuple[int, int, int, int] | None:
        """(x_min, y_min, x_max, y_max) of processed cells, max exclusive."""
        if not self.nodes:
            return None
        xs = [c.x for c in self.nodes]
        ys = [c.y for c in self.nodes]
        return (min(xs), min(ys), max(xs) + 1, max(ys) + 1)

    # ── Path following ───────────────────────────────────────────────

    def trace(self, start: Cell, max_steps: int | None = None) -> list[Cell]:
        """
        Follow next-cell steps from ``start`` until a target is reached.

        Returns the visited cells including ``start``. Empty if ``start`` is
        blocked. Stops early if the chain revisits a cell or leaves the field.
        """
        node = self.get(start)
        if not node.is_reachable:
            return []
        limit = max_steps if max_steps is not None else node.cost
        path = [start]
        seen = {start}
        cell = start
        for _ in range(limit):
            if node.is_target:
                break
            cell = node.next_cell(cell)
            if cell in seen or cell not in self.nodes:
                break
            seen.add(cell)
            path.append(cell)
            node = self.nodes[cell]
        return path

    # ── Export ───────────────────────────────────────────────────────

    def to_arrays(self) -> FieldArrays:
        """Dense (height, width) arrays indexed [y - origin.y, x - origin.x]."""
        bounds = self.bounds()
        if bounds is None:
            empty = np.zeros((0, 0))
            return FieldArrays(
                ZERO_OFFSET,
                empty.astype(np.float64),
                empty.astype(np.int8),
                empty.astype(np.int8),
                empty.astype(np.int8),
            )
        x0, y0, x1, y1 = bounds
        shape = (y1 - y0, x1 - x0)
        cost = np.full(shape, np.inf, dtype=np.float64)
        dx = np.zeros(shape, dtype=np.int8)
        dy = np.zeros(shape, dtype=np.int8)
        status = np.full(shape, -1, dtype=np.int8)
        for cell, node in self.nodes.items():
            iy, ix = cell.y - y0, cell.x - x0
            status[iy, ix] = int(node.status)
            dx[iy, ix] = node.predecessor_offset.x
            dy[iy, ix] = node.predecessor_offset.y
            if node.is_reachable:
                cost[iy, ix] = node.cost
        return FieldArrays(Cell(x0, y0), cost, dx, dy, status)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly export."""
        return {
            "generation": self.generation,
            "elapsed_ms": round(self.elapsed_ms, 3),
            "goals": [list(g.as_tuple()) for g in self.goals],
            "counts": {s.name.lower(): c for s, c in self.status_counts().items()},
            "cells": [
                {
                    "x": cell.x,
                    "y": cell.y,
                    "dx": node.predecessor_offset.x,
                    "dy": node.predecessor_offset.y,
                    "cost": node.cost if node.is_reachable else None,
                    "status": node.status.name.lower(),
                }
                for cell, node in sorted(self.nodes.items())
            ],
        }

    def __repr__(self) -> str:
        counts = ", ".join(f"{s.name.lower()}={c}" for s, c in self.status_counts().items())
        return f"FlowField(gen={self.generation}, cells={len(self.nodes)}, {counts})"

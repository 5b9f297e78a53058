"""
Shortest-path pass: multi-source uniform-cost search over the tile grid.

Every source starts at cost 0. The search runs until the frontier is empty so
that every reachable cell ends up with its cost to the nearest source and the
neighbour it was reached from. Those predecessor links are what the flow field
hands to agents: stepping into the predecessor is stepping toward the source.

Ordering is lexicographic on (cost, rank, cell):

- cost: accumulated steps
- rank: secondary key inherited from the source a path starts at, looked up in
  an optional tie-break map. Only ever used to choose between paths of equal
  cost, never to change what is reachable.
- cell: final key so equal (cost, rank) pops are resolved deterministically
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from flowfield.core.grid import AvoidanceMode, Cell, GridClassifier, GridContractError
from flowfield.field import UNREACHABLE_COST

logger = logging.getLogger(__name__)

# Uniform edge weight between cardinal neighbours.
STEP_COST = 1


@dataclass
class PassResult:
    """
    Output of one search pass.

    Attributes:
        costs: Minimum cost from each reached cell to its nearest source.
        predecessors: Neighbour each cell was reached from (sources map to themselves).
        ranks: Tie-break key each cell settled with.
        expanded: Number of frontier entries actually expanded.
    """

    costs: dict[Cell, int] = field(default_factory=dict)
    predecessors: dict[Cell, Cell] = field(default_factory=dict)
    ranks: dict[Cell, int] = field(default_factory=dict)
    expanded: int = 0

    def __contains__(self, cell: object) -> bool:
        return cell in self.costs

    def __len__(self) -> int:
        return len(self.costs)


def compute_costs(
    grid: GridClassifier,
    sources: Iterable[Cell],
    mode: AvoidanceMode,
    tie_break_costs: Mapping[Cell, int] | None = None,
) -> PassResult:
    """
    Run multi-source Dijkstra from ``sources`` under ``mode``.

    Sources that are not walkable are skipped. Sources themselves are seeded
    even when they carry an obstacle relevant to ``mode``; only stepping onto
    a blocked neighbour is forbidden.

    Args:
        grid: Classifier for walkability, blocking and neighbours.
        sources: Cells seeded at cost 0.
        mode: Which obstacle classes block movement.
        tie_break_costs: Optional map giving each source its rank. Sources not
            in the map (or every source, when no map is given) rank last.

    Returns:
        PassResult. Empty when no source is walkable.
    """
    result = PassResult()
    costs = result.costs
    ranks = result.ranks
    predecessors = result.predecessors

    # Priority queue: (cost, rank, cell)
    frontier: list[tuple[int, int, Cell]] = []

    for source in sources:
        if not grid.is_walkable(source):
            logger.debug("Skipping source %s: not on walkable ground", source)
            continue
        rank = _rank_of(source, tie_break_costs)
        if source in costs and rank >= ranks[source]:
            continue
        costs[source] = 0
        ranks[source] = rank
        predecessors[source] = source
        heapq.heappush(frontier, (0, rank, source))

    while frontier:
        cost, rank, cell = heapq.heappop(frontier)
        # Stale entry: a better (cost, rank) was recorded after this one was queued
        if (cost, rank) > (costs[cell], ranks[cell]):
            continue
        result.expanded += 1

        for neighbor in grid.neighbors(cell):
            _check_adjacent(cell, neighbor)
            if not grid.is_walkable(neighbor) or grid.is_blocked(neighbor, mode):
                continue

            new_cost = cost + STEP_COST
            known = costs.get(neighbor)
            if known is None or new_cost < known or (new_cost == known and rank < ranks[neighbor]):
                costs[neighbor] = new_cost
                ranks[neighbor] = rank
                predecessors[neighbor] = cell
                heapq.heappush(frontier, (new_cost, rank, neighbor))

    logger.debug(
        "%s pass: %d cells reached, %d expansions", mode.value, len(costs), result.expanded
    )
    return result


def _rank_of(cell: Cell, tie_break_costs: Mapping[Cell, int] | None) -> int:
    if tie_break_costs is None:
        return UNREACHABLE_COST
    return tie_break_costs.get(cell, UNREACHABLE_COST)


def _check_adjacent(cell: Cell, neighbor: object) -> None:
    if not isinstance(neighbor, Cell) or cell.manhattan_distance(neighbor) != 1:
        raise GridContractError(f"Classifier returned {neighbor!r} as a neighbour of {cell}")

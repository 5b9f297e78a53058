"""
Unreachable-set finder: what the exit search missed, and where to send it.

After the strict pass, walkable cells split into those with an exit path and
those without. Cells without one fall back to the nearest conditional
obstacle, so every conditional obstacle cell becomes a source of the relaxed
pass.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Mapping

from flowfield.core.grid import Cell, GridClassifier
from flowfield.field import UNREACHABLE_COST
from flowfield.pathing.dijkstra import STEP_COST

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnreachableSet:
    """
    Partition of the walkable area after the strict pass.

    Attributes:
        unreached: Walkable cells with no strict-pass cost.
        fallback_sources: Walkable conditional-obstacle cells, sorted.
    """

    unreached: frozenset[Cell] = frozenset()
    fallback_sources: list[Cell] = field(default_factory=list)


def find_unreached(grid: GridClassifier, strict_costs: Mapping[Cell, int]) -> UnreachableSet:
    """Scan every walkable cell once."""
    unreached: set[Cell] = set()
    fallback: list[Cell] = []

    for cell in grid.walkable_cells():
        if cell not in strict_costs:
            logger.debug("Cell %s cannot reach any exit", cell)
            unreached.add(cell)
        if grid.is_conditional(cell):
            fallback.append(cell)

    fallback.sort()
    logger.info(
        "Found %d cells without exit path and %d conditional obstacle cells",
        len(unreached),
        len(fallback),
    )
    return UnreachableSet(frozenset(unreached), fallback)


def breach_costs(
    grid: GridClassifier,
    fallback_sources: list[Cell],
    strict_costs: Mapping[Cell, int],
) -> dict[Cell, int]:
    """
    Tie-break map for the relaxed pass.

    Starts from the strict cost map and gives every fallback source its exit
    distance if the obstacles between it and the strict-reached area were
    broken: a search that starts on the strict-reached cells bordering the
    sources and spreads through conditional cells only. Walls several tiles
    thick are ranked by their far side's distance through the wall. A source
    with no conditional route to a strict-reached cell gets no entry and so
    ranks last.
    """
    ranks = dict(strict_costs)
    breachable = {cell for cell in fallback_sources if cell not in strict_costs}

    frontier: list[tuple[int, Cell]] = []
    for cell in breachable:
        for n in grid.neighbors(cell):
            if n in strict_costs:
                heapq.heappush(frontier, (strict_costs[n], n))

    while frontier:
        cost, cell = heapq.heappop(frontier)
        if cost > ranks[cell]:
            continue
        for n in grid.neighbors(cell):
            if n not in breachable:
                continue
            new_cost = cost + STEP_COST
            if new_cost < ranks.get(n, UNREACHABLE_COST):
                ranks[n] = new_cost
                heapq.heappush(frontier, (new_cost, n))

    logger.debug("Ranked %d of %d breachable cells", len(ranks) - len(strict_costs), len(breachable))
    return ranks

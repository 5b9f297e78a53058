"""
Field combiner: merge the strict and relaxed passes into one flow field.

Priority per cell:
1. reached by the strict pass -> REACHES_GOAL
2. not reached strictly, reached by the relaxed pass -> REACHES_FALLBACK
3. otherwise -> BLOCKED
"""

from __future__ import annotations

from typing import AbstractSet

from flowfield.core.grid import Cell, GridClassifier
from flowfield.field import BLOCKED_NODE, FieldNode, FieldStatus
from flowfield.pathing.dijkstra import PassResult


def combine_fields(
    grid: GridClassifier,
    strict: PassResult,
    relaxed: PassResult,
    unreached: AbstractSet[Cell],
) -> dict[Cell, FieldNode]:
    """Build the per-cell node map. Covers every processed and every unreached cell."""
    nodes: dict[Cell, FieldNode] = {}

    for cell in sorted(strict.costs.keys() | relaxed.costs.keys()):
        if not grid.is_walkable(cell):
            continue

        if cell in strict.costs:
            nodes[cell] = _node_from(cell, strict, FieldStatus.REACHES_GOAL)
        elif cell in unreached and cell in relaxed.costs:
            nodes[cell] = _node_from(cell, relaxed, FieldStatus.REACHES_FALLBACK)
        else:
            nodes[cell] = BLOCKED_NODE

    # Walkable cells neither pass touched still need an entry
    for cell in unreached:
        nodes.setdefault(cell, BLOCKED_NODE)

    return nodes


def _node_from(cell: Cell, result: PassResult, status: FieldStatus) -> FieldNode:
    offset = result.predecessors[cell] - cell
    return FieldNode(offset, result.costs[cell], status)

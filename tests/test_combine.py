"""Tests for merging the two passes into field nodes."""

from flowfield.core.grid import AvoidanceMode, Cell
from flowfield.field import BLOCKED_NODE, FieldStatus
from flowfield.pathing.combine import combine_fields
from flowfield.pathing.dijkstra import compute_costs
from flowfield.pathing.reachability import breach_costs, find_unreached
from tests.helpers import grid_from_rows


def combine(rows):
    grid, goals = grid_from_rows(rows)
    strict = compute_costs(grid, goals, AvoidanceMode.STRICT)
    partition = find_unreached(grid, strict.costs)
    ranks = breach_costs(grid, partition.fallback_sources, strict.costs)
    relaxed = compute_costs(grid, partition.fallback_sources, AvoidanceMode.RELAXED, ranks)
    return combine_fields(grid, strict, relaxed, partition.unreached)


def test_goal_side_fallback_side_and_blocked_cells():
    nodes = combine([
        "E..",
        "#+#",
        "...",
    ])

    assert nodes[Cell(0, 0)].status is FieldStatus.REACHES_GOAL
    assert nodes[Cell(0, 0)].cost == 0
    assert nodes[Cell(2, 0)].predecessor_offset == Cell(-1, 0)

    gate = nodes[Cell(1, 1)]
    assert gate.status is FieldStatus.REACHES_FALLBACK
    assert gate.cost == 0

    assert nodes[Cell(1, 2)].predecessor_offset == Cell(0, -1)
    assert nodes[Cell(0, 2)].cost == 2
    assert nodes[Cell(0, 2)].predecessor_offset == Cell(1, 0)

    assert nodes[Cell(0, 1)] is BLOCKED_NODE
    assert nodes[Cell(2, 1)] is BLOCKED_NODE


def test_strict_result_wins_over_relaxed():
    nodes = combine([
        "E.+..",
    ])
    # (1, 0) sits one step from both the exit and the obstacle
    assert nodes[Cell(1, 0)].status is FieldStatus.REACHES_GOAL
    assert nodes[Cell(1, 0)].predecessor_offset == Cell(-1, 0)
    assert nodes[Cell(3, 0)].status is FieldStatus.REACHES_FALLBACK
    assert nodes[Cell(3, 0)].predecessor_offset == Cell(-1, 0)


def test_isolated_pocket_is_blocked_and_covered():
    nodes = combine([
        "E.#.",
    ])
    assert nodes[Cell(3, 0)] is BLOCKED_NODE
    assert set(nodes) == {Cell(0, 0), Cell(1, 0), Cell(2, 0), Cell(3, 0)}


def test_void_cells_have_no_node():
    nodes = combine(["E. ."])
    assert Cell(2, 0) not in nodes
    assert nodes[Cell(3, 0)] is BLOCKED_NODE

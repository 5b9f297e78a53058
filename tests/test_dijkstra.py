"""Tests for the multi-source shortest-path pass."""

from collections import deque

import numpy as np
import pytest

from flowfield.core.grid import AvoidanceMode, Cell, GridContractError, LayeredGrid, TileLayer
from flowfield.field import UNREACHABLE_COST
from flowfield.pathing.dijkstra import compute_costs
from tests.helpers import grid_from_rows


def random_grid(seed, width=14, height=11, wall_ratio=0.25):
    rng = np.random.default_rng(seed)
    ground = TileLayer("ground", width, height, fill=True)
    permanent = TileLayer.from_mask("permanent", rng.random((height, width)) < wall_ratio)
    return LayeredGrid(ground, [permanent], [])


def bfs_costs(grid, sources):
    costs = {s: 0 for s in sources}
    queue = deque(sources)
    while queue:
        cell = queue.popleft()
        for n in grid.neighbors(cell):
            if n in costs or not grid.is_free(n):
                continue
            costs[n] = costs[cell] + 1
            queue.append(n)
    return costs


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_costs_match_breadth_first_search(seed):
    grid = random_grid(seed)
    free = [c for c in grid.walkable_cells() if grid.is_free(c)]
    sources = [free[0], free[len(free) // 2], free[-1]]

    result = compute_costs(grid, sources, AvoidanceMode.STRICT)

    assert result.costs == bfs_costs(grid, sources)


@pytest.mark.parametrize("seed", [3, 11])
def test_predecessors_step_down_by_one(seed):
    grid = random_grid(seed)
    free = [c for c in grid.walkable_cells() if grid.is_free(c)]
    result = compute_costs(grid, [free[0]], AvoidanceMode.STRICT)

    for cell, cost in result.costs.items():
        pred = result.predecessors[cell]
        if cost == 0:
            assert pred == cell
        else:
            assert cell.manhattan_distance(pred) == 1
            assert result.costs[pred] == cost - 1


def test_strict_stops_at_conditional_relaxed_walks_through():
    grid, goals = grid_from_rows(["E+."])

    strict = compute_costs(grid, goals, AvoidanceMode.STRICT)
    relaxed = compute_costs(grid, goals, AvoidanceMode.RELAXED)

    assert Cell(1, 0) not in strict
    assert Cell(2, 0) not in strict
    assert relaxed.costs[Cell(2, 0)] == 2


def test_permanent_blocks_both_modes():
    grid, goals = grid_from_rows(["E#."])
    for mode in AvoidanceMode:
        assert Cell(2, 0) not in compute_costs(grid, goals, mode)


def test_unwalkable_and_duplicate_sources_are_skipped():
    grid, _ = grid_from_rows([".. ."])

    result = compute_costs(grid, [Cell(2, 0), Cell(9, 9)], AvoidanceMode.STRICT)
    assert len(result) == 0
    assert result.expanded == 0

    result = compute_costs(grid, [Cell(0, 0), Cell(0, 0)], AvoidanceMode.STRICT)
    assert result.costs == {Cell(0, 0): 0, Cell(1, 0): 1}


def test_no_sources_gives_empty_result():
    grid, _ = grid_from_rows(["..."])
    assert len(compute_costs(grid, [], AvoidanceMode.RELAXED)) == 0


def test_source_on_obstacle_is_still_seeded():
    grid, _ = grid_from_rows(["+.."])
    result = compute_costs(grid, [Cell(0, 0)], AvoidanceMode.STRICT)
    assert result.costs == {Cell(0, 0): 0, Cell(1, 0): 1, Cell(2, 0): 2}


def test_equal_cost_ties_follow_lower_rank():
    grid, _ = grid_from_rows(["....."])
    left, right = Cell(0, 0), Cell(4, 0)

    unranked = compute_costs(grid, [left, right], AvoidanceMode.RELAXED)
    assert unranked.ranks[left] == UNREACHABLE_COST
    assert unranked.predecessors[Cell(2, 0)] == Cell(1, 0)

    ranked = compute_costs(grid, [left, right], AvoidanceMode.RELAXED, {left: 5, right: 2})
    assert ranked.costs[Cell(2, 0)] == 2
    assert ranked.predecessors[Cell(2, 0)] == Cell(3, 0)
    assert ranked.ranks[Cell(2, 0)] == 2


def test_rank_never_beats_lower_cost():
    grid, _ = grid_from_rows(["......"])
    near, far = Cell(0, 0), Cell(5, 0)

    result = compute_costs(grid, [near, far], AvoidanceMode.RELAXED, {near: 100, far: 0})

    assert result.costs[Cell(1, 0)] == 1
    assert result.predecessors[Cell(1, 0)] == near


class DiagonalGrid(LayeredGrid):
    def neighbors(self, cell):
        return [cell + Cell(1, 1)]


def test_non_cardinal_neighbor_breaks_contract():
    grid = DiagonalGrid(TileLayer("ground", 3, 3, fill=True))
    with pytest.raises(GridContractError):
        compute_costs(grid, [Cell(0, 0)], AvoidanceMode.STRICT)

"""Tests for structure placement and the recomputes it triggers."""

import pytest

from flowfield.core.grid import Cell
from flowfield.engine import FlowFieldEngine
from flowfield.editing import StructurePlacer
from flowfield.field import FieldStatus
from tests.helpers import grid_from_rows

CORRIDOR = [
    "E.....",
    "####..",
    "......",
]


def make_placer(rows=CORRIDOR, footprint=(2, 2)):
    grid, goals = grid_from_rows(rows)
    engine = FlowFieldEngine(grid, goals)
    changes = []
    placer = StructurePlacer(
        grid,
        grid.conditional_layers[0],
        on_change=lambda: changes.append(engine.recompute()),
        footprint=footprint,
    )
    return placer, engine, changes


def test_place_writes_footprint_and_notifies():
    placer, engine, changes = make_placer()

    assert placer.can_place(Cell(4, 0))
    assert placer.place(Cell(4, 0)) is True

    layer = placer.layer
    assert all(layer.has_tile(c) for c in [Cell(4, 0), Cell(5, 0), Cell(4, 1), Cell(5, 1)])
    assert placer.structures == {Cell(4, 0): placer.footprint_cells(Cell(4, 0))}
    assert len(changes) == 1


def test_place_rejects_blocked_or_offgrid_area():
    placer, _, changes = make_placer()

    assert placer.place(Cell(2, 0)) is False  # overlaps permanent wall
    assert placer.place(Cell(5, 0)) is False  # runs off the east edge
    placer.place(Cell(4, 0))
    assert placer.place(Cell(3, 0)) is False  # overlaps the first structure
    assert len(changes) == 1


def test_placement_reroutes_and_removal_restores():
    placer, engine, _ = make_placer()
    before = engine.recompute()
    assert engine.get_node(Cell(0, 2)).status is FieldStatus.REACHES_GOAL

    placer.place(Cell(4, 0))
    far = engine.get_node(Cell(0, 2))
    assert far.status is FieldStatus.REACHES_FALLBACK
    assert engine.field.trace(Cell(0, 2))[-1] in placer.footprint_cells(Cell(4, 0))

    assert placer.remove(Cell(4, 0)) is True
    assert engine.field == before
    assert placer.remove(Cell(4, 0)) is False


def test_destroying_one_tile_reopens_the_path():
    placer, engine, _ = make_placer(footprint=(2, 1))
    placer.place(Cell(4, 1))
    assert engine.get_node(Cell(0, 2)).status is FieldStatus.REACHES_FALLBACK

    assert placer.destroy_cell(Cell(5, 1)) is True
    assert placer.structures == {}
    assert placer.layer.has_tile(Cell(4, 1))
    assert engine.get_node(Cell(0, 2)).status is FieldStatus.REACHES_GOAL
    assert engine.get_node(Cell(0, 2)).cost == 12

    assert placer.destroy_cell(Cell(5, 1)) is False


def test_footprint_must_be_positive():
    grid, _ = grid_from_rows(CORRIDOR)
    with pytest.raises(ValueError):
        StructurePlacer(grid, grid.conditional_layers[0], footprint=(0, 2))

"""Tests for the host clock and the tick-driven field scheduler."""

import pytest

from flowfield.core.clock import Clock
from flowfield.core.grid import Cell
from flowfield.engine import EngineState, FlowFieldEngine
from flowfield.field import FieldStatus
from flowfield.host.scheduler import FieldScheduler
from tests.helpers import grid_from_rows

GATED = [
    "E....",
    "##+##",
    ".....",
]


def test_clock_fires_callbacks_in_tick_order():
    clock = Clock()
    calls = []
    clock.schedule(2, "late", lambda: calls.append("late"))
    clock.schedule(1, "early", lambda: calls.append("early"))
    clock.schedule(1, "early-2", lambda: calls.append("early-2"))

    assert clock.advance() == ["early", "early-2"]
    assert clock.advance() == ["late"]
    assert clock.advance() == []
    assert calls == ["early", "early-2", "late"]
    assert clock.pending == 0


def test_clock_recurring_and_limits():
    clock = Clock(max_ticks=5)
    hits = []
    clock.schedule(1, "pulse", lambda: hits.append(clock.tick), recurring=2)

    while not clock.is_done:
        clock.advance()

    assert hits == [1, 3, 5]
    assert clock.pending == 1

    with pytest.raises(ValueError):
        clock.schedule(1, "bad", lambda: None, recurring=0)

    clock.reset()
    assert clock.tick == 0
    assert clock.pending == 0


def test_overdue_callbacks_fire_on_next_advance():
    clock = Clock()
    clock.advance()
    clock.advance()
    fired = []
    clock.schedule(1, "overdue", lambda: fired.append(True))
    assert clock.advance() == ["overdue"]
    assert fired == [True]


def test_cancel_drops_named_callbacks():
    clock = Clock()
    clock.schedule(4, "tower", lambda: None)
    clock.schedule(2, "wall", lambda: None)
    clock.schedule(6, "tower", lambda: None)
    assert clock.next_due == 2

    assert clock.cancel("tower") == 2
    assert clock.cancel("tower") == 0
    assert clock.pending == 1
    assert clock.advance() == []
    assert clock.advance() == ["wall"]
    assert clock.next_due is None


def test_init_computes_first_generation():
    grid, goals = grid_from_rows(GATED)
    scheduler = FieldScheduler(FlowFieldEngine(grid, goals))

    assert scheduler.init() is True
    assert scheduler.engine.state is EngineState.READY
    assert scheduler.recompute_count == 1


def test_init_without_goals_returns_false():
    grid, _ = grid_from_rows(GATED)
    scheduler = FieldScheduler(FlowFieldEngine(grid, []))

    assert scheduler.init() is False
    assert scheduler.engine.state is EngineState.UNINITIALIZED


def test_edits_in_one_tick_share_one_recompute():
    grid, goals = grid_from_rows(GATED)
    engine = FlowFieldEngine(grid, goals)
    scheduler = FieldScheduler(engine)
    scheduler.init()
    conditional = grid.conditional_layers[0]

    def open_gate():
        conditional.clear_tile(Cell(2, 1))
        scheduler.mark_dirty()

    def noop_edit():
        scheduler.mark_dirty()

    scheduler.schedule(2, "open gate", open_gate)
    scheduler.schedule(2, "noop", noop_edit)

    first = scheduler.tick()
    assert first.recomputed is False
    assert first.events_fired == []

    second = scheduler.tick()
    assert second.events_fired == ["open gate", "noop"]
    assert second.recomputed is True
    assert second.generation == engine.field.generation
    assert scheduler.recompute_count == 2
    assert not scheduler.dirty
    assert engine.get_node(Cell(0, 2)).status is FieldStatus.REACHES_GOAL


def test_failed_recompute_is_reported_not_raised():
    grid, goals = grid_from_rows(GATED)
    engine = FlowFieldEngine(grid, goals)
    scheduler = FieldScheduler(engine)
    scheduler.init()

    goals.clear()
    scheduler.mark_dirty()
    report = scheduler.tick()

    assert report.recomputed is False
    assert "no exit cells" in report.error
    assert engine.state is EngineState.UNINITIALIZED


def test_run_initializes_and_ticks():
    grid, goals = grid_from_rows(GATED)
    scheduler = FieldScheduler(FlowFieldEngine(grid, goals), Clock())

    reports = scheduler.run(3)

    assert [r.tick for r in reports] == [1, 2, 3]
    assert scheduler.recompute_count == 1

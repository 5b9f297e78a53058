"""
Level loader: reads YAML level files and builds the runtime objects.

A level YAML defines:

* **level.map**: optional ASCII map, one character per cell, row 0 at
  ``origin.y``. Glyphs: ``.`` ground, ``#`` permanent obstacle, ``+``
  conditional obstacle, ``E`` exit, space or ``~`` void.
* **level.width / level.height**: all-ground rectangle when no map is given
* **level.features**: ``rect`` / ``pos`` patches onto a named layer
* **level.cell_size**: world units per cell (default 1.0)
* **level.exits**: extra exits as ``pos``, ``rect`` or world-space ``world``
  entries; ``world`` points are floored to the cell containing them
* **level.structure_footprint**: size of placeable structures
* **events**: scripted ``place`` / ``remove`` / ``destroy`` edits at a tick,
  repeated every ``every`` ticks when given
* **simulation.ticks**: how long ``simulate`` runs by default
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from flowfield.core.clock import Clock
from flowfield.core.grid import Cell, LayeredGrid, TileLayer, rect_cells
from flowfield.editing import StructurePlacer
from flowfield.engine import FlowFieldEngine
from flowfield.host.scheduler import FieldScheduler

logger = logging.getLogger(__name__)

GROUND = "."
PERMANENT = "#"
CONDITIONAL = "+"
EXIT = "E"
VOID = (" ", "~")

LAYER_NAMES = ("ground", "void", "permanent", "conditional")
EDIT_ACTIONS = ("place", "remove", "destroy")


class LevelFormatError(ValueError):
    """A level file is malformed."""


# ── Data structures ──────────────────────────────────────────────


@dataclass
class EditEvent:
    """A scripted level edit."""

    tick: int
    action: str  # place | remove | destroy
    at: Cell
    name: str = ""
    every: int | None = None  # repeat interval in ticks


@dataclass
class LevelConfig:
    """Fully-parsed level file."""

    name: str = "level"
    origin: Cell = Cell(0, 0)
    cell_size: float = 1.0
    map_rows: list[str] | None = None
    width: int = 10
    height: int = 10
    features: list[dict[str, Any]] = field(default_factory=list)
    exits: list[Cell] = field(default_factory=list)
    footprint: tuple[int, int] = (2, 2)
    events: list[EditEvent] = field(default_factory=list)
    ticks: int = 20


@dataclass
class Level:
    """Layers, classifier and goals built from a LevelConfig."""

    name: str
    ground: TileLayer
    permanent: TileLayer
    conditional: TileLayer
    grid: LayeredGrid
    goals: list[Cell]
    footprint: tuple[int, int] = (2, 2)


@dataclass
class Runtime:
    """Everything a host needs to drive a level."""

    config: LevelConfig
    level: Level
    engine: FlowFieldEngine
    scheduler: FieldScheduler
    placer: StructurePlacer


# ── YAML parsing helpers ─────────────────────────────────────────


def _mapping(d: Any, where: str) -> dict[str, Any]:
    if not isinstance(d, dict):
        raise LevelFormatError(f"Expected a mapping in {where}, got {d!r}")
    return d


def _require(d: Any, key: str, where: str) -> Any:
    if key not in _mapping(d, where):
        raise LevelFormatError(f"Missing '{key}' in {where}")
    return d[key]


def _parse_cell(d: Any, where: str) -> Cell:
    return Cell(int(_require(d, "x", where)), int(_require(d, "y", where)))


def _parse_rect(d: dict[str, Any], where: str) -> list[Cell]:
    x, y = int(_require(d, "x", where)), int(_require(d, "y", where))
    w, h = int(_require(d, "w", where)), int(_require(d, "h", where))
    return rect_cells(x, y, w, h)


def _patch_cells(d: dict[str, Any], where: str, cell_size: float = 1.0) -> list[Cell]:
    """Cells named by a ``pos``, ``rect`` or world-space ``world`` entry."""
    _mapping(d, where)
    if "world" in d:
        point, at = d["world"], f"{where}.world"
        return [Cell.from_world(float(_require(point, "x", at)), float(_require(point, "y", at)), cell_size)]
    if "rect" in d:
        return _parse_rect(d["rect"], f"{where}.rect")
    if "pos" in d:
        return [_parse_cell(d["pos"], f"{where}.pos")]
    raise LevelFormatError(f"{where} needs a 'pos', 'rect' or 'world'")


def _parse_map(text: str) -> list[str]:
    rows = text.splitlines()
    while rows and not rows[-1].strip():
        rows.pop()
    if not rows:
        raise LevelFormatError("level.map is empty")
    return rows


def _parse_event(d: dict[str, Any], index: int) -> EditEvent:
    where = f"events[{index}]"
    action = str(_require(d, "action", where)).lower()
    if action not in EDIT_ACTIONS:
        raise LevelFormatError(f"{where}.action must be one of {EDIT_ACTIONS}, got {action!r}")
    tick = int(_require(d, "tick", where))
    at = _parse_cell(_require(d, "at", where), f"{where}.at")
    every = int(d["every"]) if d.get("every") is not None else None
    if every is not None and every <= 0:
        raise LevelFormatError(f"{where}.every must be positive, got {every}")
    name = d.get("name", f"{action}@{at.x},{at.y}")
    return EditEvent(tick=tick, action=action, at=at, name=name, every=every)


# ── Main loader ──────────────────────────────────────────────────


def parse_level(raw: dict[str, Any], default_name: str = "level") -> LevelConfig:
    """Turn a loaded YAML document into a LevelConfig."""
    level_sec = raw.get("level")
    if not isinstance(level_sec, dict):
        raise LevelFormatError("Missing 'level' section")

    origin = _parse_cell(level_sec["origin"], "level.origin") if "origin" in level_sec else Cell(0, 0)
    map_rows = _parse_map(str(level_sec["map"])) if "map" in level_sec else None
    if map_rows is not None:
        width = max(len(row) for row in map_rows)
        height = len(map_rows)
    else:
        width = int(level_sec.get("width", 10))
        height = int(level_sec.get("height", 10))

    features = list(level_sec.get("features", []) or [])
    for i, feat in enumerate(features):
        layer = str(_require(feat, "layer", f"level.features[{i}]")).lower()
        if layer not in LAYER_NAMES:
            raise LevelFormatError(f"level.features[{i}].layer must be one of {LAYER_NAMES}, got {layer!r}")

    cell_size = float(level_sec.get("cell_size", 1.0))
    if cell_size <= 0:
        raise LevelFormatError(f"level.cell_size must be positive, got {cell_size}")

    exits: list[Cell] = []
    for i, ed in enumerate(level_sec.get("exits", []) or []):
        exits.extend(_patch_cells(ed, f"level.exits[{i}]", cell_size))

    fp = _mapping(level_sec.get("structure_footprint", {"w": 2, "h": 2}), "level.structure_footprint")
    footprint = (int(fp.get("w", 2)), int(fp.get("h", 2)))

    events = [_parse_event(ed, i) for i, ed in enumerate(raw.get("events", []) or [])]
    sim_sec = _mapping(raw.get("simulation", {}) or {}, "simulation")
    ticks = int(sim_sec.get("ticks", 20))
    if ticks <= 0:
        raise LevelFormatError(f"simulation.ticks must be positive, got {ticks}")

    return LevelConfig(
        name=str(level_sec.get("name", default_name)),
        origin=origin,
        cell_size=cell_size,
        map_rows=map_rows,
        width=width,
        height=height,
        features=features,
        exits=exits,
        footprint=footprint,
        events=events,
        ticks=ticks,
    )


def load_level(path: str | Path) -> LevelConfig:
    """Load a YAML level file."""
    path = Path(path)
    with open(path) as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise LevelFormatError(f"{path} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise LevelFormatError(f"{path} does not contain a mapping")
    config = parse_level(raw, default_name=path.stem)
    logger.info(
        "Loaded level '%s': %dx%d, %d extra exits, %d features, %d events",
        config.name,
        config.width,
        config.height,
        len(config.exits),
        len(config.features),
        len(config.events),
    )
    return config


# ── Builders ─────────────────────────────────────────────────────


def build_level(config: LevelConfig) -> Level:
    """Materialize layers and goals."""
    origin = config.origin
    has_map = config.map_rows is not None
    ground = TileLayer("ground", config.width, config.height, origin, fill=not has_map)
    permanent = TileLayer("permanent", config.width, config.height, origin)
    conditional = TileLayer("conditional", config.width, config.height, origin)
    goals: list[Cell] = []

    for row_index, row in enumerate(config.map_rows or []):
        for col_index, glyph in enumerate(row):
            cell = Cell(origin.x + col_index, origin.y + row_index)
            if glyph in VOID:
                continue
            if glyph not in (GROUND, PERMANENT, CONDITIONAL, EXIT):
                raise LevelFormatError(f"Unknown map glyph {glyph!r} at {cell}")
            ground.set_tile(cell)
            if glyph == PERMANENT:
                permanent.set_tile(cell)
            elif glyph == CONDITIONAL:
                conditional.set_tile(cell)
            elif glyph == EXIT:
                goals.append(cell)

    layers = {"ground": ground, "permanent": permanent, "conditional": conditional}
    for i, feat in enumerate(config.features):
        name = str(feat["layer"]).lower()
        target = ground if name == "void" else layers[name]
        for cell in _patch_cells(feat, f"level.features[{i}]"):
            if target.in_bounds(cell):
                target.set_tile(cell, name != "void")

    for cell in config.exits:
        if cell not in goals:
            goals.append(cell)

    grid = LayeredGrid(ground, [permanent], [conditional])
    return Level(
        name=config.name,
        ground=ground,
        permanent=permanent,
        conditional=conditional,
        grid=grid,
        goals=goals,
        footprint=config.footprint,
    )


def build_engine(level: Level) -> FlowFieldEngine:
    return FlowFieldEngine(level.grid, level.goals)


def build_runtime(config: LevelConfig) -> Runtime:
    """
    Wire a level, its engine, a scheduler and a structure placer.

    Scripted edits are registered on the scheduler's clock; every successful
    edit marks the field dirty.
    """
    level = build_level(config)
    engine = build_engine(level)
    scheduler = FieldScheduler(engine, Clock(max_ticks=config.ticks))
    placer = StructurePlacer(
        level.grid, level.conditional, on_change=scheduler.mark_dirty, footprint=level.footprint
    )

    for event in config.events:
        scheduler.schedule(event.tick, event.name, _edit_callback(placer, event), recurring=event.every)

    return Runtime(config=config, level=level, engine=engine, scheduler=scheduler, placer=placer)


def _edit_callback(placer: StructurePlacer, event: EditEvent):
    def action(_placer=placer, _event=event) -> None:
        if _event.action == "place":
            _placer.place(_event.at)
        elif _event.action == "remove":
            _placer.remove(_event.at)
        else:
            _placer.destroy_cell(_event.at)

    return action

"""
Tile grid: the spatial substrate the flow field is computed over.

A level is a stack of boolean tile layers sharing one coordinate system:

- ground: which cells are walkable at all
- permanent obstacle layers: walls, cliffs, anything that never goes away
- conditional obstacle layers: structures that block the exit search but can
  be broken through when no exit is reachable

Design principles:
- NumPy boolean masks per layer, with an integer origin so offset or negative
  tile coordinates (as exported by tile-map editors) are representable
- Cells are plain value objects; nothing is materialized per cell
- The classifier only answers questions, it never mutates a layer
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Protocol, Sequence

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True, slots=True, order=True)
class Cell:
    """Integer grid coordinate. Ordered by (x, y)."""

    x: int
    y: int

    def __add__(self, other: Cell) -> Cell:
        return Cell(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Cell) -> Cell:
        return Cell(self.x - other.x, self.y - other.y)

    def manhattan_distance(self, other: Cell) -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)

    @classmethod
    def from_world(cls, x: float, y: float, cell_size: float = 1.0) -> Cell:
        """Cell containing a world-space point (floor division by cell size)."""
        return cls(math.floor(x / cell_size), math.floor(y / cell_size))


# 4-connected neighborhood offsets (Von Neumann neighborhood)
VON_NEUMANN_OFFSETS: list[Cell] = [
    Cell(0, -1),
    Cell(-1, 0), Cell(1, 0),
    Cell(0, 1),
]

ZERO_OFFSET = Cell(0, 0)


class AvoidanceMode(enum.Enum):
    """Which obstacle classes block movement during a search pass."""

    STRICT = "strict"  # permanent and conditional obstacles both block
    RELAXED = "relaxed"  # only permanent obstacles block


class GridContractError(RuntimeError):
    """Raised when a classifier hands back data that breaks its contract."""


class GridClassifier(Protocol):
    """What the engine needs to know about a level. Must be side-effect free."""

    def is_walkable(self, cell: Cell) -> bool: ...

    def is_blocked(self, cell: Cell, mode: AvoidanceMode) -> bool: ...

    def is_conditional(self, cell: Cell) -> bool: ...

    def neighbors(self, cell: Cell) -> list[Cell]: ...

    def walkable_cells(self) -> Iterable[Cell]: ...


class TileLayer:
    """
    A named boolean tile mask over a rectangular window of the grid.

    Cells outside the window simply have no tile. Inspired by the PropertyLayer
    pattern, but holding presence flags rather than float values.
    """

    def __init__(
        self,
        name: str,
        width: int,
        height: int,
        origin: Cell = ZERO_OFFSET,
        fill: bool = False,
    ):
        if width < 0 or height < 0:
            raise ValueError(f"Layer '{name}' has negative size {width}x{height}")
        self.name = name
        self.width = width
        self.height = height
        self.origin = origin
        self.data: NDArray[np.bool_] = np.full((height, width), fill, dtype=np.bool_)

    @classmethod
    def from_mask(
        cls, name: str, mask: NDArray[np.bool_], origin: Cell = ZERO_OFFSET
    ) -> TileLayer:
        """Wrap an existing (height, width) mask. The mask is copied."""
        mask = np.asarray(mask, dtype=np.bool_)
        if mask.ndim != 2:
            raise ValueError(f"Layer '{name}' mask must be 2D, got shape {mask.shape}")
        layer = cls(name, mask.shape[1], mask.shape[0], origin)
        layer.data[:] = mask
        return layer

    # ── Bounds ───────────────────────────────────────────────────────

    def in_bounds(self, cell: Cell) -> bool:
        lx = cell.x - self.origin.x
        ly = cell.y - self.origin.y
        return 0 <= lx < self.width and 0 <= ly < self.height

    def bounds(self) -> tuple[int, int, int, int]:
        """(x_min, y_min, x_max, y_max), max exclusive."""
        return (
            self.origin.x,
            self.origin.y,
            self.origin.x + self.width,
            self.origin.y + self.height,
        )

    # ── Tile access ──────────────────────────────────────────────────

    def has_tile(self, cell: Cell) -> bool:
        if not self.in_bounds(cell):
            return False
        return bool(self.data[cell.y - self.origin.y, cell.x - self.origin.x])

    def set_tile(self, cell: Cell, present: bool = True) -> None:
        if not self.in_bounds(cell):
            raise ValueError(f"{cell} is outside layer '{self.name}' bounds {self.bounds()}")
        self.data[cell.y - self.origin.y, cell.x - self.origin.x] = present

    def clear_tile(self, cell: Cell) -> None:
        if self.in_bounds(cell):
            self.set_tile(cell, False)

    def fill_rect(self, x: int, y: int, w: int, h: int, present: bool = True) -> None:
        """Set tiles for a rectangular region, clipped to the layer."""
        for dy in range(h):
            for dx in range(w):
                cell = Cell(x + dx, y + dy)
                if self.in_bounds(cell):
                    self.set_tile(cell, present)

    def cells(self) -> Iterator[Cell]:
        """Cells carrying a tile, in row-major (y, then x) order."""
        for ly, lx in np.argwhere(self.data):
            yield Cell(int(lx) + self.origin.x, int(ly) + self.origin.y)

    def copy(self) -> TileLayer:
        return TileLayer.from_mask(self.name, self.data, self.origin)

    def __len__(self) -> int:
        return int(np.count_nonzero(self.data))

    def __repr__(self) -> str:
        return f"TileLayer({self.name!r}, {self.width}x{self.height} @ {self.origin.as_tuple()}, tiles={len(self)})"


class LayeredGrid:
    """
    Grid classifier over a ground layer plus two tiers of obstacle layers.

    The layer lists are held by reference: a host that edits a layer, or adds
    one to either list, is seen by the next recomputation without rewiring.
    """

    def __init__(
        self,
        ground: TileLayer,
        permanent_layers: list[TileLayer] | None = None,
        conditional_layers: list[TileLayer] | None = None,
    ):
        self.ground = ground
        self.permanent_layers = permanent_layers if permanent_layers is not None else []
        self.conditional_layers = conditional_layers if conditional_layers is not None else []

    # ── Classification ───────────────────────────────────────────────

    def is_walkable(self, cell: Cell) -> bool:
        return self.ground.has_tile(cell)

    def is_permanent(self, cell: Cell) -> bool:
        return any(layer.has_tile(cell) for layer in self.permanent_layers)

    def is_conditional(self, cell: Cell) -> bool:
        return any(layer.has_tile(cell) for layer in self.conditional_layers)

    def is_blocked(self, cell: Cell, mode: AvoidanceMode) -> bool:
        if self.is_permanent(cell):
            return True
        if mode is AvoidanceMode.STRICT:
            return self.is_conditional(cell)
        return False

    def is_free(self, cell: Cell) -> bool:
        """Walkable and carrying no obstacle of either class."""
        return self.is_walkable(cell) and not self.is_blocked(cell, AvoidanceMode.STRICT)

    # ── Topology ─────────────────────────────────────────────────────

    def neighbors(self, cell: Cell) -> list[Cell]:
        return [cell + off for off in VON_NEUMANN_OFFSETS]

    def walkable_cells(self) -> Iterator[Cell]:
        return self.ground.cells()

    def bounds(self) -> tuple[int, int, int, int]:
        return self.ground.bounds()

    def snapshot(self) -> LayeredGrid:
        """Deep copy of every layer, for reads that must not see later edits."""
        return LayeredGrid(
            self.ground.copy(),
            [layer.copy() for layer in self.permanent_layers],
            [layer.copy() for layer in self.conditional_layers],
        )

    def __repr__(self) -> str:
        return (
            f"LayeredGrid(ground={self.ground!r}, "
            f"permanent={len(self.permanent_layers)}, conditional={len(self.conditional_layers)})"
        )


def rect_cells(x: int, y: int, w: int, h: int) -> list[Cell]:
    """All cells of a w x h rectangle anchored at its minimum corner."""
    return [Cell(x + dx, y + dy) for dy in range(h) for dx in range(w)]


def as_cell(value: Cell | Sequence[int]) -> Cell:
    """Coerce an (x, y) pair to a Cell."""
    if isinstance(value, Cell):
        return value
    x, y = value
    return Cell(int(x), int(y))

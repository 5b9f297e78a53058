"""
Structure placement: the level-editing side of the flow field.

Structures occupy a rectangular footprint of conditional obstacle tiles.
Placing one can cut exits off; destroying one can open them again. Either way
the placer reports the change through ``on_change`` so the owner can
recompute (directly, through a scheduler, or on a background worker).
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping

from flowfield.core.grid import Cell, LayeredGrid, TileLayer, rect_cells

logger = logging.getLogger(__name__)


class StructurePlacer:
    """
    Places and removes multi-cell structures on one conditional layer.

    Args:
        grid: Level the structures are placed into (used for placement checks).
        layer: Conditional layer the footprints are written to.
        on_change: Called once after every successful edit.
        footprint: (width, height) of a structure; the anchor is its minimum corner.
    """

    def __init__(
        self,
        grid: LayeredGrid,
        layer: TileLayer,
        on_change: Callable[[], object] | None = None,
        footprint: tuple[int, int] = (2, 2),
    ):
        if footprint[0] <= 0 or footprint[1] <= 0:
            raise ValueError(f"Footprint must be positive, got {footprint}")
        self.grid = grid
        self.layer = layer
        self.on_change = on_change
        self.footprint = footprint
        self._structures: dict[Cell, list[Cell]] = {}

    @property
    def structures(self) -> Mapping[Cell, list[Cell]]:
        return dict(self._structures)

    def footprint_cells(self, anchor: Cell) -> list[Cell]:
        w, h = self.footprint
        return rect_cells(anchor.x, anchor.y, w, h)

    def can_place(self, anchor: Cell) -> bool:
        """Every footprint cell is ground, inside the layer and free of obstacles."""
        return all(
            self.grid.is_free(cell) and self.layer.in_bounds(cell)
            for cell in self.footprint_cells(anchor)
        )

    def place(self, anchor: Cell) -> bool:
        if not self.can_place(anchor):
            logger.info("Cannot place structure at %s: area blocked or outside ground", anchor)
            return False
        cells = self.footprint_cells(anchor)
        for cell in cells:
            self.layer.set_tile(cell)
        self._structures[anchor] = cells
        logger.info("Placed structure at %s", anchor)
        self._changed()
        return True

    def remove(self, anchor: Cell) -> bool:
        """Clear a placed structure's whole footprint."""
        cells = self._structures.pop(anchor, None)
        if cells is None:
            return False
        for cell in cells:
            self.layer.clear_tile(cell)
        logger.info("Removed structure at %s", anchor)
        self._changed()
        return True

    def destroy_cell(self, cell: Cell) -> bool:
        """
        Clear one conditional tile, as when a single tile of a structure is
        destroyed. The structure it belonged to is forgotten; its other tiles
        stay.
        """
        if not self.layer.has_tile(cell):
            return False
        self.layer.clear_tile(cell)
        for anchor, cells in list(self._structures.items()):
            if cell in cells:
                del self._structures[anchor]
        logger.info("Destroyed conditional tile at %s", cell)
        self._changed()
        return True

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

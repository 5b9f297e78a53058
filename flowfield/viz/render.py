"""
Flow field rendering: ASCII arrows for terminals, matplotlib for images.

Rows are drawn with y increasing downward, matching the level map layout.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from flowfield.core.grid import Cell, LayeredGrid
from flowfield.field import FieldStatus, FlowField

if TYPE_CHECKING:
    from flowfield.core.grid import TileLayer

ARROWS: dict[tuple[int, int], str] = {
    (0, -1): "^",
    (0, 1): "v",
    (-1, 0): "<",
    (1, 0): ">",
}

GOAL_GLYPH = "E"
FALLBACK_TARGET_GLYPH = "*"
BLOCKED_GLYPH = "x"
PERMANENT_GLYPH = "#"
VOID_GLYPH = " "

STATUS_COLORS = {
    FieldStatus.REACHES_GOAL: "#00A000",  # green
    FieldStatus.REACHES_FALLBACK: "#D4A000",  # yellow
    FieldStatus.BLOCKED: "#C00000",  # red
}


def cell_glyph(flow: FlowField | None, grid: LayeredGrid, cell: Cell) -> str:
    """Single character for ``cell``."""
    if not grid.is_walkable(cell):
        return VOID_GLYPH
    if grid.is_permanent(cell):
        return PERMANENT_GLYPH
    node = flow.get(cell) if flow is not None else None
    if node is None or not node.is_reachable:
        return BLOCKED_GLYPH
    if node.is_target:
        return GOAL_GLYPH if node.status is FieldStatus.REACHES_GOAL else FALLBACK_TARGET_GLYPH
    return ARROWS.get(node.predecessor_offset.as_tuple(), "?")


def render_ascii(flow: FlowField | None, grid: LayeredGrid) -> str:
    """Render the whole ground window as text, one line per row."""
    x0, y0, x1, y1 = grid.bounds()
    lines = []
    for y in range(y0, y1):
        line = "".join(cell_glyph(flow, grid, Cell(x, y)) for x in range(x0, x1))
        lines.append(line.rstrip())
    return "\n".join(lines)


def render_field_matplotlib(
    flow: FlowField,
    ground: "TileLayer",
    title: str = "Flow Field",
    save_path: str | None = None,
):
    """Cost heatmap with one arrow per reachable cell, coloured by status."""
    import matplotlib.pyplot as plt

    arrays = flow.to_arrays()
    fig, ax = plt.subplots(1, 1, figsize=(10, 10))

    # Ground footprint as backdrop
    gx0, gy0, gx1, gy1 = ground.bounds()
    ax.imshow(
        ground.data.astype(np.float64),
        cmap="Greys",
        alpha=0.25,
        origin="upper",
        extent=(gx0 - 0.5, gx1 - 0.5, gy1 - 0.5, gy0 - 0.5),
    )

    if arrays.cost.size:
        ox, oy = arrays.origin.x, arrays.origin.y
        h, w = arrays.cost.shape
        extent = (ox - 0.5, ox + w - 0.5, oy + h - 0.5, oy - 0.5)
        cost_masked = np.ma.masked_invalid(arrays.cost)
        image = ax.imshow(cost_masked, cmap="viridis", alpha=0.6, origin="upper", extent=extent)
        fig.colorbar(image, ax=ax, fraction=0.046, pad=0.04, label="cost")

        for status, color in STATUS_COLORS.items():
            ys, xs = np.nonzero(arrays.status == int(status))
            if len(xs) == 0:
                continue
            u = arrays.dx[ys, xs].astype(np.float64)
            v = arrays.dy[ys, xs].astype(np.float64)
            ax.quiver(
                xs + ox,
                ys + oy,
                u,
                v,  # y axis is inverted below, so data dy already points down-screen
                color=color,
                angles="xy",
                scale_units="xy",
                scale=1.6,
                width=0.004,
                label=status.name.lower(),
            )
        ax.legend(loc="upper right")

    ax.set_title(title)
    ax.set_xlim(gx0 - 0.5, gx1 - 0.5)
    ax.set_ylim(gy1 - 0.5, gy0 - 0.5)

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
    else:
        plt.show()
    return fig

"""Level builders shared by the test modules."""

from flowfield.core.grid import Cell, LayeredGrid, TileLayer


def grid_from_rows(rows):
    """
    Build a LayeredGrid and goal list from ASCII rows.

    ``.`` ground, ``#`` permanent, ``+`` conditional, ``E`` exit, space void.
    Row index is y, column index is x.
    """
    height = len(rows)
    width = max(len(row) for row in rows)
    ground = TileLayer("ground", width, height)
    permanent = TileLayer("permanent", width, height)
    conditional = TileLayer("conditional", width, height)
    goals = []
    for y, row in enumerate(rows):
        for x, glyph in enumerate(row):
            if glyph == " ":
                continue
            cell = Cell(x, y)
            ground.set_tile(cell)
            if glyph == "#":
                permanent.set_tile(cell)
            elif glyph == "+":
                conditional.set_tile(cell)
            elif glyph == "E":
                goals.append(cell)
    return LayeredGrid(ground, [permanent], [conditional]), goals



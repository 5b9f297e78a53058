"""
FLOWFIELD: exit flow fields for grid agents, with a breakable-obstacle fallback.

Every walkable cell gets the next step toward its nearest exit. Cells that
cannot reach any exit are pointed at the nearest conditional obstacle
instead, so agents walk up to a structure and break through it.
"""

from flowfield.core.grid import AvoidanceMode, Cell, LayeredGrid, TileLayer
from flowfield.editing import StructurePlacer
from flowfield.engine import ConfigurationError, EngineState, FlowFieldEngine
from flowfield.field import BLOCKED_NODE, UNREACHABLE_COST, FieldNode, FieldStatus, FlowField
from flowfield.host.background import BackgroundRecomputer
from flowfield.host.scheduler import FieldScheduler

__version__ = "0.1.0"

__all__ = [
    "AvoidanceMode",
    "Cell",
    "LayeredGrid",
    "TileLayer",
    "StructurePlacer",
    "ConfigurationError",
    "EngineState",
    "FlowFieldEngine",
    "BLOCKED_NODE",
    "UNREACHABLE_COST",
    "FieldNode",
    "FieldStatus",
    "FlowField",
    "BackgroundRecomputer",
    "FieldScheduler",
]

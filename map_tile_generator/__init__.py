"""Build slippy-map tile pyramids from a grid of overlapping source images."""

from .builder import BuildOptions, build
from .errors import ConfigurationError, MapTileError, PlannerError, TileIOError
from .grid import Grid, SourceCell, scan_source_dir
from .map_record import MapRecord
from .planner import CanvasPlan, plan_canvas

__version__ = "1.0.0"

__all__ = [
    "BuildOptions",
    "CanvasPlan",
    "ConfigurationError",
    "Grid",
    "MapRecord",
    "MapTileError",
    "PlannerError",
    "SourceCell",
    "TileIOError",
    "build",
    "plan_canvas",
    "scan_source_dir",
]

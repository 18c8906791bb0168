"""
Canvas geometry for the tile pyramid.

The source grid is laid out as one canvas of
  (cell_width * columns) x (cell_height * rows)
pixels, where the cell size is the raw image size minus the overlap. At the
maximum zoom every axis is padded up to a power-of-two number of tiles and
the source canvas is centered inside that padded canvas.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from PIL import Image

from .errors import PlannerError
from .grid import Grid


# Constants
TILE_SIZE = 256  # Output tiles are TILE_SIZE x TILE_SIZE pixels
OVERLAP = 1      # Pixels each source image shares with its right and bottom neighbors
MIN_ZOOM = 1     # Coarsest zoom level written by default

# Map scans are routinely larger than Pillow's decompression bomb limit
Image.MAX_IMAGE_PIXELS = None


def zoom_for_axis(size: int, tile_size: int = TILE_SIZE) -> int:
    """Smallest zoom z >= 0 with tile_size * 2**z >= size."""
    if size <= 0:
        raise PlannerError(f"Canvas size must be positive, got {size}")
    return max(0, math.ceil(math.log2(size / tile_size)))


def read_sample_size(grid: Grid) -> Tuple[int, int]:
    """Read the raw pixel size of the first source cell."""
    cell = grid.first()
    try:
        with Image.open(cell.path) as img:
            return img.size
    except (OSError, Image.DecompressionBombError) as e:
        raise PlannerError(f"Cannot read sample image {cell.path}", e) from e


@dataclass(frozen=True)
class CanvasPlan:
    """Geometry shared by every stage of the build."""
    cell_width: int
    cell_height: int
    overlap: int
    columns: int
    rows: int
    source_width: int
    source_height: int
    tile_size: int
    zoom_x: int
    zoom_y: int
    max_zoom: int
    target_width: int
    target_height: int
    offset_x: int
    offset_y: int

    def tile_counts(self, zoom: int) -> Tuple[int, int]:
        """Number of tile columns and rows at a zoom level.

        At max_zoom this is 2**zoom_x by 2**zoom_y. Each coarser level halves
        both counts, never going below one tile.
        """
        if not 0 <= zoom <= self.max_zoom:
            raise PlannerError(f"Zoom {zoom} is outside 0..{self.max_zoom}")
        levels_up = self.max_zoom - zoom
        return (2 ** max(0, self.zoom_x - levels_up), 2 ** max(0, self.zoom_y - levels_up))

    def cell_origin(self, column: int, row: int) -> Tuple[int, int]:
        """Absolute top-left canvas pixel of a source cell at max_zoom."""
        return (self.offset_x + column * self.cell_width,
                self.offset_y + row * self.cell_height)


def plan_canvas(grid: Grid, sample_size: Tuple[int, int], tile_size: int = TILE_SIZE,
                overlap: int = OVERLAP, min_zoom: int = MIN_ZOOM) -> CanvasPlan:
    """Compute the canvas plan for a grid.

    Args:
        grid: scanned source grid
        sample_size: raw (width, height) of one source image
        tile_size: output tile edge in pixels
        overlap: pixels shared between neighboring source images
        min_zoom: coarsest level the build writes. The maximum zoom is
            never below this, so the pyramid always has at least one
            level; a map whose own maximum zoom is lower is written as
            the single level min_zoom

    Returns:
        CanvasPlan

    Raises:
        PlannerError: if the cell size is not positive or the source
            canvas does not fit into the padded canvas
    """
    raw_width, raw_height = sample_size
    cell_width = raw_width - overlap
    cell_height = raw_height - overlap
    if cell_width <= 0 or cell_height <= 0:
        raise PlannerError(
            f"Source images of {raw_width}x{raw_height} leave no content after a {overlap} pixel overlap"
        )

    source_width = cell_width * grid.columns
    source_height = cell_height * grid.rows

    zoom_x = zoom_for_axis(source_width, tile_size)
    zoom_y = zoom_for_axis(source_height, tile_size)
    max_zoom = max(zoom_x, zoom_y, min_zoom)

    target_width = tile_size * 2 ** zoom_x
    target_height = tile_size * 2 ** zoom_y

    offset_x = (target_width - source_width) // 2
    offset_y = (target_height - source_height) // 2
    if offset_x < 0 or offset_y < 0:
        raise PlannerError(
            f"Source canvas {source_width}x{source_height} does not fit "
            f"target canvas {target_width}x{target_height}"
        )

    return CanvasPlan(
        cell_width=cell_width,
        cell_height=cell_height,
        overlap=overlap,
        columns=grid.columns,
        rows=grid.rows,
        source_width=source_width,
        source_height=source_height,
        tile_size=tile_size,
        zoom_x=zoom_x,
        zoom_y=zoom_y,
        max_zoom=max_zoom,
        target_width=target_width,
        target_height=target_height,
        offset_x=offset_x,
        offset_y=offset_y,
    )

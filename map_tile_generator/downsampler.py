"""
Coarser zoom levels of the pyramid.

Each tile at zoom Z is made from the 2x2 block of tiles below it at Z+1:

    (2x, 2y)    (2x+1, 2y)
    (2x, 2y+1)  (2x+1, 2y+1)

Every child is scaled to half a tile on its own and pasted into its
quadrant, so a quadrant only ever holds pixels of its own child. Levels
are built from the maximum zoom downwards and only ever read the
finished files of the level below.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from PIL import Image

from .errors import ConfigurationError, PlannerError
from .planner import CanvasPlan, MIN_ZOOM
from .reporting import Reporter, SILENT
from .tile_store import TileStore, is_blank


RESAMPLE_FILTERS: Dict[str, Image.Resampling] = {
    'nearest': Image.Resampling.NEAREST,
    'box': Image.Resampling.BOX,
    'bilinear': Image.Resampling.BILINEAR,
    'hamming': Image.Resampling.HAMMING,
    'bicubic': Image.Resampling.BICUBIC,
    'lanczos': Image.Resampling.LANCZOS,
}
DEFAULT_RESAMPLE = 'lanczos'


def resample_filter(name: str) -> Image.Resampling:
    try:
        return RESAMPLE_FILTERS[name]
    except KeyError:
        choices = ", ".join(sorted(RESAMPLE_FILTERS))
        raise ConfigurationError(f"Unknown resample filter {name!r} (choose from {choices})") from None


def create_tile_from_children(plan: CanvasPlan, store: TileStore, zoom: int, x: int, y: int,
                              resample: Image.Resampling = RESAMPLE_FILTERS[DEFAULT_RESAMPLE]) -> Image.Image:
    """Create a tile by combining and scaling 4 child tiles from zoom+1.

    Children outside the tile grid of zoom+1 (only possible on an axis that
    needs fewer tiles than the other) count as transparent. A child inside
    the grid must exist on disk; a fully transparent one is not scaled.

    Returns:
        RGBA image of tile_size x tile_size
    """
    tile_size = store.tile_size
    child_zoom = zoom + 1
    child_columns, child_rows = plan.tile_counts(child_zoom)
    half = tile_size // 2

    tile = Image.new('RGBA', (tile_size, tile_size), (0, 0, 0, 0))
    for dy in range(2):
        for dx in range(2):
            child_x = x * 2 + dx
            child_y = y * 2 + dy
            if child_x >= child_columns or child_y >= child_rows:
                continue
            child = store.read(child_zoom, child_x, child_y)
            if is_blank(child):
                continue
            tile.paste(child.resize((half, half), resample), (dx * half, dy * half))

    return tile


def rebuild_tile_at_zoom(plan: CanvasPlan, store: TileStore, zoom: int, x: int, y: int,
                         resample: Image.Resampling) -> None:
    tile = create_tile_from_children(plan, store, zoom, x, y, resample)
    store.write(zoom, x, y, tile)


def build_zoom_level(plan: CanvasPlan, store: TileStore, zoom: int, workers: int = 1,
                     resample: Image.Resampling = RESAMPLE_FILTERS[DEFAULT_RESAMPLE],
                     reporter: Reporter = SILENT) -> int:
    """Create all tiles for a given zoom level by scaling from zoom+1.

    Tiles of one level only depend on the level below, so with workers > 1
    they are built in parallel. The call returns once every tile of the
    level is on disk.

    Returns:
        Number of tiles written
    """
    if zoom >= plan.max_zoom:
        raise PlannerError(f"Zoom {zoom} has no finer level to build from (maximum is {plan.max_zoom})")

    store.prepare_zoom_dir(zoom)
    tile_columns, tile_rows = plan.tile_counts(zoom)
    positions = [(x, y) for x in range(tile_columns) for y in range(tile_rows)]

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(rebuild_tile_at_zoom, plan, store, zoom, x, y, resample)
                for x, y in positions
            ]
            # result() re-raises the first failure
            for future in futures:
                future.result()
    else:
        for x, y in positions:
            rebuild_tile_at_zoom(plan, store, zoom, x, y, resample)

    reporter.info(f"   Created {len(positions)} tiles at zoom level {zoom} ({tile_columns}x{tile_rows})")
    return len(positions)


def build_pyramid(plan: CanvasPlan, store: TileStore, min_zoom: int = MIN_ZOOM, workers: int = 1,
                  resample: Image.Resampling = RESAMPLE_FILTERS[DEFAULT_RESAMPLE],
                  start_zoom: Optional[int] = None, reporter: Reporter = SILENT) -> int:
    """Build zoom levels from start_zoom (default max_zoom - 1) down to min_zoom.

    Levels are strictly sequential: a level starts only after the level
    below it is complete.

    Returns:
        Number of tiles written over all levels
    """
    if start_zoom is None:
        start_zoom = plan.max_zoom - 1
    if min_zoom < 0:
        raise ConfigurationError(f"Minimum zoom must be >= 0, got {min_zoom}")
    if start_zoom >= plan.max_zoom:
        raise PlannerError(f"Cannot rebuild from zoom {start_zoom}, the maximum zoom is {plan.max_zoom}")

    total = 0
    for zoom in range(start_zoom, min_zoom - 1, -1):
        scale_factor = 2 ** (plan.max_zoom - zoom)
        reporter.info(f"🔨 Zoom level {zoom} (scale 1/{scale_factor})...")
        total += build_zoom_level(plan, store, zoom, workers, resample, reporter)
    return total

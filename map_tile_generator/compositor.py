"""
Base layer of the pyramid: the tiles at the maximum zoom.

Every tile of the level is first written blank. Then each source cell is
cut along the tile boundaries it crosses and every piece is pasted into
its tile, so a tile can collect content from up to four (or, with small
cells, many) neighboring source images.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Set, Tuple

from PIL import Image

from .errors import TileIOError
from .grid import Grid, SourceCell
from .planner import CanvasPlan
from .reporting import Reporter, SILENT
from .tile_store import TileStore
from .tiling import iter_tile_spans


def create_blank_base_layer(plan: CanvasPlan, store: TileStore, reporter: Reporter = SILENT) -> int:
    """Write a transparent tile for every position at the maximum zoom.

    Returns:
        Number of tiles written
    """
    zoom = plan.max_zoom
    store.prepare_zoom_dir(zoom)
    tile_columns, tile_rows = plan.tile_counts(zoom)

    created_count = 0
    for column in range(tile_columns):
        for row in range(tile_rows):
            store.write_blank(zoom, column, row)
            created_count += 1

    reporter.info(f"   Created {created_count} blank tiles at zoom level {zoom}")
    return created_count


def load_source_image(cell: SourceCell) -> Image.Image:
    """Open a source image as RGBA."""
    try:
        with Image.open(cell.path) as img:
            return img.convert('RGBA')
    except (OSError, Image.DecompressionBombError) as e:
        raise TileIOError(f"Cannot read source image {cell.path.name} (cell {cell.label})", e) from e


def composite_cell(cell: SourceCell, plan: CanvasPlan, store: TileStore,
                   reporter: Reporter = SILENT) -> Set[Tuple[int, int]]:
    """Paste the content of one source cell into the base layer tiles.

    Only the first cell_width x cell_height pixels of the image are used;
    the overlap on the right and bottom edges belongs to the neighbors.

    Returns:
        Set of (column, row) tile positions that received content
    """
    img = load_source_image(cell)
    expected = (plan.cell_width + plan.overlap, plan.cell_height + plan.overlap)
    if img.size != expected:
        reporter.warn(f"{cell.path.name} is {img.size[0]}x{img.size[1]}, expected {expected[0]}x{expected[1]}")

    target_x, target_y = plan.cell_origin(cell.column, cell.row)
    zoom = plan.max_zoom
    touched = set()

    for x_span in iter_tile_spans(target_x, plan.cell_width, plan.tile_size):
        for y_span in iter_tile_spans(target_y, plan.cell_height, plan.tile_size):
            box = (
                x_span.source_offset,
                y_span.source_offset,
                x_span.source_offset + x_span.length,
                y_span.source_offset + y_span.length,
            )
            piece = img.crop(box)
            with store.update(zoom, x_span.tile_index, y_span.tile_index) as tile:
                tile.paste(piece, (x_span.offset_in_tile, y_span.offset_in_tile))
            touched.add((x_span.tile_index, y_span.tile_index))

    return touched


def build_base_layer(grid: Grid, plan: CanvasPlan, store: TileStore, workers: int = 1,
                     reporter: Reporter = SILENT) -> Set[Tuple[int, int]]:
    """Build every tile at the maximum zoom from the source grid.

    Grid gaps stay transparent. Any source or tile I/O failure aborts the
    build.

    Args:
        grid: scanned source grid
        plan: canvas plan
        store: tile store for the output directory
        workers: number of threads compositing cells in parallel

    Returns:
        Set of (column, row) tile positions that received content
    """
    create_blank_base_layer(plan, store, reporter)

    cells = list(grid)
    touched = set()

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(composite_cell, cell, plan, store, reporter): cell for cell in cells}
            completed = 0
            for future in as_completed(futures):
                touched |= future.result()
                completed += 1
                _report_progress(reporter, completed, len(cells), futures[future])
    else:
        for completed, cell in enumerate(cells, start=1):
            touched |= composite_cell(cell, plan, store, reporter)
            _report_progress(reporter, completed, len(cells), cell)

    tile_columns, tile_rows = plan.tile_counts(plan.max_zoom)
    reporter.info(
        f"   Filled {len(touched)} of {tile_columns * tile_rows} tiles from {len(cells)} source images"
    )
    return touched


def _report_progress(reporter: Reporter, completed: int, total: int, cell: SourceCell) -> None:
    reporter.info(f"   Filling zoom level: {100.0 * completed / total:.2f} % ({cell.path.name})")


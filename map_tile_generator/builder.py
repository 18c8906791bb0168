"""
End-to-end build: scan, plan, base layer, coarser levels, map.json.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .compositor import build_base_layer
from .downsampler import DEFAULT_RESAMPLE, build_pyramid, resample_filter
from .errors import ConfigurationError, PlannerError, TileIOError
from .grid import Grid, scan_source_dir
from .map_record import MAP_RECORD_NAME, MapRecord, read_map_record, write_map_record
from .planner import MIN_ZOOM, OVERLAP, TILE_SIZE, CanvasPlan, plan_canvas, read_sample_size
from .reporting import Reporter, SILENT
from .tile_store import TileStore


@dataclass
class BuildOptions:
    source_dir: Path = Path("source")
    target_dir: Path = Path("target")
    workers: int = 1
    min_zoom: int = MIN_ZOOM
    resample: str = DEFAULT_RESAMPLE
    optimize: bool = False
    clean: bool = False
    from_zoom: Optional[int] = None
    tile_size: int = TILE_SIZE
    overlap: int = OVERLAP

    def validate(self) -> None:
        if self.workers < 1:
            raise ConfigurationError(f"Workers must be >= 1, got {self.workers}")
        if self.min_zoom < 0:
            raise ConfigurationError(f"Minimum zoom must be >= 0, got {self.min_zoom}")
        if self.clean and self.from_zoom is not None:
            raise ConfigurationError("--clean would delete the tiles --from-zoom builds on")
        resample_filter(self.resample)


def report_plan(grid: Grid, plan: CanvasPlan, reporter: Reporter) -> None:
    tile_columns, tile_rows = plan.tile_counts(plan.max_zoom)
    reporter.info(f"Source tile width: {plan.cell_width} pixels")
    reporter.info(f"Source tile height: {plan.cell_height} pixels")
    reporter.info(f"Horizontal number of tiles: {grid.columns}")
    reporter.info(f"Vertical number of tiles: {grid.rows}")
    reporter.info(f"Source width: {plan.source_width} pixels")
    reporter.info(f"Source height: {plan.source_height} pixels")
    reporter.info(f"Target tile size: {plan.tile_size} pixels")
    reporter.info(f"Maximum horizontal zoom factor: {plan.zoom_x}")
    reporter.info(f"Maximum vertical zoom factor: {plan.zoom_y}")
    reporter.info(f"Maximum zoom factor: {plan.max_zoom}")
    reporter.info(f"Horizontal number of tiles (at maximum zoom factor): {tile_columns}")
    reporter.info(f"Vertical number of tiles (at maximum zoom factor): {tile_rows}")
    reporter.info(f"Target width (at maximum zoom factor): {plan.target_width} pixels")
    reporter.info(f"Target height (at maximum zoom factor): {plan.target_height} pixels")
    reporter.info(f"Offset (at maximum zoom factor): {plan.offset_x}, {plan.offset_y}")
    reporter.info()


def check_resume(plan: CanvasPlan, store: TileStore, from_zoom: int, min_zoom: int) -> None:
    """Make sure an existing pyramid can be rebuilt from from_zoom."""
    if not min_zoom <= from_zoom < plan.max_zoom:
        raise PlannerError(
            f"--from-zoom must be between {min_zoom} and {plan.max_zoom - 1}, got {from_zoom}"
        )

    record = read_map_record(store.root)
    if record != MapRecord.from_plan(plan):
        raise ConfigurationError(
            f"{MAP_RECORD_NAME} in {store.root} does not match the source images; run a full build"
        )

    child_zoom = from_zoom + 1
    child_columns, child_rows = plan.tile_counts(child_zoom)
    for x in range(child_columns):
        for y in range(child_rows):
            if not store.exists(child_zoom, x, y):
                raise TileIOError(f"Tile {child_zoom}/{x}-{y} is missing; rebuild from a lower zoom")


def build(options: BuildOptions, reporter: Reporter = SILENT) -> MapRecord:
    """Build the complete tile pyramid described by options.

    Returns:
        The MapRecord written to map.json
    """
    options.validate()
    source_dir = Path(options.source_dir)
    target_dir = Path(options.target_dir)

    reporter.info(f"Source dir:   {source_dir.absolute()}")
    reporter.info(f"Target dir:   {target_dir.absolute()}")
    reporter.info()

    reporter.info("📂 Scanning source images...")
    grid = scan_source_dir(source_dir, reporter)
    reporter.info(f"✅ Found {len(grid)} source images")
    reporter.info()

    sample_size = read_sample_size(grid)
    plan = plan_canvas(grid, sample_size, options.tile_size, options.overlap, options.min_zoom)
    report_plan(grid, plan, reporter)

    resample = resample_filter(options.resample)
    store = TileStore(target_dir, plan.tile_size, track_writes=options.optimize)
    record = MapRecord.from_plan(plan)

    if options.from_zoom is not None:
        check_resume(plan, store, options.from_zoom, options.min_zoom)
        reporter.info(f"♻️  Rebuilding zoom levels {options.from_zoom} to {options.min_zoom}...")
        build_pyramid(plan, store, options.min_zoom, options.workers, resample,
                      start_zoom=options.from_zoom, reporter=reporter)
    else:
        if options.clean and target_dir.exists():
            reporter.info(f"🧹 Cleaning old files from {target_dir.absolute()}...")
            try:
                shutil.rmtree(target_dir)
            except OSError as e:
                raise TileIOError(f"Cannot remove {target_dir}", e) from e

        write_map_record(record, target_dir)

        reporter.info(f"🔨 Zoom level {plan.max_zoom} (from source images)...")
        touched = build_base_layer(grid, plan, store, options.workers, reporter)
        tile_columns, tile_rows = plan.tile_counts(plan.max_zoom)
        empty_count = tile_columns * tile_rows - len(touched)
        reporter.info(f"   {empty_count} tiles at zoom level {plan.max_zoom} have no source content")
        build_pyramid(plan, store, options.min_zoom, options.workers, resample, reporter=reporter)
    reporter.info()

    if options.optimize:
        reporter.info(f"🗜️  Compressing {len(store.written_tiles())} tiles...")
        compressed_count, total_saved = store.compress_written_tiles()
        reporter.info(f"   Compressed {compressed_count} tiles, saved {total_saved / 1024:.1f} KB")
        reporter.info()

    reporter.info("✅ Tile pyramid complete!")
    return record

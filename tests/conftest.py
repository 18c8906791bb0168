"""
Shared fixtures: synthetic source grids and helpers to inspect tile levels.
"""

from pathlib import Path
from typing import Iterable, Tuple

import numpy as np
import pytest
from PIL import Image

from map_tile_generator.grid import ROW_LETTERS


def source_pixels(column: int, row: int, width: int, height: int) -> np.ndarray:
    """Deterministic opaque RGBA noise for one source cell."""
    rng = np.random.default_rng(1000 * row + column)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return pixels


def write_source_grid(source_dir: Path, cells: Iterable[Tuple[int, int]], raw_size: Tuple[int, int],
                      suffix: str = ".png") -> Path:
    """Write one source image per (column, row) named <row letter><column><suffix>."""
    source_dir.mkdir(parents=True, exist_ok=True)
    width, height = raw_size
    for column, row in cells:
        img = Image.fromarray(source_pixels(column, row, width, height))
        img.save(source_dir / f"{ROW_LETTERS[row]}{column}{suffix}")
    return source_dir


def full_grid(columns: int, rows: int):
    return [(c, r) for c in range(columns) for r in range(rows)]


def assemble_level(store, plan, zoom: int) -> np.ndarray:
    """Stitch every tile of a level into one RGBA array."""
    tile_columns, tile_rows = plan.tile_counts(zoom)
    size = store.tile_size
    canvas = np.zeros((tile_rows * size, tile_columns * size, 4), dtype=np.uint8)
    for x in range(tile_columns):
        for y in range(tile_rows):
            tile = np.asarray(store.read(zoom, x, y))
            canvas[y * size:(y + 1) * size, x * size:(x + 1) * size] = tile
    return canvas


@pytest.fixture
def source_dir(tmp_path):
    return tmp_path / "source"


@pytest.fixture
def target_dir(tmp_path):
    return tmp_path / "target"

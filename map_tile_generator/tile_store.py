"""
On-disk tile storage.

Tiles live at <root>/<zoom>/<column>-<row>.png. Every write goes to a
temporary file next to the tile and is then moved over it, so a tile on
disk is always complete.
"""

import os
import secrets
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Set, Tuple

import numpy as np
from PIL import Image

from .errors import TileIOError
from .planner import TILE_SIZE


TileKey = Tuple[int, int, int]  # (zoom, column, row)


def is_blank(img: Image.Image) -> bool:
    """True if every pixel of an RGBA image is fully transparent."""
    alpha = np.asarray(img.getchannel('A'))
    return not alpha.any()


def compress_png(png_path: Path) -> None:
    """Recompress a PNG file losslessly in place."""
    with Image.open(png_path) as img:
        img.load()
        optimized = img.copy()
    # optimize=True runs PIL's PNG optimizer, compress_level=9 is maximum zlib
    _atomic_save(optimized, png_path, optimize=True, compress_level=9)


def _atomic_save(img: Image.Image, path: Path, **save_args) -> None:
    temp_path = path.parent / f".tmp_{secrets.token_hex(8)}.png"
    try:
        img.save(temp_path, 'PNG', **save_args)
        os.replace(temp_path, path)
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


class TileStore:
    """Reads and writes the tiles of one pyramid.

    Tiles are held as RGBA images. lock() and update() serialize access to
    a single tile so several threads can add content to the same tile; a
    tile's lock only exists while some thread holds or waits for it.

    With track_writes the paths of all written tiles are kept for
    compress_written_tiles().
    """

    def __init__(self, root: Path, tile_size: int = TILE_SIZE, track_writes: bool = False):
        self.root = Path(root)
        self.tile_size = tile_size
        self.track_writes = track_writes
        # key -> [lock, number of threads holding or waiting for it]
        self._locks: Dict[TileKey, list] = {}
        self._locks_guard = threading.Lock()
        self._written: Set[Path] = set()
        self._written_guard = threading.Lock()

    # -------- paths --------

    def zoom_dir(self, zoom: int) -> Path:
        return self.root / str(zoom)

    def tile_path(self, zoom: int, column: int, row: int) -> Path:
        return self.zoom_dir(zoom) / f"{column}-{row}.png"

    def prepare_zoom_dir(self, zoom: int) -> Path:
        zoom_dir = self.zoom_dir(zoom)
        try:
            zoom_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TileIOError(f"Cannot create zoom directory {zoom_dir}", e) from e
        return zoom_dir

    # -------- tiles --------

    def blank_tile(self) -> Image.Image:
        return Image.new('RGBA', (self.tile_size, self.tile_size), (0, 0, 0, 0))

    def exists(self, zoom: int, column: int, row: int) -> bool:
        return self.tile_path(zoom, column, row).is_file()

    def read(self, zoom: int, column: int, row: int) -> Image.Image:
        """Load a tile as an RGBA image."""
        path = self.tile_path(zoom, column, row)
        try:
            with Image.open(path) as img:
                tile = img.convert('RGBA')
        except (OSError, Image.DecompressionBombError) as e:
            raise TileIOError(f"Cannot read tile {zoom}/{column}-{row}", e) from e

        if tile.size != (self.tile_size, self.tile_size):
            raise TileIOError(
                f"Tile {zoom}/{column}-{row} is {tile.size[0]}x{tile.size[1]}, "
                f"expected {self.tile_size}x{self.tile_size}"
            )
        return tile

    def write(self, zoom: int, column: int, row: int, img: Image.Image) -> Path:
        """Replace a tile file with img."""
        path = self.tile_path(zoom, column, row)
        try:
            _atomic_save(img, path)
        except OSError as e:
            raise TileIOError(f"Cannot write tile {zoom}/{column}-{row}", e) from e

        if self.track_writes:
            with self._written_guard:
                self._written.add(path)
        return path

    def write_blank(self, zoom: int, column: int, row: int) -> Path:
        return self.write(zoom, column, row, self.blank_tile())

    @contextmanager
    def lock(self, zoom: int, column: int, row: int) -> Iterator[None]:
        """Hold the lock of one tile for the duration of the block."""
        key = (zoom, column, row)
        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    @contextmanager
    def update(self, zoom: int, column: int, row: int) -> Iterator[Image.Image]:
        """Read-modify-write one tile under its lock.

        The tile is written back only if the block finishes without error.
        """
        with self.lock(zoom, column, row):
            tile = self.read(zoom, column, row)
            yield tile
            self.write(zoom, column, row, tile)

    # -------- housekeeping --------

    def locked_tiles(self) -> List[TileKey]:
        with self._locks_guard:
            return sorted(self._locks)

    def written_tiles(self) -> List[Path]:
        with self._written_guard:
            return sorted(self._written)

    def compress_written_tiles(self) -> Tuple[int, int]:
        """Losslessly recompress every tile written so far.

        Returns:
            (number of tiles compressed, bytes saved)
        """
        compressed_count = 0
        total_saved = 0
        for tile_path in self.written_tiles():
            if not tile_path.exists():
                continue
            try:
                original_size = tile_path.stat().st_size
                compress_png(tile_path)
                new_size = tile_path.stat().st_size
            except OSError as e:
                raise TileIOError(f"Cannot compress tile {tile_path}", e) from e
            total_saved += original_size - new_size
            compressed_count += 1
        return compressed_count, total_saved

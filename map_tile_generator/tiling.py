"""
Splitting a run of source pixels at output tile boundaries.

A source cell placed at an arbitrary canvas position usually straddles
tile edges. iter_tile_spans walks one axis and yields a span for every
tile the run touches; the compositor crosses the horizontal and vertical
spans to get the rectangles to copy.
"""

from typing import Iterator, NamedTuple


class TileSpan(NamedTuple):
    """One piece of a source run that lands inside a single tile.

    tile_index: tile column (or row) on the canvas
    offset_in_tile: first pixel inside that tile
    source_offset: first pixel inside the source run
    length: number of pixels
    """
    tile_index: int
    offset_in_tile: int
    source_offset: int
    length: int


def iter_tile_spans(origin: int, extent: int, tile_size: int) -> Iterator[TileSpan]:
    """Yield the spans covering canvas pixels [origin, origin + extent).

    Spans come out in increasing order, abut exactly and their lengths add
    up to extent.
    """
    if origin < 0 or extent < 0:
        raise ValueError(f"origin and extent must be >= 0, got {origin}, {extent}")
    if tile_size <= 0:
        raise ValueError(f"tile_size must be > 0, got {tile_size}")

    source_offset = 0
    while source_offset < extent:
        coord = origin + source_offset
        tile_index = coord // tile_size
        offset_in_tile = coord - tile_index * tile_size
        length = min(tile_size - offset_in_tile, extent - source_offset)
        yield TileSpan(tile_index, offset_in_tile, source_offset, length)
        source_offset += length

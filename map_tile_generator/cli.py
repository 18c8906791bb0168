#!/usr/bin/env python3
"""
Map Tile Generator

Generates a tile-based map of 256x256 pixel PNG tiles from a grid of source
images, with one directory per zoom level and a map.json describing the
padded map size and maximum zoom.

Usage:
  python -m map_tile_generator [--source source] [--target target] [--workers 4]
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .builder import BuildOptions, build
from .downsampler import DEFAULT_RESAMPLE, RESAMPLE_FILTERS
from .errors import MapTileError
from .planner import MIN_ZOOM
from .reporting import Reporter


EPILOG = """\
Requirements:
* Input images must be placed in the source folder.
* Names of input images must start with A-Z for the vertical position
  followed by 0-999 for the horizontal position.
* E.g. a 3x2 map's input images could be named
  A0.png, A1.png, A2.png, B0.png, B1.png, B2.png.
* Images should overlap the following images by 1 pixel at the bottom and
  the right side.

The maximum zoom factor is calculated from the resolution of the input
images. The output is put into the target folder as <zoom>/<x>-<y>.png.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='map-tile-generator',
        description='Generate a 256x256 PNG tile pyramid from a grid of source images',
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '--source',
        default='source',
        help='Directory containing the source images (default: source)'
    )
    parser.add_argument(
        '--target',
        default='target',
        help='Output directory for the tile pyramid (default: target)'
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=1,
        help='Number of threads used to build tiles (default: 1)'
    )
    parser.add_argument(
        '--min-zoom',
        type=int,
        default=MIN_ZOOM,
        help=f'Coarsest zoom level to write (default: {MIN_ZOOM}). The maximum zoom is raised to '
             'at least this level, so a map needing fewer levels is written as this level only'
    )
    parser.add_argument(
        '--resample',
        choices=sorted(RESAMPLE_FILTERS),
        default=DEFAULT_RESAMPLE,
        help=f'Filter used to scale tiles for coarser zoom levels (default: {DEFAULT_RESAMPLE})'
    )
    parser.add_argument(
        '--optimize',
        action='store_true',
        help='Losslessly recompress all written tiles after building'
    )
    parser.add_argument(
        '--clean',
        action='store_true',
        help='Delete the target directory before building'
    )
    parser.add_argument(
        '--from-zoom',
        type=int,
        default=None,
        help='Only rebuild zoom levels from this one down, reusing the finer tiles on disk'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Only print errors'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    reporter = Reporter(quiet=args.quiet)

    reporter.banner("Map Tile Generator")
    reporter.info()

    options = BuildOptions(
        source_dir=Path(args.source),
        target_dir=Path(args.target),
        workers=args.workers,
        min_zoom=args.min_zoom,
        resample=args.resample,
        optimize=args.optimize,
        clean=args.clean,
        from_zoom=args.from_zoom,
    )

    try:
        build(options, reporter)
    except MapTileError as e:
        reporter.error(str(e))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

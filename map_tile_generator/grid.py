"""
Source grid scanning.

Source images are named after their place in the grid: one uppercase
letter for the row followed by the column number, e.g. A0.png, A1.png,
B0.png. Anything after the digits is ignored, so B12-final.png is row 1,
column 12.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Union

from .errors import ConfigurationError
from .reporting import Reporter, SILENT


# Row letters in order: A is row 0, Z is row 25
ROW_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ROW_INDEX = {letter: index for index, letter in enumerate(ROW_LETTERS)}

# Matches filenames like: A0.png, C17.png, Z3-scan.tif
FILENAME_RE = re.compile(r"^([A-Z])([0-9]+)(.*)$")


@dataclass(frozen=True)
class Matched:
    """Filename resolved to a grid position."""
    row: int
    column: int


@dataclass(frozen=True)
class Skipped:
    """Filename that does not name a grid position."""
    name: str
    reason: str


ParseResult = Union[Matched, Skipped]


def parse_source_filename(filename: str) -> ParseResult:
    """Parse a source image file name into its zero based grid position.

    Args:
        filename: base name such as "B12.png"

    Returns:
        Matched(row, column) or Skipped(name, reason)
    """
    m = FILENAME_RE.match(filename)
    if not m:
        return Skipped(filename, "name does not start with <A-Z><digits>")

    return Matched(row=ROW_INDEX[m.group(1)], column=int(m.group(2)))


@dataclass(frozen=True)
class SourceCell:
    """One source image and its position in the grid."""
    column: int
    row: int
    path: Path

    @property
    def label(self) -> str:
        return f"{ROW_LETTERS[self.row]}{self.column}"


class Grid:
    """Sparse column -> row -> SourceCell mapping."""

    def __init__(self):
        self._columns: Dict[int, Dict[int, SourceCell]] = {}
        self.max_column = 0
        self.max_row = 0

    def add(self, cell: SourceCell) -> None:
        rows = self._columns.setdefault(cell.column, {})
        existing = rows.get(cell.row)
        if existing is not None:
            raise ConfigurationError(
                f"Both {existing.path.name} and {cell.path.name} map to grid cell {cell.label}"
            )
        rows[cell.row] = cell
        self.max_column = max(self.max_column, cell.column)
        self.max_row = max(self.max_row, cell.row)

    def get(self, column: int, row: int) -> Optional[SourceCell]:
        return self._columns.get(column, {}).get(row)

    @property
    def columns(self) -> int:
        """Number of grid columns, counting gaps."""
        return self.max_column + 1

    @property
    def rows(self) -> int:
        """Number of grid rows, counting gaps."""
        return self.max_row + 1

    def first(self) -> SourceCell:
        """The first populated cell in column-major order."""
        for cell in self:
            return cell
        raise ConfigurationError("Grid has no source cells")

    def __iter__(self) -> Iterator[SourceCell]:
        for column in sorted(self._columns):
            rows = self._columns[column]
            for row in sorted(rows):
                yield rows[row]

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._columns.values())

    def __contains__(self, position) -> bool:
        column, row = position
        return self.get(column, row) is not None


def scan_source_files(paths: Iterable[Path], reporter: Reporter = SILENT) -> Grid:
    """Build a Grid from a list of source file paths.

    Files whose names do not match are skipped. At least one file has to
    match, otherwise there is nothing to size the canvas from.
    """
    grid = Grid()
    for path in paths:
        path = Path(path)
        result = parse_source_filename(path.name)
        if isinstance(result, Skipped):
            reporter.warn(f"Skipping {result.name}: {result.reason}")
            continue
        grid.add(SourceCell(column=result.column, row=result.row, path=path))

    if len(grid) == 0:
        raise ConfigurationError("No source images named <A-Z><digits>... were found")

    return grid


def scan_source_dir(source_dir: Path, reporter: Reporter = SILENT) -> Grid:
    """Scan a flat directory of source images into a Grid."""
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise ConfigurationError(f"Folder '{source_dir}' does not exist.")

    paths = sorted(entry for entry in source_dir.iterdir() if entry.is_file())
    return scan_source_files(paths, reporter)

"""
map.json: the size and zoom range a tile viewer needs to show the map.

Example:
  {"Width": 512, "Height": 256, "MaximumZoomFactor": 2}
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from .errors import TileIOError
from .planner import CanvasPlan


MAP_RECORD_NAME = "map.json"


@dataclass
class MapRecord:
    width: int
    height: int
    maximum_zoom_factor: int

    @classmethod
    def from_plan(cls, plan: CanvasPlan) -> "MapRecord":
        return cls(
            width=plan.target_width,
            height=plan.target_height,
            maximum_zoom_factor=plan.max_zoom,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "Width": self.width,
            "Height": self.height,
            "MaximumZoomFactor": self.maximum_zoom_factor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, int]) -> "MapRecord":
        return cls(
            width=int(data["Width"]),
            height=int(data["Height"]),
            maximum_zoom_factor=int(data["MaximumZoomFactor"]),
        )


def write_map_record(record: MapRecord, target_dir: Path) -> Path:
    """Write map.json into the target directory."""
    path = Path(target_dir) / MAP_RECORD_NAME
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(record.to_dict(), f)
    except OSError as e:
        raise TileIOError(f"Cannot write {path}", e) from e
    return path


def read_map_record(target_dir: Path) -> MapRecord:
    path = Path(target_dir) / MAP_RECORD_NAME
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return MapRecord.from_dict(json.load(f))
    except (OSError, ValueError, KeyError) as e:
        raise TileIOError(f"Cannot read {path}", e) from e

"""
End-to-end tests for the builder and the command line
"""

import json

import numpy as np
import pytest
from PIL import Image

from conftest import assemble_level, full_grid, source_pixels, write_source_grid
from map_tile_generator.builder import BuildOptions, build
from map_tile_generator.cli import main
from map_tile_generator.errors import ConfigurationError, PlannerError, TileIOError
from map_tile_generator.grid import scan_source_dir
from map_tile_generator.map_record import MapRecord
from map_tile_generator.planner import plan_canvas, read_sample_size
from map_tile_generator.tile_store import TileStore


class TestCommandLine:

    def test_two_by_two_grid(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(2, 2), (11, 11))

        assert main(['--source', str(source_dir), '--target', str(target_dir), '--quiet']) == 0

        assert json.loads((target_dir / "map.json").read_text()) == {
            "Width": 256, "Height": 256, "MaximumZoomFactor": 1,
        }
        assert sorted(p.name for p in target_dir.iterdir()) == ["1", "map.json"]
        assert [p.name for p in (target_dir / "1").iterdir()] == ["0-0.png"]

        tile = np.asarray(TileStore(target_dir).read(1, 0, 0))
        for column, row in full_grid(2, 2):
            x, y = 118 + 10 * column, 118 + 10 * row
            assert (tile[y:y + 10, x:x + 10] == source_pixels(column, row, 11, 11)[:10, :10]).all()
        assert tile[..., 3].sum() == 400 * 255

    def test_missing_source_directory(self, source_dir, target_dir, capsys):
        assert main(['--source', str(source_dir), '--target', str(target_dir)]) == 1
        assert "does not exist" in capsys.readouterr().err
        assert not target_dir.exists()

    def test_no_matching_files(self, source_dir, target_dir, capsys):
        source_dir.mkdir()
        (source_dir / "readme.txt").write_text("hello")
        assert main(['--source', str(source_dir), '--target', str(target_dir)]) == 1
        assert "No source images" in capsys.readouterr().err

    def test_prints_progress(self, source_dir, target_dir, capsys):
        write_source_grid(source_dir, full_grid(2, 2), (11, 11))
        assert main(['--source', str(source_dir), '--target', str(target_dir)]) == 0
        out = capsys.readouterr().out
        assert "Map Tile Generator" in out
        assert "Maximum zoom factor: 1" in out
        assert "0 tiles at zoom level 1 have no source content" in out
        assert "Tile pyramid complete" in out

    def test_quiet(self, source_dir, target_dir, capsys):
        write_source_grid(source_dir, full_grid(2, 2), (11, 11))
        assert main(['--source', str(source_dir), '--target', str(target_dir), '--quiet']) == 0
        assert capsys.readouterr().out == ""

    def test_oversized_source_image(self, source_dir, target_dir, capsys, monkeypatch):
        write_source_grid(source_dir, full_grid(2, 2), (11, 11))
        # 11x11 is more than twice the cap, which Pillow treats as a decompression bomb
        monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 50)
        assert main(['--source', str(source_dir), '--target', str(target_dir)]) == 1
        assert "Cannot read sample image" in capsys.readouterr().err

    def test_min_zoom_help(self, capsys):
        with pytest.raises(SystemExit):
            main(['--help'])
        assert "this level only" in " ".join(capsys.readouterr().out.split())

    def test_unknown_resample_filter(self, source_dir, target_dir):
        with pytest.raises(SystemExit):
            main(['--source', str(source_dir), '--resample', 'sinc'])


class TestBuild:

    def options(self, source_dir, target_dir, **kwargs):
        return BuildOptions(source_dir=source_dir, target_dir=target_dir, tile_size=16, **kwargs)

    def test_full_pyramid(self, source_dir, target_dir):
        # 3x3 cells of 16 pixels: 48x48 source centered in a 64x64 canvas
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))

        record = build(self.options(source_dir, target_dir, resample='nearest'))

        assert record == MapRecord(64, 64, 2)
        assert sorted(p.name for p in target_dir.iterdir()) == ["1", "2", "map.json"]
        assert len(list((target_dir / "2").iterdir())) == 16
        assert len(list((target_dir / "1").iterdir())) == 4

    def test_base_layer_content(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        build(self.options(source_dir, target_dir))

        store = TileStore(target_dir, 16)
        grid = scan_source_dir(source_dir)
        plan = plan_canvas(grid, read_sample_size(grid), tile_size=16)
        canvas = assemble_level(store, plan, 2)
        for column, row in full_grid(3, 3):
            x, y = 8 + 16 * column, 8 + 16 * row
            assert (canvas[y:y + 16, x:x + 16] == source_pixels(column, row, 17, 17)[:16, :16]).all()

    def test_min_zoom_zero(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        build(self.options(source_dir, target_dir, min_zoom=0))
        assert (target_dir / "0" / "0-0.png").is_file()

    def test_min_zoom_above_natural_maximum(self, source_dir, target_dir):
        # 48x48 source fits 4x4 tiles of 16 pixels, natural maximum zoom 2
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        record = build(self.options(source_dir, target_dir, min_zoom=3))
        assert record == MapRecord(64, 64, 3)
        assert sorted(p.name for p in target_dir.iterdir()) == ["3", "map.json"]
        assert len(list((target_dir / "3").iterdir())) == 16

    def test_parallel_build_matches_sequential(self, tmp_path):
        source_dir = write_source_grid(tmp_path / "source", full_grid(4, 3), (15, 19))
        build(self.options(source_dir, tmp_path / "a", workers=1))
        build(self.options(source_dir, tmp_path / "b", workers=4))
        files_a = sorted(p.relative_to(tmp_path / "a") for p in (tmp_path / "a").rglob("*.png"))
        files_b = sorted(p.relative_to(tmp_path / "b") for p in (tmp_path / "b").rglob("*.png"))
        assert files_a == files_b
        for name in files_a:
            assert (tmp_path / "a" / name).read_bytes() == (tmp_path / "b" / name).read_bytes()

    def test_clean_removes_stale_tiles(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        stale = target_dir / "5" / "0-0.png"
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"old")

        build(self.options(source_dir, target_dir, clean=True))

        assert not stale.exists()
        assert (target_dir / "map.json").is_file()

    def test_optimize(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        build(self.options(source_dir, target_dir, optimize=True))
        assert len(list(target_dir.rglob("*.png"))) == 20
        assert not list(target_dir.rglob(".tmp_*"))

    def test_resume_from_zoom(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        build(self.options(source_dir, target_dir))
        before = {p.name: p.read_bytes() for p in (target_dir / "1").iterdir()}
        for p in (target_dir / "1").iterdir():
            p.unlink()

        build(self.options(source_dir, target_dir, from_zoom=1))

        after = {p.name: p.read_bytes() for p in (target_dir / "1").iterdir()}
        assert after == before

    def test_resume_without_previous_build(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        with pytest.raises(TileIOError, match="map.json"):
            build(self.options(source_dir, target_dir, from_zoom=1))

    def test_resume_from_maximum_zoom(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        build(self.options(source_dir, target_dir))
        with pytest.raises(PlannerError):
            build(self.options(source_dir, target_dir, from_zoom=2))

    def test_resume_after_sources_changed(self, source_dir, target_dir):
        write_source_grid(source_dir, full_grid(3, 3), (17, 17))
        build(self.options(source_dir, target_dir))
        write_source_grid(source_dir, [(4, 0)], (17, 17))
        with pytest.raises(ConfigurationError, match="does not match"):
            build(self.options(source_dir, target_dir, from_zoom=1))

    @pytest.mark.parametrize("kwargs", [
        {"workers": 0},
        {"min_zoom": -1},
        {"resample": "sinc"},
        {"clean": True, "from_zoom": 1},
    ])
    def test_invalid_options(self, source_dir, target_dir, kwargs):
        write_source_grid(source_dir, full_grid(1, 1), (17, 17))
        with pytest.raises(ConfigurationError):
            build(self.options(source_dir, target_dir, **kwargs))

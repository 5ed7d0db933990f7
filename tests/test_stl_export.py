"""
ChromaLitho - STL 导出测试
ASCII / binary encoding and the atomic ZIP bundle.
"""

import os
import struct
import zipfile

import pytest

from config import StlFormat
from litho import stl_export
from litho.errors import ExportError
from litho.geometry import boxes_to_mesh
from litho.stl_export import export_bundle, stl_bytes, write_stl


def _cube():
    return boxes_to_mesh([0, 1, 0, 1, 0, 1])


class TestStlBytes:

    def test_ascii_named_solid(self):
        text = stl_bytes(_cube(), StlFormat.ASCII, "layer-Cyan").decode("ascii")
        lines = text.strip().split("\n")
        assert lines[0] == "solid layer-Cyan"
        assert lines[-1] == "endsolid layer-Cyan"
        assert text.count("facet normal") == 12
        assert text.count("vertex") == 36

    def test_binary_layout(self):
        data = stl_bytes(_cube(), StlFormat.BINARY)
        assert len(data) == 84 + 50 * 12
        (count,) = struct.unpack("<I", data[80:84])
        assert count == 12

    def test_write_single_file(self, tmp_path):
        path = tmp_path / "cube.stl"
        write_stl(_cube(), str(path))
        assert path.read_text(encoding="ascii").startswith("solid cube")


class TestExportBundle:

    def test_units_in_archive(self, tmp_path):
        path = tmp_path / "out.zip"
        export_bundle([("layer-plate", _cube()), ("layer-Cyan", _cube())], str(path),
                      extras={"preview.png": b"png"})
        with zipfile.ZipFile(path) as zf:
            assert sorted(zf.namelist()) == ["layer-Cyan.stl", "layer-plate.stl", "preview.png"]
            assert zf.read("layer-Cyan.stl").startswith(b"solid layer-Cyan")

    def test_empty_units_skipped(self, tmp_path):
        path = tmp_path / "out.zip"
        export_bundle([("layer-plate", _cube()), ("layer-texture", None)], str(path))
        with zipfile.ZipFile(path) as zf:
            assert zf.namelist() == ["layer-plate.stl"]

    def test_binary_entries(self, tmp_path):
        path = tmp_path / "out.zip"
        export_bundle([("layer-plate", _cube())], str(path), StlFormat.BINARY)
        with zipfile.ZipFile(path) as zf:
            assert len(zf.read("layer-plate.stl")) == 84 + 50 * 12

    def test_creates_missing_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "out.zip"
        export_bundle([("layer-plate", _cube())], str(path))
        assert path.exists()

    def test_failure_leaves_nothing_behind(self, tmp_path, monkeypatch):
        def broken(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(stl_export, "stl_bytes", broken)
        path = tmp_path / "out.zip"
        with pytest.raises(ExportError):
            export_bundle([("layer-plate", _cube())], str(path))
        assert os.listdir(tmp_path) == []

    def test_unwritable_target_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(ExportError):
            export_bundle([("layer-plate", _cube())], str(blocker / "out.zip"))

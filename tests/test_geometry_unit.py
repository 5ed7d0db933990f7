"""
ChromaLitho - 网格生成单元测试
Run-length color layers, support plate, relief height field and the
cylindrical curve.
"""

import numpy as np
import pytest

from config import StackingMode
from litho.color import Hsl
from litho.color_layer import contribution_tables, filament_boxes, generate_color_layers
from litho.geometry import apply_curve, boxes_to_mesh, curve_vertices, row_runs
from litho.palette import ColorCombi, ColorLayer, Filament, FilamentLayerSample, Palette
from litho.quantizer import TRANSPARENT
from litho.support_plate import generate_support_plate
from litho.texture_layer import active_cells, generate_texture_layer


PITCH = 0.8
LAYER = 0.1
CYAN = "#00B7EB"
WHITE = "#FFFFFF"


def _layer(key, height, l=50):
    return ColorLayer(key, height, Hsl(193, 100, l).to_cmyk())


def _palette(combinations, n):
    keys = []
    for combi in combinations:
        for k in combi.filament_keys:
            if k not in keys:
                keys.append(k)
    filaments = tuple(
        Filament(k, "White" if k == WHITE else "Cyan", True,
                 {n: FilamentLayerSample(k, n, Hsl(0, 0, 90))})
        for k in sorted(keys, key=lambda k: (k != WHITE, k))
    )
    return Palette(filaments, list(combinations), n, StackingMode.ADDITIVE)


# ========== row_runs ==========

class TestRowRuns:

    def test_merges_equal_neighbours(self):
        starts, ends, values = row_runs(np.array([3, 3, 3, 1]), np.ones(4, bool))
        assert starts.tolist() == [0, 3]
        assert ends.tolist() == [3, 4]
        assert values.tolist() == [3, 1]

    def test_invalid_cells_break_runs(self):
        starts, ends, _ = row_runs(np.array([2, 2, 2, 2]), np.array([True, False, True, True]))
        assert list(zip(starts.tolist(), ends.tolist())) == [(0, 1), (2, 4)]

    def test_empty_row(self):
        starts, _, _ = row_runs(np.array([], dtype=int), np.array([], dtype=bool))
        assert len(starts) == 0


# ========== Color layers ==========

class TestColorLayer:

    def test_opaque_next_to_transparent_is_one_cuboid(self):
        """2x1 image: left pixel → combination 0 (Cyan x2), right pixel transparent."""
        palette = _palette([ColorCombi((_layer(CYAN, 2),))], 2)
        indices = np.array([[0, TRANSPARENT]], dtype=np.int32)

        meshes = generate_color_layers(indices, palette, PITCH, LAYER)
        mesh = meshes[CYAN]
        assert len(mesh.faces) == 12
        np.testing.assert_allclose(mesh.bounds, [[0, 0, 0], [PITCH, PITCH, 2 * LAYER]])

    def test_identical_run_merges(self):
        heights, offsets = np.array([2]), np.array([0])
        indices = np.zeros((1, 4), dtype=np.int32)
        boxes = filament_boxes(indices, heights, offsets, PITCH, LAYER)
        assert len(boxes) == 1
        np.testing.assert_allclose(boxes[0], [0, 4 * PITCH, 0, PITCH, 0, 2 * LAYER])

    def test_different_offsets_break_runs(self):
        """Same Cyan height but sitting at different Z does not merge."""
        a = ColorCombi((_layer(WHITE, 3), _layer(CYAN, 2)))
        b = ColorCombi((_layer(WHITE, 1), _layer(CYAN, 2), _layer("#123456", 2)))
        palette = _palette([a, b], 5)
        heights, offsets = contribution_tables(palette, CYAN)
        assert heights.tolist() == [2, 2]
        assert offsets.tolist() == [3, 1]

        boxes = filament_boxes(np.array([[0, 1]], dtype=np.int32), heights, offsets, PITCH, LAYER)
        assert len(boxes) == 2

    def test_runs_restart_every_row(self):
        indices = np.zeros((3, 2), dtype=np.int32)
        boxes = filament_boxes(indices, np.array([1]), np.array([0]), PITCH, LAYER)
        assert len(boxes) == 3
        assert sorted(boxes[:, 2].tolist()) == pytest.approx([0, PITCH, 2 * PITCH])

    def test_unused_filament_is_left_out(self):
        palette = _palette([ColorCombi((_layer(WHITE, 2),)), ColorCombi((_layer(CYAN, 2),))], 2)
        indices = np.array([[1, 1]], dtype=np.int32)
        meshes = generate_color_layers(indices, palette, PITCH, LAYER)
        assert list(meshes) == [CYAN]

    def test_parallel_matches_inline(self):
        a = ColorCombi((_layer(WHITE, 3), _layer(CYAN, 2)))
        b = ColorCombi((_layer(WHITE, 5),))
        c = ColorCombi((_layer(CYAN, 5),))
        palette = _palette([a, b, c], 5)
        rng = np.random.default_rng(3)
        indices = rng.integers(-1, 3, size=(9, 11)).astype(np.int32)

        inline = generate_color_layers(indices, palette, PITCH, LAYER, workers=1)
        pooled = generate_color_layers(indices, palette, PITCH, LAYER, workers=2)
        assert list(inline) == list(pooled)
        for key in inline:
            np.testing.assert_allclose(inline[key].vertices, pooled[key].vertices)

    def test_cuboids_are_closed(self):
        mesh = boxes_to_mesh([[0, 1, 0, 1, 0, 1], [1, 2, 0, 1, 0, 2]])
        assert mesh.is_watertight
        assert mesh.volume == pytest.approx(3.0)


# ========== Support plate ==========

class TestSupportPlate:

    def test_opaque_image_is_single_box(self):
        plate = generate_support_plate(np.ones((4, 6), bool), PITCH, 0.2)
        assert len(plate.faces) == 12
        np.testing.assert_allclose(plate.bounds, [[0, 0, -0.2], [6 * PITCH, 4 * PITCH, 0]])

    def test_transparent_pixels_become_holes(self):
        opaque = np.ones((3, 3), bool)
        opaque[1, 1] = False
        plate = generate_support_plate(opaque, 1.0, 0.5)
        assert plate.volume == pytest.approx(8 * 0.5)

    def test_nothing_opaque(self):
        assert generate_support_plate(np.zeros((2, 2), bool), PITCH, 0.2) is None


# ========== Relief height field ==========

class TestTextureLayer:

    def test_single_cell_is_closed_prism(self):
        heights = np.full((2, 2), 1.0)
        mesh = generate_texture_layer(heights, np.ones((2, 2), bool), 0.5)
        # 2 top + 2 bottom + 4 walls x 2
        assert len(mesh.faces) == 12
        assert mesh.is_watertight
        assert mesh.volume == pytest.approx(0.25 * 1.0)

    def test_base_z_offsets_underside(self):
        mesh = generate_texture_layer(np.full((3, 3), 0.3), np.ones((3, 3), bool), 0.25, base_z=0.5)
        assert mesh.bounds[0][2] == pytest.approx(0.5)
        assert mesh.bounds[1][2] == pytest.approx(0.8)

    def test_all_transparent_skipped(self):
        assert generate_texture_layer(np.full((3, 3), 0.3), np.zeros((3, 3), bool), 0.25) is None

    def test_cells_with_any_opaque_corner_are_kept(self):
        opaque = np.zeros((3, 3), bool)
        opaque[0, 0] = True
        cells = active_cells(opaque)
        assert cells.tolist() == [[True, False], [False, False]]

    def test_diagonal_contact_is_joined(self):
        opaque = np.zeros((3, 3), bool)
        opaque[0, 0] = opaque[2, 2] = True
        assert active_cells(opaque).tolist() == [[True, False], [True, True]]
        mesh = generate_texture_layer(np.full((3, 3), 0.3), opaque, 0.25)
        assert mesh.is_watertight
        assert mesh.volume == pytest.approx(3 * 0.25 ** 2 * 0.3)

    def test_anti_diagonal_contact_is_joined(self):
        opaque = np.zeros((3, 3), bool)
        opaque[0, 2] = opaque[2, 0] = True
        assert active_cells(opaque).tolist() == [[True, True], [True, False]]
        mesh = generate_texture_layer(np.full((3, 3), 0.3), opaque, 0.25)
        assert mesh.is_watertight

    def test_checkerboard_cells_become_closed(self):
        opaque = np.zeros((7, 7), bool)
        opaque[::4, ::4] = True
        opaque[2::4, 2::4] = True
        mesh = generate_texture_layer(np.full((7, 7), 0.4), opaque, 0.25)
        assert mesh.is_watertight
        assert mesh.volume > 0

    def test_transparent_hole_in_middle_keeps_all_cells(self):
        opaque = np.ones((3, 3), bool)
        opaque[1, 1] = False
        assert active_cells(opaque).all()

    def test_volume_matches_triangulated_prisms(self):
        rng = np.random.default_rng(11)
        heights = rng.uniform(0.3, 1.8, size=(5, 6))
        pitch = 0.25
        mesh = generate_texture_layer(heights, np.ones((5, 6), bool), pitch)
        h00, h10 = heights[:-1, :-1], heights[:-1, 1:]
        h01, h11 = heights[1:, :-1], heights[1:, 1:]
        expected = (pitch ** 2 / 2) * ((h00 + h10 + h11) / 3 + (h00 + h11 + h01) / 3)
        assert mesh.is_watertight
        assert mesh.volume == pytest.approx(expected.sum())

    def test_too_small_grid(self):
        assert generate_texture_layer(np.ones((1, 5)), np.ones((1, 5), bool), 0.25) is None


# ========== Cylindrical curve ==========

class TestCurve:

    def test_zero_angle_is_pass_through(self):
        mesh = boxes_to_mesh([0, 10, 0, 5, 0, 1])
        assert apply_curve(mesh, 0, 10) is mesh

    def test_origin_unchanged(self):
        out = curve_vertices(np.array([[0.0, 3.0, 0.7]]), 90, 10)
        np.testing.assert_allclose(out, [[0.0, 3.0, 0.7]], atol=1e-12)

    def test_arc_length_preserved(self):
        width = 40.0
        xs = np.linspace(0, width, 2001)
        pts = np.stack([xs, np.zeros_like(xs), np.zeros_like(xs)], axis=1)
        curved = curve_vertices(pts, 120, width)
        chord_sum = np.linalg.norm(np.diff(curved, axis=0), axis=1).sum()
        assert chord_sum == pytest.approx(width, rel=1e-4)

    def test_points_lie_on_cylinder(self):
        width, angle = 30.0, 360.0
        radius = width / (2 * np.pi)
        xs = np.linspace(0, width, 50)
        pts = np.stack([xs, np.ones_like(xs), np.zeros_like(xs)], axis=1)
        curved = curve_vertices(pts, angle, width)
        np.testing.assert_allclose(curved[:, 0] ** 2 + (curved[:, 2] - radius) ** 2, radius ** 2)
        np.testing.assert_allclose(curved[:, 1], 1.0)

    def test_curve_keeps_face_count(self):
        mesh = boxes_to_mesh([0, 10, 0, 5, 0, 1])
        curved = apply_curve(mesh, 45, 10)
        assert len(curved.faces) == len(mesh.faces)
        assert curved is not mesh

"""
ChromaLitho - Texture (Relief) Layer
浮雕层网格生成模块

Height field with one vertex per pixel. Each cell between four neighboring
pixels becomes two top triangles and two bottom triangles; every cell edge
not shared with another active cell gets a vertical wall, so the solid is
closed. Cells whose four corners are transparent are skipped, and two cells
that touch only at a corner get one neighbor filled so every wall edge is
shared by exactly two faces.
"""

from typing import Optional

import numpy as np
import trimesh


def active_cells(opaque: np.ndarray) -> np.ndarray:
    """
    (H-1, W-1) mask of cells with at least one opaque corner.

    Diagonal-only contacts are joined by switching on one of the two empty
    cells of the 2x2 block; repeated until no such block is left.
    """
    cells = opaque[:-1, :-1] | opaque[:-1, 1:] | opaque[1:, :-1] | opaque[1:, 1:]
    while True:
        a, b = cells[:-1, :-1], cells[:-1, 1:]
        c, d = cells[1:, :-1], cells[1:, 1:]
        diag = a & d & ~b & ~c
        anti = b & c & ~a & ~d
        if not (diag.any() or anti.any()):
            return cells
        cells[1:, :-1] |= diag
        cells[:-1, :-1] |= anti


def _wall_faces(a: np.ndarray, b: np.ndarray, offset: int) -> np.ndarray:
    """Two outward triangles per boundary edge a→b (top ids; bottom = id + offset)."""
    ba, bb = a + offset, b + offset
    first = np.stack([ba, bb, b], axis=1)
    second = np.stack([ba, b, a], axis=1)
    return np.concatenate([first, second])


def generate_texture_layer(heights: np.ndarray, opaque: np.ndarray, pitch: float,
                           base_z: float = 0.0) -> Optional[trimesh.Trimesh]:
    """
    Build the relief solid.

    Args:
        heights: (H, W) relief thickness per pixel in mm (row 0 = bottom)
        opaque: (H, W) bool, transparent corners must already be at min thickness
        pitch: Distance between vertices in mm
        base_z: Z of the flat underside

    Returns:
        trimesh.Trimesh or None when no cell is active
    """
    rows, cols = heights.shape
    if rows < 2 or cols < 2:
        return None

    cells = active_cells(opaque)
    if not np.any(cells):
        return None

    ys, xs = np.mgrid[0:rows, 0:cols]
    top = np.stack([xs * pitch, ys * pitch, base_z + heights], axis=-1).reshape(-1, 3)
    bottom = np.stack([xs * pitch, ys * pitch, np.full(heights.shape, base_z)], axis=-1).reshape(-1, 3)
    vertices = np.vstack([top, bottom]).astype(np.float64)
    offset = rows * cols

    cy, cx = np.nonzero(cells)
    v00 = cy * cols + cx
    v10 = v00 + 1
    v01 = v00 + cols
    v11 = v01 + 1

    faces = [
        # top, counter-clockwise from +Z
        np.stack([v00, v10, v11], axis=1),
        np.stack([v00, v11, v01], axis=1),
        # bottom, reversed
        np.stack([v00, v11, v10], axis=1) + offset,
        np.stack([v00, v01, v11], axis=1) + offset,
    ]

    padded = np.pad(cells, 1, mode='constant', constant_values=False)
    py, px = cy + 1, cx + 1
    edges = [
        (~padded[py - 1, px], v00, v10),  # south
        (~padded[py, px + 1], v10, v11),  # east
        (~padded[py + 1, px], v11, v01),  # north
        (~padded[py, px - 1], v01, v00),  # west
    ]
    wall_count = 0
    for boundary, a, b in edges:
        if np.any(boundary):
            faces.append(_wall_faces(a[boundary], b[boundary], offset))
            wall_count += int(boundary.sum())

    mesh = trimesh.Trimesh(vertices=vertices, faces=np.concatenate(faces), process=False)
    mesh.remove_unreferenced_vertices()
    print(f"[TEXTURE] {len(cy)} cells, {wall_count} wall edges, {len(mesh.faces)} triangles")
    return mesh

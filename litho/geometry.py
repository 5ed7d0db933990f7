"""
ChromaLitho - Geometry Utilities
几何工具模块 - 长方体网格、行程合并与圆柱弯曲
"""

from typing import Optional, Tuple

import numpy as np
import trimesh


# Vertex order per cuboid:
#   0..3 bottom (x0,y0) (x1,y0) (x1,y1) (x0,y1), 4..7 same corners on top.
# Counter-clockwise seen from outside.
CUBE_FACES = np.array([
    [0, 2, 1], [0, 3, 2], [4, 5, 6], [4, 6, 7],
    [0, 1, 5], [0, 5, 4], [1, 2, 6], [1, 6, 5],
    [2, 3, 7], [2, 7, 6], [3, 0, 4], [3, 4, 7]
], dtype=np.int64)


def row_runs(keys: np.ndarray, valid: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Split one row into maximal runs of equal, valid keys.

    Args:
        keys: (W,) non-negative int codes
        valid: (W,) bool, invalid cells break runs and are dropped

    Returns:
        (starts, ends, values): half-open [start, end) runs
    """
    n = len(keys)
    if n == 0:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty, empty
    k = np.where(valid, keys, -1).astype(np.int64)
    boundaries = np.flatnonzero(np.diff(k) != 0) + 1
    starts = np.concatenate([[0], boundaries])
    ends = np.concatenate([boundaries, [n]])
    values = k[starts]
    keep = values >= 0
    return starts[keep], ends[keep], values[keep]


def cuboid_arrays(bounds: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Vertices/faces for N axis-aligned boxes.

    Args:
        bounds: (N, 6) float array of x0, x1, y0, y1, z0, z1

    Returns:
        (vertices (8N, 3), faces (12N, 3))
    """
    bounds = np.asarray(bounds, dtype=np.float64).reshape(-1, 6)
    x0, x1, y0, y1, z0, z1 = bounds.T
    corners = np.stack([
        np.stack([x0, y0, z0], axis=1), np.stack([x1, y0, z0], axis=1),
        np.stack([x1, y1, z0], axis=1), np.stack([x0, y1, z0], axis=1),
        np.stack([x0, y0, z1], axis=1), np.stack([x1, y0, z1], axis=1),
        np.stack([x1, y1, z1], axis=1), np.stack([x0, y1, z1], axis=1),
    ], axis=1)
    vertices = corners.reshape(-1, 3)
    offsets = (np.arange(len(bounds)) * 8)[:, None, None]
    faces = (CUBE_FACES[None, :, :] + offsets).reshape(-1, 3)
    return vertices, faces


def boxes_to_mesh(bounds) -> Optional[trimesh.Trimesh]:
    """
    Build one mesh out of independent closed boxes.

    Boxes keep their own vertices so that touching boxes stay separate
    closed shells (no shared non-manifold edges).
    """
    bounds = np.asarray(bounds, dtype=np.float64).reshape(-1, 6)
    if len(bounds) == 0:
        return None
    vertices, faces = cuboid_arrays(bounds)
    return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Cylindrical curve
# ═══════════════════════════════════════════════════════════════════════════════

def curve_vertices(vertices: np.ndarray, angle_deg: float, width: float) -> np.ndarray:
    """
    Wrap X onto an arc of ``angle_deg`` degrees whose length is ``width``.

    x' = r·sin(a), z' = r·(1 − cos(a)) + z with a = (x / width)·θ and
    r = width·360 / (θ·2π). Y is unchanged.
    """
    vertices = np.asarray(vertices, dtype=np.float64)
    if angle_deg == 0 or width <= 0 or len(vertices) == 0:
        return vertices.copy()

    theta = np.radians(angle_deg)
    radius = width * 360.0 / (angle_deg * 2.0 * np.pi)
    a = vertices[:, 0] / width * theta

    curved = vertices.copy()
    curved[:, 0] = radius * np.sin(a)
    curved[:, 2] = radius * (1.0 - np.cos(a)) + vertices[:, 2]
    return curved


def apply_curve(mesh: Optional[trimesh.Trimesh], angle_deg: float,
                width: float) -> Optional[trimesh.Trimesh]:
    """Return a curved copy of ``mesh`` (the input itself when angle is 0)."""
    if mesh is None or angle_deg == 0:
        return mesh
    return trimesh.Trimesh(
        vertices=curve_vertices(mesh.vertices, angle_deg, width),
        faces=np.asarray(mesh.faces).copy(),
        process=False,
    )

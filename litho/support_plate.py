"""
ChromaLitho - Support Plate
底板生成模块 - z ∈ [-thickness, 0]，透明像素下方留空
"""

from typing import Optional

import numpy as np
import trimesh

from litho.geometry import boxes_to_mesh, row_runs


def generate_support_plate(opaque: np.ndarray, pitch: float,
                           thickness: float) -> Optional[trimesh.Trimesh]:
    """
    Backing plate under the opaque footprint.

    Without transparency this is a single box over the whole image;
    otherwise opaque pixels are run-length merged per row so transparent
    regions become through-holes.

    Args:
        opaque: (H, W) bool
        pitch: Pixel size in mm
        thickness: Plate thickness in mm

    Returns:
        trimesh.Trimesh or None when nothing is opaque
    """
    rows, cols = opaque.shape
    if rows == 0 or cols == 0 or not np.any(opaque):
        return None

    if np.all(opaque):
        print(f"[PLATE] Solid plate {cols * pitch:.1f}x{rows * pitch:.1f}mm")
        return boxes_to_mesh([0.0, cols * pitch, 0.0, rows * pitch, -thickness, 0.0])

    bounds = []
    zeros = np.zeros(cols, dtype=np.int64)
    for y in range(rows):
        starts, ends, _ = row_runs(zeros, opaque[y])
        for start, end in zip(starts, ends):
            bounds.append([start * pitch, end * pitch, y * pitch, (y + 1) * pitch, -thickness, 0.0])

    print(f"[PLATE] Plate with cutouts: {len(bounds)} strips")
    return boxes_to_mesh(np.array(bounds))

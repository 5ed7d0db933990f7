"""
ChromaLitho - Color Layer Generator
色层网格生成模块 - 每种耗材一个由行程合并长方体组成的实体

For one filament, consecutive pixels in a row whose combinations give that
filament the same height and the same Z offset are merged into one cuboid.
Runs never cross transparent pixels or row ends.
"""

import multiprocessing as mp
from typing import Dict, List, Optional, Tuple

import numpy as np
import trimesh

from litho.geometry import boxes_to_mesh, row_runs
from litho.palette import Palette
from litho.quantizer import TRANSPARENT


def contribution_tables(palette: Palette, filament_key: str) -> Tuple[np.ndarray, np.ndarray]:
    """Per-combination (height, z offset) of one filament, in layers."""
    heights = np.zeros(len(palette.combinations), dtype=np.int64)
    offsets = np.zeros(len(palette.combinations), dtype=np.int64)
    for i, combi in enumerate(palette.combinations):
        heights[i], offsets[i] = combi.contribution(filament_key)
    return heights, offsets


def filament_boxes(indices: np.ndarray, heights: np.ndarray, offsets: np.ndarray,
                   pitch: float, layer_thickness: float) -> np.ndarray:
    """
    Run-length merged boxes for one filament.

    Args:
        indices: (H, W) int32 quantized grid (TRANSPARENT = -1)
        heights: (C,) filament height per combination (0 = not used)
        offsets: (C,) filament Z offset per combination
        pitch: Pixel size in mm
        layer_thickness: Layer height in mm

    Returns:
        np.ndarray: (N, 6) x0, x1, y0, y1, z0, z1
    """
    rows, cols = indices.shape
    if rows == 0 or cols == 0:
        return np.zeros((0, 6))

    opaque = indices != TRANSPARENT
    safe = np.where(opaque, indices, 0)
    pixel_height = np.where(opaque, heights[safe], 0)
    pixel_offset = np.where(opaque, offsets[safe], 0)

    stride = int(offsets.max(initial=0)) + 1
    code = pixel_height * stride + pixel_offset
    valid = pixel_height > 0

    # A trailing invalid column per row keeps runs inside their row
    padded_code = np.hstack([code, np.zeros((rows, 1), dtype=code.dtype)]).reshape(-1)
    padded_valid = np.hstack([valid, np.zeros((rows, 1), dtype=bool)]).reshape(-1)
    starts, ends, values = row_runs(padded_code, padded_valid)
    if len(starts) == 0:
        return np.zeros((0, 6))

    row = starts // (cols + 1)
    x_start = starts % (cols + 1)
    x_end = x_start + (ends - starts)
    height = values // stride
    offset = values % stride

    return np.stack([
        x_start * pitch, x_end * pitch,
        row * pitch, (row + 1) * pitch,
        offset * layer_thickness, (offset + height) * layer_thickness,
    ], axis=1).astype(np.float64)


def _filament_task(task) -> Tuple[str, np.ndarray]:
    """Worker: boxes for one filament."""
    key, indices, heights, offsets, pitch, thickness = task
    return key, filament_boxes(indices, heights, offsets, pitch, thickness)


def generate_color_layers(indices: np.ndarray, palette: Palette, pitch: float,
                          layer_thickness: float,
                          workers: int = 1) -> Dict[str, Optional[trimesh.Trimesh]]:
    """
    Build one mesh per used filament.

    Returns:
        dict: filament key → mesh, in stacking order; filaments absent
            from the quantized image are left out
    """
    used = np.unique(indices[indices != TRANSPARENT])
    keys = []
    for key in palette.used_filament_keys():
        if any(palette.combinations[i].contribution(key)[0] > 0 for i in used):
            keys.append(key)

    tasks = []
    for key in keys:
        heights, offsets = contribution_tables(palette, key)
        tasks.append((key, indices, heights, offsets, pitch, layer_thickness))

    results: List[Tuple[str, np.ndarray]] = []
    if workers <= 1 or len(tasks) <= 1:
        results = [_filament_task(t) for t in tasks]
    else:
        with mp.Pool(processes=min(workers, len(tasks))) as pool:
            results = list(pool.imap(_filament_task, tasks))

    meshes: Dict[str, Optional[trimesh.Trimesh]] = {}
    for key, bounds in results:
        meshes[key] = boxes_to_mesh(bounds)
        print(f"[COLOR_LAYER] {palette.filament_name(key)}: {len(bounds)} cuboids")
    return meshes

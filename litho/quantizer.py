"""
ChromaLitho - Quantization Engine
色彩量化模块 - 将每个不透明像素映射到最接近的色层组合

Output grid holds the combination index per pixel, TRANSPARENT (-1) for
pixels without a color stack.
"""

import multiprocessing as mp
from typing import List, Sequence, Tuple

import numpy as np
from scipy.spatial.distance import cdist

from config import ColorDistanceMethod
from litho.color import Rgb, to_distance_space


TRANSPARENT = -1

# Pixels per cdist call; bounds the temporary distance matrix
_CHUNK_PIXELS = 4096


def nearest_indices(points: np.ndarray, targets: np.ndarray) -> np.ndarray:
    """
    Index of the nearest target for every point (first minimum wins on ties).

    Args:
        points: (P, 3) float array in distance space
        targets: (C, 3) float array in the same space

    Returns:
        np.ndarray: (P,) int32
    """
    result = np.empty(len(points), dtype=np.int32)
    for start in range(0, len(points), _CHUNK_PIXELS):
        chunk = points[start:start + _CHUNK_PIXELS]
        dist = cdist(chunk, targets, metric="sqeuclidean")
        result[start:start + len(chunk)] = np.argmin(dist, axis=1)
    return result


def _quantize_band(task) -> Tuple[int, np.ndarray]:
    """Worker: quantize one horizontal band of rows."""
    row_start, rgb_band, opaque_band, targets, method = task
    out = np.full(opaque_band.shape, TRANSPARENT, dtype=np.int32)
    if not np.any(opaque_band):
        return row_start, out

    colors = rgb_band[opaque_band]
    unique, inverse = np.unique(colors, axis=0, return_inverse=True)
    points = to_distance_space(unique, method)
    out[opaque_band] = nearest_indices(points, targets)[inverse.reshape(-1)]
    return row_start, out


def _split_bands(height: int, workers: int) -> List[Tuple[int, int]]:
    # Several bands per worker keeps the pool busy on uneven images
    bands = max(1, min(height, workers * 4))
    edges = np.linspace(0, height, bands + 1).astype(int)
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


def quantize_pixels(rgb: np.ndarray, opaque: np.ndarray, colors: Sequence[Rgb],
                    method: ColorDistanceMethod = ColorDistanceMethod.PERCEPTUAL,
                    workers: int = 1) -> np.ndarray:
    """
    Map every opaque pixel to the index of its closest palette color.

    The result is identical for any worker count: bands cover disjoint rows
    and ties always resolve to the lowest index.

    Args:
        rgb: (H, W, 3) uint8 image
        opaque: (H, W) bool mask, False → TRANSPARENT
        colors: Palette colors, index-aligned with the combinations
        method: Distance metric
        workers: Process count (<= 1 runs inline)

    Returns:
        np.ndarray: (H, W) int32 combination indices
    """
    if len(colors) == 0:
        raise ValueError("cannot quantize against an empty palette")

    rgb = np.asarray(rgb, dtype=np.uint8)[..., :3]
    opaque = np.asarray(opaque, dtype=bool)
    h, w = opaque.shape
    result = np.full((h, w), TRANSPARENT, dtype=np.int32)
    if h == 0 or w == 0:
        return result

    target_rgb = np.array([c.as_tuple() for c in colors], dtype=np.uint8)
    targets = to_distance_space(target_rgb, method)

    tasks = [
        (start, rgb[start:end], opaque[start:end], targets, method)
        for start, end in _split_bands(h, workers)
    ]

    if workers <= 1 or len(tasks) == 1:
        results = map(_quantize_band, tasks)
        for row_start, band in results:
            result[row_start:row_start + band.shape[0]] = band
    else:
        with mp.Pool(processes=min(workers, len(tasks))) as pool:
            for row_start, band in pool.imap(_quantize_band, tasks):
                result[row_start:row_start + band.shape[0]] = band

    opaque_count = int(opaque.sum())
    used = len(np.unique(result[result != TRANSPARENT]))
    print(f"[QUANTIZE] {opaque_count} pixels → {used}/{len(colors)} combinations "
          f"({method.value}, {workers} worker(s))")
    return result


def render_quantized(indices: np.ndarray, colors: Sequence[Rgb]) -> np.ndarray:
    """
    Paint a quantized grid with its palette colors.

    Returns:
        np.ndarray: (H, W, 4) uint8 RGBA, transparent where index is TRANSPARENT
    """
    h, w = indices.shape
    lut = np.array([c.as_tuple() + (255,) for c in colors] + [(0, 0, 0, 0)], dtype=np.uint8)
    # TRANSPARENT (-1) picks the trailing clear entry
    return lut[indices.reshape(-1)].reshape(h, w, 4)

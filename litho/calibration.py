"""
ChromaLitho - Calibration Pattern Generator
校准板生成模块

One row of squares per active filament, one column per layer count 1..N,
on a shared backing plate. Printing it and measuring every square gives
the HSL samples of the palette file.
"""

import os
from typing import List, Optional, Sequence, Tuple

import numpy as np
import trimesh

from config import OUTPUT_DIR, LithophaneConfig, PrinterConfig
from litho.errors import PaletteError
from litho.geometry import boxes_to_mesh
from litho.naming import calibration_unit_name, generate_calibration_filename
from litho.palette import Filament
from litho.stl_export import export_bundle


def calibration_grid_dimensions(num_filaments: int, layer_count: int,
                                square: float = PrinterConfig.CALIBRATION_SQUARE_SIZE,
                                gap: float = PrinterConfig.CALIBRATION_GAP) -> Tuple[float, float]:
    """Plate width (columns = layer counts) and depth (rows = filaments) in mm."""
    width = layer_count * square + max(layer_count - 1, 0) * gap
    depth = num_filaments * square + max(num_filaments - 1, 0) * gap
    return width, depth


def _row_boxes(row_idx: int, layer_count: int, layer_thickness: float,
               square: float, gap: float) -> np.ndarray:
    """Squares 1..N layers tall for one filament row."""
    y0 = row_idx * (square + gap)
    bounds = []
    for n in range(1, layer_count + 1):
        x0 = (n - 1) * (square + gap)
        bounds.append([x0, x0 + square, y0, y0 + square, 0.0, n * layer_thickness])
    return np.array(bounds)


def generate_calibration_pattern(
    filaments: Sequence[Filament],
    config: LithophaneConfig,
) -> List[Tuple[str, Optional[trimesh.Trimesh]]]:
    """
    Build the calibration plate and one mesh per active filament.

    Args:
        filaments: Palette filaments (inactive ones are ignored)
        config: Supplies layer count, layer thickness and plate thickness

    Returns:
        list[(unit name, mesh)]: plate first, then filaments in key order
    """
    active = sorted((f for f in filaments if f.active), key=lambda f: f.key)
    if not active:
        raise PaletteError("calibration needs at least one active filament")

    square = PrinterConfig.CALIBRATION_SQUARE_SIZE
    gap = PrinterConfig.CALIBRATION_GAP
    n = config.color_pixel_layer_number
    width, depth = calibration_grid_dimensions(len(active), n, square, gap)

    units = [("calibration-plate",
              boxes_to_mesh([0.0, width, 0.0, depth, -config.plate_thickness, 0.0]))]

    for row_idx, filament in enumerate(active):
        boxes = _row_boxes(row_idx, n, config.color_pixel_layer_thickness, square, gap)
        units.append((calibration_unit_name(filament.name, filament.key), boxes_to_mesh(boxes)))
        print(f"[CALIBRATION] Row {row_idx + 1}: {filament.name} (1..{n} layers)")

    print(f"[CALIBRATION] Plate {width:.0f}x{depth:.0f}mm, {len(active)} filaments")
    return units


def export_calibration(filaments: Sequence[Filament], config: LithophaneConfig,
                       output_path: Optional[str] = None) -> str:
    """Generate the calibration pattern and write it as an STL bundle."""
    config.validate()
    units = generate_calibration_pattern(filaments, config)
    if output_path is None:
        output_path = os.path.join(OUTPUT_DIR, generate_calibration_filename(
            config.color_pixel_layer_number))
    return export_bundle(units, output_path, config.stl_format)

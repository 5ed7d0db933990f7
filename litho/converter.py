"""
ChromaLitho - Lithophane Converter Coordinator

Coordinates modules to turn an image and a filament palette into an STL bundle:
1. Prepare the palette of combinations (cached per generator)
2. Resample the image and quantize it against the palette
3. Build color layers, relief, backing plate and apply the curve
4. Export every unit into one ZIP archive
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import trimesh
from PIL import Image

from config import OUTPUT_DIR, LithophaneConfig
from litho.color_layer import generate_color_layers
from litho.combinations import CombinationCache
from litho.geometry import apply_curve
from litho.heightmap import ReliefMapper
from litho.image_processing import PixelGrid, check_ratio, image_to_grid, load_image
from litho.naming import PLATE_UNIT, TEXTURE_UNIT, filament_unit_name, generate_bundle_filename
from litho.palette import Filament, Palette
from litho.palette_loader import load_palette, validate_completeness
from litho.quantizer import quantize_pixels, render_quantized
from litho.stl_export import export_bundle, png_bytes
from litho.support_plate import generate_support_plate
from litho.texture_layer import active_cells, generate_texture_layer


@dataclass
class LithophaneResult:
    """Everything produced for one image, before export."""
    units: List[Tuple[str, Optional[trimesh.Trimesh]]]
    palette: Optional[Palette] = None
    indices: Optional[np.ndarray] = None
    preview: Optional[Image.Image] = None
    warnings: List[str] = field(default_factory=list)

    def unit(self, name: str) -> Optional[trimesh.Trimesh]:
        for unit_name, mesh in self.units:
            if unit_name == name:
                return mesh
        raise KeyError(name)


class LithophaneGenerator:
    """
    Pipeline orchestrator.

    Holds its own CombinationCache so repeated runs with the same palette
    and settings skip the combination search.
    """

    def __init__(self, config: LithophaneConfig, cache: Optional[CombinationCache] = None):
        config.validate()
        self.config = config
        self.cache = cache if cache is not None else CombinationCache()

    def prepare_palette(self, filaments: Sequence[Filament]) -> Palette:
        cfg = self.config
        return self.cache.get_or_build(
            filaments, cfg.color_pixel_layer_number, cfg.stacking_mode, cfg.ams_slots
        )

    # ─── color part ──────────────────────────────────────────────────────────

    def _color_units(self, grid: PixelGrid, palette: Palette):
        cfg = self.config
        print(f"[CONVERTER] Color grid {grid.width}x{grid.height} @ {grid.pitch}mm, "
              f"{len(palette)} combinations")
        indices = quantize_pixels(
            grid.rgb, grid.opaque, palette.colors(), cfg.color_distance_method, cfg.workers
        )
        meshes = generate_color_layers(
            indices, palette, grid.pitch, cfg.color_pixel_layer_thickness, cfg.workers
        )
        units = []
        seen = set()
        for key, mesh in meshes.items():
            name = filament_unit_name(palette.filament_name(key), key)
            if name in seen:
                # Two filaments sharing a display name
                name = filament_unit_name(f"{palette.filament_name(key)}_{key}", key)
            seen.add(name)
            units.append((name, mesh))
        return units, indices

    # ─── relief part ─────────────────────────────────────────────────────────

    def _texture_unit(self, grid: PixelGrid, warnings: List[str]) -> Optional[trimesh.Trimesh]:
        cfg = self.config
        print(f"[CONVERTER] Relief grid {grid.width}x{grid.height} vertices @ {grid.pitch}mm")
        relief = ReliefMapper.build(
            grid.luminance(), grid.opaque,
            cfg.texture_min_thickness, cfg.texture_max_thickness, cfg.texture_darker_thicker,
        )
        warnings.extend(relief['warnings'])
        return generate_texture_layer(
            relief['height_matrix'], grid.opaque, grid.pitch, base_z=cfg.total_color_height
        )

    # ─── full pipeline ───────────────────────────────────────────────────────

    def generate(self, image: Image.Image, filaments: Sequence[Filament] = ()) -> LithophaneResult:
        """
        Build every mesh for one image.

        Args:
            image: Source image (any PIL mode, converted to RGBA)
            filaments: Palette filaments, required when color layers are enabled

        Returns:
            LithophaneResult: units in export order (plate, color layers, texture)
        """
        cfg = self.config
        image = image.convert("RGBA")
        warnings: List[str] = []

        ratio_warning = check_ratio(image.width, image.height, cfg.dest_width_mm, cfg.dest_height_mm)
        if ratio_warning:
            warnings.append(ratio_warning)

        palette = None
        indices = None
        preview = None
        color_units: List[Tuple[str, Optional[trimesh.Trimesh]]] = []

        if cfg.color_layer:
            palette = self.prepare_palette(filaments)
            warnings.extend(validate_completeness(palette.filaments, cfg.color_pixel_layer_number))
            color_grid = image_to_grid(image, cfg, cfg.color_pixel_width)
            color_units, indices = self._color_units(color_grid, palette)
            footprint, pitch = color_grid.opaque, color_grid.pitch
            if cfg.preview:
                rgba = render_quantized(indices, palette.colors())
                preview = Image.fromarray(np.ascontiguousarray(np.flipud(rgba)))

        texture_mesh = None
        if cfg.texture_layer:
            texture_grid = image_to_grid(image, cfg, cfg.texture_pixel_width, vertex_grid=True)
            texture_mesh = self._texture_unit(texture_grid, warnings)
            if not cfg.color_layer:
                footprint, pitch = active_cells(texture_grid.opaque), texture_grid.pitch

        plate = generate_support_plate(footprint, pitch, cfg.plate_thickness)

        units = [(PLATE_UNIT, plate)] + color_units
        if cfg.texture_layer:
            units.append((TEXTURE_UNIT, texture_mesh))

        if cfg.curve > 0:
            width = footprint.shape[1] * pitch
            print(f"[CURVE] Bending {cfg.curve}° over {width:.1f}mm")
            units = [(name, apply_curve(mesh, cfg.curve, width)) for name, mesh in units]

        for w in warnings:
            print(w)
        print(f"[CONVERTER] ✅ {sum(1 for _, m in units if m is not None)} unit(s) generated")

        return LithophaneResult(units, palette, indices, preview, warnings)

    def export(self, result: LithophaneResult, output_path: Optional[str] = None,
               base_name: str = "") -> str:
        cfg = self.config
        if output_path is None:
            output_path = os.path.join(OUTPUT_DIR, generate_bundle_filename(
                base_name, cfg.stacking_mode, cfg.color_pixel_layer_number))
        extras: Dict[str, bytes] = {}
        if result.preview is not None:
            extras["preview.png"] = png_bytes(result.preview)
        return export_bundle(result.units, output_path, cfg.stl_format, extras)


def convert_image_to_lithophane(image_path: str, palette_path: Optional[str],
                                config: LithophaneConfig,
                                output_path: Optional[str] = None) -> str:
    """
    Load image and palette files, generate and export in one call.

    Returns:
        str: Path of the written archive
    """
    config.validate()
    filaments = load_palette(palette_path) if palette_path else []
    generator = LithophaneGenerator(config)
    result = generator.generate(load_image(image_path), filaments)
    return generator.export(result, output_path, base_name=image_path)


# ═══════════════════════════════════════════════════════════════════════════════
# Palette info
# ═══════════════════════════════════════════════════════════════════════════════

def palette_info(filaments: Sequence[Filament], config: LithophaneConfig,
                 cache: Optional[CombinationCache] = None) -> dict:
    """
    Summarize a palette for the given settings.

    Returns:
        dict: {
            'filaments': list of {'key', 'name', 'active', 'heights'},
            'combinations': int,
            'groups': list of {'index', 'filaments', 'combinations'},
            'warnings': list[str]
        }
    """
    generator = LithophaneGenerator(config, cache)
    palette = generator.prepare_palette(filaments)
    return {
        'filaments': [
            {'key': f.key, 'name': f.name, 'active': f.active, 'heights': f.heights}
            for f in sorted(filaments, key=lambda f: f.key)
        ],
        'combinations': len(palette),
        'groups': [
            {
                'index': g.index,
                'filaments': [palette.filament_name(k) for k in g.filament_keys],
                'combinations': len(g.combination_indices),
            }
            for g in palette.groups
        ],
        'warnings': validate_completeness(filaments, config.color_pixel_layer_number),
    }


def format_palette_info(info: dict) -> str:
    lines = ["Filaments:"]
    for f in info['filaments']:
        state = "active" if f['active'] else "inactive"
        heights = ", ".join(str(h) for h in f['heights']) or "-"
        lines.append(f"  {f['key']}  {f['name']:<20} {state:<8} layers: {heights}")
    lines.append(f"Combinations: {info['combinations']}")
    if len(info['groups']) > 1:
        for g in info['groups']:
            lines.append(f"  Group {g['index'] + 1}: {' + '.join(g['filaments'])} "
                         f"({g['combinations']} combinations)")
    lines.extend(info['warnings'])
    return "\n".join(lines)

"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                          CHROMALITHO v1.0                                     ║
║                 Multi-Filament Color Lithophane Generator                     ║
╚═══════════════════════════════════════════════════════════════════════════════╝

Main Entry Point
"""

import argparse
import os
import sys

from config import (
    ColorDistanceMethod,
    LithophaneConfig,
    PrinterConfig,
    StackingMode,
    StlFormat,
    default_workers,
    parse_enum,
)
from litho.calibration import export_calibration
from litho.converter import convert_image_to_lithophane, format_palette_info, palette_info
from litho.errors import LithophaneError
from litho.palette_loader import load_palette


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chromalitho",
        description="Generate multi-filament color lithophane STL bundles",
    )
    parser.add_argument("-s", "--src-image", help="Source image")
    parser.add_argument("-p", "--palette", help="Palette JSON file")
    parser.add_argument("-d", "--dest", help="Output ZIP path (default: ./output/<generated name>)")

    parser.add_argument("-w", "--width", type=float, default=0.0, help="Width in mm (0 = auto)")
    parser.add_argument("-H", "--height", type=float, default=0.0, help="Height in mm (0 = auto)")

    parser.add_argument("--color-pixel-width", type=float, default=PrinterConfig.COLOR_PIXEL_WIDTH)
    parser.add_argument("--color-layer-thickness", type=float, default=PrinterConfig.LAYER_HEIGHT)
    parser.add_argument("--color-layers", type=int, default=PrinterConfig.COLOR_LAYER_NUMBER,
                        help="Layer count N of every color stack")
    parser.add_argument("--no-color-layer", action="store_true", help="Relief only")

    parser.add_argument("--texture-pixel-width", type=float, default=PrinterConfig.TEXTURE_PIXEL_WIDTH)
    parser.add_argument("--texture-min", type=float, default=PrinterConfig.TEXTURE_MIN_THICKNESS)
    parser.add_argument("--texture-max", type=float, default=PrinterConfig.TEXTURE_MAX_THICKNESS)
    parser.add_argument("--no-texture-layer", action="store_true", help="Color layers only")
    parser.add_argument("--darker-thicker", action="store_true",
                        help="Dark areas get the thickest relief")

    parser.add_argument("--plate-thickness", type=float, default=PrinterConfig.PLATE_THICKNESS)
    parser.add_argument("-C", "--curve", type=float, default=0.0, help="Cylindrical bend in degrees")

    parser.add_argument("-m", "--distance", default=ColorDistanceMethod.PERCEPTUAL.value,
                        choices=[m.value for m in ColorDistanceMethod])
    parser.add_argument("--stacking", default=StackingMode.ADDITIVE.value,
                        choices=[m.value for m in StackingMode])
    parser.add_argument("--ams-slots", type=int, default=0, help="Spools per AMS load (0 = unlimited)")
    parser.add_argument("--format", default=StlFormat.ASCII.value,
                        choices=[m.value for m in StlFormat])
    parser.add_argument("--no-preview", action="store_true")
    parser.add_argument("-j", "--workers", type=int, default=default_workers())

    parser.add_argument("--palette-info", action="store_true",
                        help="Print the palette summary and exit")
    parser.add_argument("--calibrate", action="store_true",
                        help="Generate the calibration pattern for the palette")
    return parser


def config_from_args(args: argparse.Namespace) -> LithophaneConfig:
    config = LithophaneConfig(
        dest_width_mm=args.width,
        dest_height_mm=args.height,
        color_layer=not args.no_color_layer,
        color_pixel_width=args.color_pixel_width,
        color_pixel_layer_thickness=args.color_layer_thickness,
        color_pixel_layer_number=args.color_layers,
        texture_layer=not args.no_texture_layer,
        texture_pixel_width=args.texture_pixel_width,
        texture_min_thickness=args.texture_min,
        texture_max_thickness=args.texture_max,
        texture_darker_thicker=args.darker_thicker,
        plate_thickness=args.plate_thickness,
        curve=args.curve,
        color_distance_method=parse_enum(ColorDistanceMethod, args.distance),
        stacking_mode=parse_enum(StackingMode, args.stacking),
        ams_slots=args.ams_slots,
        stl_format=parse_enum(StlFormat, args.format),
        preview=not args.no_preview,
        workers=args.workers,
    )
    config.validate()
    return config


def run(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)

        if args.palette_info or args.calibrate:
            if not args.palette:
                parser.error("--palette is required")
            filaments = load_palette(args.palette)
            if args.palette_info:
                print(format_palette_info(palette_info(filaments, config)))
                return 0
            path = export_calibration(filaments, config, args.dest)
            print(f"[ChromaLitho] Calibration pattern written to {path}")
            return 0

        if not args.src_image:
            parser.error("--src-image is required")
        if config.color_layer and not args.palette:
            parser.error("--palette is required unless --no-color-layer is given")

        path = convert_image_to_lithophane(args.src_image, args.palette, config, args.dest)
        print(f"[ChromaLitho] Lithophane written to {os.path.abspath(path)}")
        return 0
    except LithophaneError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(run())

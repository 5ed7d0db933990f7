"""
ChromaLitho - Configuration Module
配置模块 - 打印参数默认值、枚举与生成配置校验
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from litho.errors import ConfigError


class ColorDistanceMethod(Enum):
    """Nearest-color metric used by the quantizer."""
    EUCLIDEAN = "rgb"
    PERCEPTUAL = "cielab"


class StackingMode(Enum):
    """How filament layers may be combined into one pixel column."""
    ADDITIVE = "additive"
    SINGLE_COLOR = "full"


class StlFormat(Enum):
    ASCII = "ascii"
    BINARY = "binary"


class PrinterConfig:
    """Default physical parameters (mm unless noted)."""
    COLOR_PIXEL_WIDTH = 0.8
    LAYER_HEIGHT = 0.1
    COLOR_LAYER_NUMBER = 5
    TEXTURE_PIXEL_WIDTH = 0.25
    TEXTURE_MIN_THICKNESS = 0.3
    TEXTURE_MAX_THICKNESS = 1.8
    PLATE_THICKNESS = 0.2

    # Calibration pattern
    CALIBRATION_SQUARE_SIZE = 10.0
    CALIBRATION_GAP = 2.0


# Filament key that is used as the neutral filler layer
FILLER_KEY = "#FFFFFF"

OUTPUT_DIR = os.path.join(os.getcwd(), "output")


def default_workers() -> int:
    return os.cpu_count() or 1


@dataclass
class LithophaneConfig:
    """
    Everything needed to turn one image into a lithophane bundle.

    Dimensions are in millimetres. When both ``dest_width_mm`` and
    ``dest_height_mm`` are 0 the image is used at its native resolution
    (one source pixel per color pixel).
    """
    dest_width_mm: float = 0.0
    dest_height_mm: float = 0.0

    color_layer: bool = True
    color_pixel_width: float = PrinterConfig.COLOR_PIXEL_WIDTH
    color_pixel_layer_thickness: float = PrinterConfig.LAYER_HEIGHT
    color_pixel_layer_number: int = PrinterConfig.COLOR_LAYER_NUMBER

    texture_layer: bool = True
    texture_pixel_width: float = PrinterConfig.TEXTURE_PIXEL_WIDTH
    texture_min_thickness: float = PrinterConfig.TEXTURE_MIN_THICKNESS
    texture_max_thickness: float = PrinterConfig.TEXTURE_MAX_THICKNESS
    texture_darker_thicker: bool = False

    plate_thickness: float = PrinterConfig.PLATE_THICKNESS
    curve: float = 0.0

    color_distance_method: ColorDistanceMethod = ColorDistanceMethod.PERCEPTUAL
    stacking_mode: StackingMode = StackingMode.ADDITIVE
    ams_slots: int = 0

    stl_format: StlFormat = StlFormat.ASCII
    preview: bool = True
    workers: int = field(default_factory=default_workers)

    def validate(self) -> None:
        """Raise ConfigError on the first invalid parameter."""
        if self.color_pixel_width <= 0:
            raise ConfigError("color_pixel_width must be > 0")
        if self.texture_pixel_width <= 0:
            raise ConfigError("texture_pixel_width must be > 0")
        if self.color_pixel_layer_thickness <= 0:
            raise ConfigError("color_pixel_layer_thickness must be > 0")
        if self.color_pixel_layer_number < 1:
            raise ConfigError("color_pixel_layer_number must be >= 1")
        if self.texture_min_thickness <= 0:
            raise ConfigError("texture_min_thickness must be > 0")
        if self.texture_max_thickness <= self.texture_min_thickness:
            raise ConfigError(
                f"texture_max_thickness ({self.texture_max_thickness}) must be greater "
                f"than texture_min_thickness ({self.texture_min_thickness})"
            )
        if self.plate_thickness <= 0:
            raise ConfigError("plate_thickness must be > 0")
        if not 0 <= self.curve <= 360:
            raise ConfigError(f"curve must be within [0, 360], got {self.curve}")
        if self.dest_width_mm < 0 or self.dest_height_mm < 0:
            raise ConfigError("destination dimensions must not be negative")
        if self.ams_slots < 0:
            raise ConfigError("ams_slots must be >= 0 (0 = unlimited)")
        if self.workers < 1:
            raise ConfigError("workers must be >= 1")
        if not self.color_layer and not self.texture_layer:
            raise ConfigError("at least one of color_layer / texture_layer must be enabled")

    @property
    def total_color_height(self) -> float:
        """Height of a full color stack in mm (0 when color layers are off)."""
        if not self.color_layer:
            return 0.0
        return self.color_pixel_layer_number * self.color_pixel_layer_thickness

    def physical_size(self, image_w: int, image_h: int) -> Tuple[float, float]:
        """
        Resolve the final width/height in mm for an image of the given pixel size.

        A single given dimension keeps the aspect ratio of the image.
        """
        if image_w <= 0 or image_h <= 0:
            raise ConfigError(f"image has zero area ({image_w}x{image_h})")

        w, h = self.dest_width_mm, self.dest_height_mm
        if w == 0 and h == 0:
            return image_w * self.color_pixel_width, image_h * self.color_pixel_width
        if h == 0:
            return w, w * image_h / image_w
        if w == 0:
            return h * image_w / image_h, h
        return w, h

    def grid_size(self, image_w: int, image_h: int, pitch: float) -> Tuple[int, int]:
        """Number of pixels (columns, rows) for the given pitch."""
        width_mm, height_mm = self.physical_size(image_w, image_h)
        # Whole pixels only; epsilon absorbs float error such as 0.3 / 0.1
        cols = int(width_mm / pitch + 1e-9)
        rows = int(height_mm / pitch + 1e-9)
        if cols <= 0 or rows <= 0:
            raise ConfigError(
                f"image scales to zero area ({cols}x{rows} pixels at pitch {pitch}mm)"
            )
        return cols, rows


def parse_enum(enum_cls, value: Optional[str]):
    """Look up an enum member by value or name (case-insensitive)."""
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().lower()
    for member in enum_cls:
        if member.value == text or member.name.lower() == text:
            return member
    choices = ", ".join(m.value for m in enum_cls)
    raise ConfigError(f"unknown {enum_cls.__name__} '{value}' (expected one of: {choices})")

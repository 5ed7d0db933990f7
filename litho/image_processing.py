"""
ChromaLitho - Image Processing
图像处理模块 - 加载、按打印尺寸缩放、垂直翻转、透明遮罩与亮度
"""

import os
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image

from config import LithophaneConfig
from litho.errors import ImageLoadError
from litho.heightmap import ReliefMapper


@dataclass
class PixelGrid:
    """
    One resampled view of the source image.

    Row 0 is the bottom of the print (the image has been flipped so that
    rows grow along +Y like the mesh).
    """
    rgb: np.ndarray          # (H, W, 3) uint8
    opaque: np.ndarray       # (H, W) bool
    pitch: float             # mm per pixel

    @property
    def width(self) -> int:
        return self.rgb.shape[1]

    @property
    def height(self) -> int:
        return self.rgb.shape[0]

    def luminance(self) -> np.ndarray:
        """(H, W) uint8 perceptual luminance, 0 where transparent."""
        gray = ReliefMapper.to_grayscale(self.rgb)
        return np.where(self.opaque, gray, 0).astype(np.uint8)


def load_image(path: str) -> Image.Image:
    """Open an image file as RGBA."""
    if not os.path.exists(path):
        raise ImageLoadError(f"image not found: {path}")
    try:
        with Image.open(path) as img:
            rgba = img.convert("RGBA")
    except (OSError, ValueError) as e:
        raise ImageLoadError(f"cannot decode image {path}: {e}") from e
    print(f"[IMAGE_PROCESSOR] Loaded {os.path.basename(path)} ({rgba.width}x{rgba.height})")
    return rgba


def check_ratio(image_w: int, image_h: int, width_mm: float, height_mm: float) -> Optional[str]:
    """Warn when an explicit width and height distort the image."""
    if width_mm == 0 or height_mm == 0 or image_h == 0:
        return None
    src = image_w / image_h
    dest = width_mm / height_mm
    if round(src, 2) != round(dest, 2):
        return (f"⚠️ Image ratio is not preserved "
                f"(source ratio: {src:.2f}; destination ratio: {dest:.2f})")
    return None


def image_to_grid(image: Image.Image, config: LithophaneConfig, pitch: float,
                  vertex_grid: bool = False) -> PixelGrid:
    """
    Resample an RGBA image to ``pitch`` mm per pixel and flip it vertically.

    With ``vertex_grid`` one extra sample is taken per axis so that samples
    sit on cell corners and the cells span the full print size.

    Raises:
        ConfigError: the image scales down to zero pixels
    """
    cols, rows = config.grid_size(image.width, image.height, pitch)
    if vertex_grid:
        cols, rows = cols + 1, rows + 1
    if (cols, rows) != (image.width, image.height):
        image = image.resize((cols, rows), Image.Resampling.LANCZOS)
        print(f"[IMAGE_PROCESSOR] Resized to {cols}x{rows} px @ {pitch}mm")

    rgba = np.array(image.convert("RGBA"), dtype=np.uint8)
    rgba = np.flipud(rgba)

    return PixelGrid(
        rgb=np.ascontiguousarray(rgba[:, :, :3]),
        opaque=rgba[:, :, 3] == 255,
        pitch=pitch,
    )


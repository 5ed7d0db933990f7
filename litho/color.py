"""
ChromaLitho - Color Model
颜色模型 - RGB / HSL / CMYK / CIELab 转换与色差计算

Conversions are total: out-of-range input is clamped, never rejected.
CMYK here is a "light filter" model: each filament layer contributes an ink
amount per channel and stacked layers simply add their inks.
"""

import colorsys
import math
import re
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from colormath.color_conversions import convert_color
from colormath.color_objects import LabColor, sRGBColor
from skimage import color as skcolor

from config import ColorDistanceMethod


_HEX_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    if value != value:  # NaN
        return lo
    return min(max(value, lo), hi)


def _to_byte(value: float) -> int:
    """Unit float → 0..255, rounding halves away from zero."""
    return int(math.floor(_clamp(value) * 255.0 + 0.5))


@dataclass(frozen=True)
class Cmyk:
    c: float
    m: float
    y: float
    k: float

    def clamp(self) -> "Cmyk":
        return Cmyk(_clamp(self.c), _clamp(self.m), _clamp(self.y), _clamp(self.k))

    def __add__(self, other: "Cmyk") -> "Cmyk":
        # Unclamped: summed inks may exceed 1 and are clamped on conversion
        return Cmyk(self.c + other.c, self.m + other.m, self.y + other.y, self.k + other.k)

    def to_rgb(self) -> "Rgb":
        """CMYK → RGB. Each channel is clamped to [0, 1] independently first."""
        c = self.clamp()
        return Rgb.from_unit(
            (1.0 - c.c) * (1.0 - c.k),
            (1.0 - c.m) * (1.0 - c.k),
            (1.0 - c.y) * (1.0 - c.k),
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.c, self.m, self.y, self.k)


def _unit_rgb_to_cmyk(r: float, g: float, b: float) -> Cmyk:
    k = 1.0 - max(r, g, b)
    if k >= 1.0:
        return Cmyk(0.0, 0.0, 0.0, 1.0)
    return Cmyk(
        (1.0 - r - k) / (1.0 - k),
        (1.0 - g - k) / (1.0 - k),
        (1.0 - b - k) / (1.0 - k),
        k,
    )


@dataclass(frozen=True)
class Rgb:
    r: int
    g: int
    b: int

    def __post_init__(self):
        for channel in ("r", "g", "b"):
            value = int(getattr(self, channel))
            object.__setattr__(self, channel, min(max(value, 0), 255))

    @classmethod
    def from_hex(cls, hex_code: str) -> "Rgb":
        """Parse '#RRGGBB' (case-insensitive). Raises ValueError otherwise."""
        text = hex_code.strip() if isinstance(hex_code, str) else ""
        if not _HEX_RE.match(text):
            raise ValueError(f"invalid hex color code: {hex_code!r}")
        return cls(int(text[1:3], 16), int(text[3:5], 16), int(text[5:7], 16))

    @classmethod
    def from_unit(cls, r: float, g: float, b: float) -> "Rgb":
        return cls(_to_byte(r), _to_byte(g), _to_byte(b))

    def to_hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"

    def to_unit(self) -> Tuple[float, float, float]:
        return (self.r / 255.0, self.g / 255.0, self.b / 255.0)

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)

    def to_hsl(self) -> "Hsl":
        h, l, s = colorsys.rgb_to_hls(*self.to_unit())
        return Hsl(h * 360.0, s * 100.0, l * 100.0)

    def to_cmyk(self) -> Cmyk:
        return _unit_rgb_to_cmyk(*self.to_unit())

    def to_lab(self) -> "CieLab":
        lab = convert_color(sRGBColor(*self.to_unit()), LabColor, target_illuminant="d65")
        return CieLab(max(lab.lab_l, 0.0), lab.lab_a, lab.lab_b)

    def __str__(self) -> str:
        return f"RGB({self.r}, {self.g}, {self.b})"


@dataclass(frozen=True)
class Hsl:
    """Hue in degrees, saturation and lightness in percent."""
    h: float
    s: float
    l: float

    def _unit_rgb(self) -> Tuple[float, float, float]:
        hue = (self.h % 360.0) / 360.0
        sat = _clamp(self.s / 100.0)
        light = _clamp(self.l / 100.0)
        return colorsys.hls_to_rgb(hue, light, sat)

    def to_rgb(self) -> Rgb:
        return Rgb.from_unit(*self._unit_rgb())

    def to_cmyk(self) -> Cmyk:
        # Computed from the unrounded RGB so thin layers keep their precision
        return _unit_rgb_to_cmyk(*self._unit_rgb())

    def __str__(self) -> str:
        return f"HSL({self.h:.1f}°, {self.s:.1f}%, {self.l:.1f}%)"


@dataclass(frozen=True)
class CieLab:
    l: float
    a: float
    b: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.l, self.a, self.b)


# ═══════════════════════════════════════════════════════════════════════════════
# Vectorized conversions
# ═══════════════════════════════════════════════════════════════════════════════

def rgb_array_to_lab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert an (..., 3) uint8 RGB array to CIELab (D65, 2° observer).

    Returns:
        np.ndarray: float64 array of the same leading shape
    """
    rgb = np.asarray(rgb)
    if rgb.size == 0:
        return np.zeros(rgb.shape, dtype=np.float64)
    unit = np.clip(rgb.astype(np.float64) / 255.0, 0.0, 1.0)
    lab = skcolor.rgb2lab(unit.reshape(-1, 1, 3)).reshape(rgb.shape)
    lab[..., 0] = np.maximum(lab[..., 0], 0.0)
    return lab


def to_distance_space(rgb: np.ndarray, method: ColorDistanceMethod) -> np.ndarray:
    """Map (..., 3) uint8 RGB into the space the given metric is Euclidean in."""
    if method == ColorDistanceMethod.PERCEPTUAL:
        return rgb_array_to_lab(rgb)
    return np.asarray(rgb, dtype=np.float64)


# ═══════════════════════════════════════════════════════════════════════════════
# Distances
# ═══════════════════════════════════════════════════════════════════════════════

def euclidean_distance(a: Rgb, b: Rgb) -> float:
    """Straight-line distance between two 8-bit RGB colors."""
    return math.sqrt((a.r - b.r) ** 2 + (a.g - b.g) ** 2 + (a.b - b.b) ** 2)


def delta_e(a: CieLab, b: CieLab) -> float:
    """CIE76 color difference."""
    return math.sqrt((a.l - b.l) ** 2 + (a.a - b.a) ** 2 + (a.b - b.b) ** 2)


def color_distance(a: Rgb, b: Rgb, method: ColorDistanceMethod) -> float:
    if method == ColorDistanceMethod.PERCEPTUAL:
        return delta_e(a.to_lab(), b.to_lab())
    return euclidean_distance(a, b)

"""
ChromaLitho - Relief Height Mapping
浮雕高度映射模块 - 亮度到厚度的线性映射

Mapping convention (default): black (0) = min thickness, white (255) = max
thickness. ``darker_thicker`` flips it to the classic lithophane polarity.
"""

import numpy as np
import cv2

from litho.errors import ConfigError


class ReliefMapper:
    """Luminance → relief thickness."""

    @staticmethod
    def to_grayscale(image: np.ndarray) -> np.ndarray:
        """
        Convert an RGB/RGBA array to single-channel luminance.

        Args:
            image: np.ndarray, grayscale (H,W), RGB (H,W,3) or RGBA (H,W,4)

        Returns:
            np.ndarray: (H, W) uint8
        """
        if image.ndim == 2:
            return image.astype(np.uint8)

        channels = image.shape[2]
        image = np.ascontiguousarray(image.astype(np.uint8))
        if channels == 4:
            gray = cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
        elif channels == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
        else:
            gray = image[:, :, 0]
        return gray.astype(np.uint8)

    @staticmethod
    def map_luminance_to_height(
        luminance: np.ndarray,
        min_thickness: float,
        max_thickness: float,
        darker_thicker: bool = False
    ) -> np.ndarray:
        """
        Linear luminance → thickness mapping (vectorized).

        height = min + (lum / 255) * (max - min)
        darker_thicker: height = max - (lum / 255) * (max - min)

        Args:
            luminance: (H, W) values in 0..255
            min_thickness: Thinnest relief (mm)
            max_thickness: Thickest relief (mm)
            darker_thicker: Invert polarity

        Returns:
            np.ndarray: (H, W) float64, mm, within [min, max]
        """
        if max_thickness <= min_thickness:
            raise ConfigError(
                f"max thickness ({max_thickness}) must be greater than min ({min_thickness})"
            )
        ratio = np.clip(np.asarray(luminance, dtype=np.float64), 0.0, 255.0) / 255.0
        span = max_thickness - min_thickness
        if darker_thicker:
            return max_thickness - ratio * span
        return min_thickness + ratio * span

    @staticmethod
    def _check_contrast(luminance: np.ndarray) -> str | None:
        """
        Flag images whose luminance barely varies.

        A standard deviation below 1.0 gives an almost flat relief.
        """
        if luminance.size == 0:
            return None
        std_val = float(np.std(luminance))
        if std_val < 1.0:
            return f"⚠️ Luminance barely varies (std {std_val:.2f}), the relief will be nearly flat"
        return None

    @staticmethod
    def build(luminance: np.ndarray, opaque: np.ndarray, min_thickness: float,
              max_thickness: float, darker_thicker: bool = False) -> dict:
        """
        Map a luminance grid to relief heights.

        Returns:
            dict: {
                'height_matrix': np.ndarray (H, W) float64 mm,
                'stats': {'min_mm', 'max_mm', 'avg_mm'},
                'warnings': list[str]
            }
        """
        warnings_list = []
        contrast_warning = ReliefMapper._check_contrast(luminance[opaque])
        if contrast_warning:
            warnings_list.append(contrast_warning)

        height_matrix = ReliefMapper.map_luminance_to_height(
            luminance, min_thickness, max_thickness, darker_thicker
        )
        # Transparent pixels sit at the minimum thickness
        height_matrix = np.where(opaque, height_matrix, min_thickness)

        visible = height_matrix[opaque] if np.any(opaque) else height_matrix.reshape(-1)
        stats = {
            'min_mm': float(np.min(visible)) if visible.size else min_thickness,
            'max_mm': float(np.max(visible)) if visible.size else min_thickness,
            'avg_mm': float(np.mean(visible)) if visible.size else min_thickness,
        }
        print(f"[RELIEF] Height mapping done: "
              f"min={stats['min_mm']:.2f}mm, max={stats['max_mm']:.2f}mm, avg={stats['avg_mm']:.2f}mm")

        return {
            'height_matrix': height_matrix,
            'stats': stats,
            'warnings': warnings_list,
        }

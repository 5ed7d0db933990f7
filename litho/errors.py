"""
ChromaLitho - Error Types
"""

from typing import Optional


class LithophaneError(Exception):
    """Base class for every error raised by the generator."""


class ConfigError(LithophaneError, ValueError):
    """Invalid generation parameters."""


class PaletteError(LithophaneError, ValueError):
    """Unusable palette (no filaments, missing filler, unprintable combination...)."""

    def __init__(self, message: str, filament: Optional[str] = None,
                 combination: Optional[str] = None):
        super().__init__(message)
        self.filament = filament
        self.combination = combination


class ImageLoadError(LithophaneError, OSError):
    """Source image cannot be read or decoded."""


class ExportError(LithophaneError, OSError):
    """Writing the STL bundle failed."""

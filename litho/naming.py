"""Naming_Service - 输出单元与打包文件命名。

Every generated archive carries the stacking mode, the layer count and a
timestamp; units inside the archive are named after what they print.
"""

import os
import re
from datetime import datetime
from typing import Dict, Optional

from config import StackingMode


# Stacking mode → file name tag
STACKING_MODE_TAGS: Dict[StackingMode, str] = {
    StackingMode.ADDITIVE: "Add",
    StackingMode.SINGLE_COLOR: "Full",
}

PLATE_UNIT = "layer-plate"
TEXTURE_UNIT = "layer-texture"


def _get_timestamp() -> str:
    """Local time as YYYYMMDD_HHmmss."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def _sanitize(name: str) -> str:
    """Replace characters that operating systems reject in file names."""
    forbidden = '<>:"/\\|?*'
    for ch in forbidden:
        name = name.replace(ch, "_")
    return name


_UNIT_CHARS_RE = re.compile(r"[^\w-]")


def sanitize_unit_name(name: str, key: str = "") -> str:
    """Replace anything but letters, digits, "_" and "-" with "_".

    An empty name falls back to the filament key without "#".
    """
    if name:
        return _UNIT_CHARS_RE.sub("_", name)
    return _UNIT_CHARS_RE.sub("_", key.replace("#", "")) or "unnamed"


def filament_unit_name(name: str, key: str = "") -> str:
    """Archive entry name of one filament's color layer."""
    return f"layer-{sanitize_unit_name(name, key)}"


def calibration_unit_name(name: str, key: str = "") -> str:
    return f"calibration-{sanitize_unit_name(name, key)}"


def _base(base_name: str) -> str:
    stem = os.path.splitext(os.path.basename(base_name.strip()))[0] if base_name.strip() else ""
    return _sanitize(stem) if stem else "untitled"


def generate_bundle_filename(
    base_name: str,
    stacking_mode: StackingMode,
    layer_count: int,
    extension: str = ".zip",
) -> str:
    """Archive name.

    Format: {base_name}_ChromaLitho_{mode_tag}_{N}L_{timestamp}{ext}

    - an empty base_name becomes "untitled"
    - a path or extension in base_name is stripped
    """
    mode_tag = STACKING_MODE_TAGS.get(stacking_mode, "Unknown")
    return f"{_base(base_name)}_ChromaLitho_{mode_tag}_{layer_count}L_{_get_timestamp()}{extension}"


def generate_calibration_filename(layer_count: int, extension: str = ".zip") -> str:
    """Format: ChromaLitho_Calibration_{N}L_{timestamp}{ext}"""
    return f"ChromaLitho_Calibration_{layer_count}L_{_get_timestamp()}{extension}"


_TS_PATTERN = r"\d{8}_\d{6}"

_BUNDLE_RE = re.compile(
    rf"^(.+)_ChromaLitho_(Add|Full)_(\d+)L_({_TS_PATTERN})(\.[\w]+)$"
)
_CALIBRATION_RE = re.compile(
    rf"^ChromaLitho_Calibration_(\d+)L_({_TS_PATTERN})(\.[\w]+)$"
)


def parse_filename(filename: str) -> Optional[Dict[str, str]]:
    """Split a generated file name into its parts.

    Returns None for names that were not produced by this module.
    """
    if not isinstance(filename, str) or not filename:
        return None

    m = _BUNDLE_RE.match(filename)
    if m:
        return {
            "base_name": m.group(1),
            "stacking_mode": m.group(2),
            "layer_count": m.group(3),
            "timestamp": m.group(4),
            "extension": m.group(5),
            "file_type": "bundle",
        }

    m = _CALIBRATION_RE.match(filename)
    if m:
        return {
            "base_name": "ChromaLitho_Calibration",
            "stacking_mode": None,
            "layer_count": m.group(1),
            "timestamp": m.group(2),
            "extension": m.group(3),
            "file_type": "calibration",
        }

    return None

"""
ChromaLitho - Palette Loader
调色板加载模块 - 从 JSON 读取耗材校准数据

File format::

    {
      "#0086D6": {
        "name": "Cyan",
        "active": true,
        "layers": {
          "1": {"H": 203, "S": 100, "L": 85},
          "5": {"hexcode": "#0086D6"}
        }
      }
    }

Each layer entry is either an HSL measurement or a hex shorthand.
"""

import json
import os
from typing import Dict, List, Sequence

from litho.color import Hsl, Rgb
from litho.errors import PaletteError
from litho.palette import Filament, FilamentLayerSample


def _parse_sample(key: str, height_text: str, entry) -> FilamentLayerSample:
    try:
        height = int(height_text)
    except (TypeError, ValueError):
        raise PaletteError(f"{key}: layer height '{height_text}' is not an integer", filament=key)
    if height < 1:
        raise PaletteError(f"{key}: layer height must be >= 1, got {height}", filament=key)

    if not isinstance(entry, dict):
        raise PaletteError(f"{key}: layer {height} must be an object", filament=key)

    if "hexcode" in entry:
        try:
            hsl = Rgb.from_hex(entry["hexcode"]).to_hsl()
        except ValueError as e:
            raise PaletteError(f"{key}: layer {height}: {e}", filament=key)
    else:
        try:
            hsl = Hsl(float(entry["H"]), float(entry["S"]), float(entry["L"]))
        except (KeyError, TypeError, ValueError):
            raise PaletteError(
                f"{key}: layer {height} needs either 'hexcode' or numeric 'H', 'S', 'L'",
                filament=key,
            )
    return FilamentLayerSample(key, height, hsl)


def parse_palette(data: Dict) -> List[Filament]:
    """
    Build Filament records from decoded palette JSON.

    Raises:
        PaletteError: malformed keys, heights or samples
    """
    if not isinstance(data, dict):
        raise PaletteError("palette root must be a JSON object")

    filaments = []
    for raw_key, body in data.items():
        try:
            key = Rgb.from_hex(raw_key).to_hex()
        except ValueError:
            raise PaletteError(f"invalid filament key '{raw_key}' (expected #RRGGBB)",
                               filament=raw_key)
        if not isinstance(body, dict):
            raise PaletteError(f"{key}: filament entry must be an object", filament=key)

        layers = body.get("layers", {})
        if not isinstance(layers, dict):
            raise PaletteError(f"{key}: 'layers' must be an object", filament=key)

        samples = {}
        for height_text, entry in layers.items():
            sample = _parse_sample(key, height_text, entry)
            samples[sample.height] = sample

        filaments.append(Filament(
            key=key,
            name=str(body.get("name") or key),
            active=bool(body.get("active", True)),
            samples=samples,
        ))

    filaments.sort(key=lambda f: f.key)
    return filaments


def load_palette(path: str) -> List[Filament]:
    """Read and parse a palette JSON file."""
    if not os.path.exists(path):
        raise PaletteError(f"palette file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise PaletteError(f"palette file {path} is not valid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise PaletteError(f"palette file {path} is not UTF-8 text: {e}") from e
    except OSError as e:
        raise PaletteError(f"cannot read palette file {path}: {e}") from e

    filaments = parse_palette(data)
    active = sum(1 for f in filaments if f.active)
    print(f"[PALETTE] Loaded {len(filaments)} filaments ({active} active) from {path}")
    return filaments


def validate_completeness(filaments: Sequence[Filament], layer_count: int) -> List[str]:
    """
    List warnings for active filaments missing calibrated heights 1..N.

    Missing heights are not fatal; they only shrink the set of combinations.
    """
    warnings = []
    for f in filaments:
        if not f.active:
            continue
        missing = [h for h in range(1, layer_count + 1) if h not in f.samples]
        if not f.samples:
            warnings.append(f"⚠️ {f.name} ({f.key}) has no calibrated layer")
        elif missing:
            heights = ", ".join(str(h) for h in missing)
            warnings.append(f"⚠️ {f.name} ({f.key}) has no sample for layer height(s) {heights}")
    return warnings

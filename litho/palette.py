"""
ChromaLitho - Palette Data Model
调色板数据模型 - 耗材、色层与色层组合

A ColorCombi is one printable pixel column: an ordered stack of filament
layers whose heights add up to the configured layer count.
"""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from config import FILLER_KEY, StackingMode
from litho.color import Cmyk, Hsl, Rgb


@dataclass(frozen=True)
class FilamentLayerSample:
    """Measured appearance of one filament printed ``height`` layers thick."""
    filament_key: str
    height: int
    hsl: Hsl

    @property
    def cmyk(self) -> Cmyk:
        return self.hsl.to_cmyk()

    @property
    def rgb(self) -> Rgb:
        return self.hsl.to_rgb()


@dataclass(frozen=True)
class Filament:
    key: str
    name: str
    active: bool = True
    samples: Mapping[int, FilamentLayerSample] = field(default_factory=dict)

    @property
    def heights(self) -> List[int]:
        return sorted(self.samples)

    @property
    def is_filler(self) -> bool:
        return self.key.upper() == FILLER_KEY

    def nearest_sample(self, height: int) -> Optional[FilamentLayerSample]:
        """Sample at ``height``, else the closest defined one (ties → lower)."""
        if not self.samples:
            return None
        if height in self.samples:
            return self.samples[height]
        best = min(self.samples, key=lambda h: (abs(h - height), h))
        return self.samples[best]

    def __hash__(self):
        return hash((self.key, self.name, self.active, tuple(sorted(self.samples.items()))))


@dataclass(frozen=True)
class ColorLayer:
    filament_key: str
    height: int
    cmyk: Cmyk

    @classmethod
    def from_sample(cls, sample: FilamentLayerSample, height: Optional[int] = None) -> "ColorLayer":
        return cls(sample.filament_key, sample.height if height is None else height, sample.cmyk)

    def __str__(self) -> str:
        return f"{self.filament_key}x{self.height}"


@dataclass(frozen=True)
class ColorCombi:
    """
    Stack of color layers for a single pixel column.

    Equality and hashing use the multiset of (filament, height) pairs, so two
    stacks holding the same layers in a different order are the same combination.
    """
    layers: Tuple[ColorLayer, ...]
    group: int = 0

    @property
    def key(self) -> Tuple[Tuple[str, int], ...]:
        return tuple(sorted((layer.filament_key, layer.height) for layer in self.layers))

    def __eq__(self, other):
        if not isinstance(other, ColorCombi):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.key)

    @property
    def total_height(self) -> int:
        return sum(layer.height for layer in self.layers)

    @property
    def filament_keys(self) -> Tuple[str, ...]:
        """Distinct filaments in stacking order."""
        seen = []
        for layer in self.layers:
            if layer.filament_key not in seen:
                seen.append(layer.filament_key)
        return tuple(seen)

    @cached_property
    def ink(self) -> Cmyk:
        """Summed inks, clamped per channel."""
        total = Cmyk(0.0, 0.0, 0.0, 0.0)
        for layer in self.layers:
            total = total + layer.cmyk
        return total.clamp()

    @cached_property
    def rgb(self) -> Rgb:
        return self.ink.to_rgb()

    def contribution(self, filament_key: str) -> Tuple[int, int]:
        """
        Height and Z offset (both in layers) of one filament inside this stack.

        Returns:
            (height, z_offset); (0, 0) if the filament is not used
        """
        offset = 0
        height = 0
        start = None
        for layer in self.layers:
            if layer.filament_key == filament_key:
                if start is None:
                    start = offset
                height += layer.height
            offset += layer.height
        if start is None:
            return 0, 0
        return height, start

    def ordered(self, rank: Mapping[str, int]) -> "ColorCombi":
        """Copy with layers sorted bottom → top by the given filament rank."""
        layers = sorted(self.layers, key=lambda layer: rank.get(layer.filament_key, len(rank)))
        return ColorCombi(tuple(layers), self.group)

    def __str__(self) -> str:
        return "[" + ", ".join(str(layer) for layer in self.layers) + "]"


@dataclass(frozen=True)
class PaletteGroup:
    """Filaments loaded together in one AMS run."""
    index: int
    filament_keys: Tuple[str, ...]
    combination_indices: Tuple[int, ...] = ()


@dataclass
class Palette:
    filaments: Tuple[Filament, ...]
    combinations: List[ColorCombi]
    layer_count: int
    mode: StackingMode
    groups: List[PaletteGroup] = field(default_factory=list)

    def filament(self, key: str) -> Filament:
        for f in self.filaments:
            if f.key == key:
                return f
        raise KeyError(key)

    def filament_name(self, key: str) -> str:
        try:
            return self.filament(key).name
        except KeyError:
            return key

    def used_filament_keys(self) -> List[str]:
        """Filaments appearing in at least one combination, in stacking order."""
        used = {key for combi in self.combinations for key in combi.filament_keys}
        return [f.key for f in self.filaments if f.key in used]

    def colors(self) -> List[Rgb]:
        return [combi.rgb for combi in self.combinations]

    def __len__(self):
        return len(self.combinations)


def stacking_rank(filaments: Sequence[Filament]) -> Dict[str, int]:
    """Bottom → top order shared by every combination: filler first, then palette order."""
    ordered = [f for f in filaments if f.is_filler] + [f for f in filaments if not f.is_filler]
    return {f.key: i for i, f in enumerate(ordered)}

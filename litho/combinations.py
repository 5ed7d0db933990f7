"""
ChromaLitho - Palette Combination Generator
色层组合生成模块

Enumerates every filament stack whose layer heights add up exactly to the
target layer count, optionally split into AMS groups.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config import FILLER_KEY, StackingMode
from litho.errors import ConfigError, PaletteError
from litho.palette import (
    ColorCombi,
    ColorLayer,
    Filament,
    Palette,
    PaletteGroup,
    stacking_rank,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Layer options
# ═══════════════════════════════════════════════════════════════════════════════

def _layer_options(filament: Filament, layer_count: int) -> List[ColorLayer]:
    """
    Every ColorLayer a filament can contribute to a stack of ``layer_count``.

    The filler can be printed at any height: missing heights borrow the
    appearance of the nearest calibrated one.
    """
    if filament.is_filler:
        options = []
        for height in range(1, layer_count + 1):
            sample = filament.nearest_sample(height)
            if sample is not None:
                options.append(ColorLayer.from_sample(sample, height))
        return options

    return [
        ColorLayer.from_sample(filament.samples[h])
        for h in filament.heights
        if h <= layer_count
    ]


def _single_color_stack(filament: Filament, layer_count: int) -> Optional[Tuple[ColorLayer, ...]]:
    """Stack of one filament reaching exactly ``layer_count`` (None if impossible)."""
    if layer_count in filament.samples:
        return (ColorLayer.from_sample(filament.samples[layer_count]),)

    usable = [h for h in filament.heights if h <= layer_count]
    if not usable:
        return None

    height = usable[-1]
    repeats, remainder = divmod(layer_count, height)
    layers = [ColorLayer.from_sample(filament.samples[height])] * repeats
    if remainder:
        layers.append(ColorLayer.from_sample(filament.nearest_sample(remainder), remainder))
    return tuple(layers)


# ═══════════════════════════════════════════════════════════════════════════════
# Enumeration
# ═══════════════════════════════════════════════════════════════════════════════

def generate_additive(filaments: Sequence[Filament], layer_count: int,
                      group: int = 0) -> List[ColorCombi]:
    """
    Enumerate additive stacks (each filament at most once) summing to ``layer_count``.

    Explicit depth-first worklist over immutable partial stacks. Filaments are
    only ever appended in increasing rank, so every multiset is produced once
    and the layers of each stack come out bottom → top.

    Args:
        filaments: Filaments allowed in the stacks (any order)
        layer_count: Target total height N in layers
        group: AMS group index stamped on the results

    Returns:
        list[ColorCombi]: Deterministically ordered combinations
    """
    rank = stacking_rank(filaments)
    ordered = sorted(filaments, key=lambda f: rank[f.key])
    options = [_layer_options(f, layer_count) for f in ordered]

    results: List[ColorCombi] = []
    # (next filament index, layers so far, height so far)
    stack: List[Tuple[int, Tuple[ColorLayer, ...], int]] = [(0, (), 0)]

    while stack:
        start, layers, height = stack.pop()
        if height == layer_count:
            results.append(ColorCombi(layers, group))
            continue

        children = []
        for i in range(start, len(ordered)):
            for layer in options[i]:
                total = height + layer.height
                if total > layer_count:
                    continue
                children.append((i + 1, layers + (layer,), total))
        # Reversed so the first child is processed first
        stack.extend(reversed(children))

    return results


def generate_single_color(filaments: Sequence[Filament], layer_count: int,
                          group: int = 0) -> List[ColorCombi]:
    """One full-height stack per filament; filaments that cannot reach N are skipped."""
    rank = stacking_rank(filaments)
    results = []
    for filament in sorted(filaments, key=lambda f: rank[f.key]):
        layers = _single_color_stack(filament, layer_count)
        if layers is None:
            print(f"[COMBINATIONS] Skipping {filament.name}: no height <= {layer_count}")
            continue
        results.append(ColorCombi(layers, group))
    return results


def deduplicate_combinations(combinations: Iterable[ColorCombi]) -> List[ColorCombi]:
    """Drop stacks holding the same (filament, height) multiset, keeping the first."""
    seen = set()
    unique = []
    for combi in combinations:
        if combi.key in seen:
            continue
        seen.add(combi.key)
        unique.append(combi)
    return unique


# ═══════════════════════════════════════════════════════════════════════════════
# AMS grouping
# ═══════════════════════════════════════════════════════════════════════════════

def split_into_groups(filaments: Sequence[Filament], ams_slots: int,
                      mode: StackingMode) -> List[List[Filament]]:
    """
    Partition filaments into AMS loads of at most ``ams_slots`` spools.

    In additive mode the filler takes one slot of every load.
    """
    if ams_slots <= 0:
        return [list(filaments)]

    if mode == StackingMode.SINGLE_COLOR:
        return [list(filaments[i:i + ams_slots]) for i in range(0, len(filaments), ams_slots)]

    fillers = [f for f in filaments if f.is_filler]
    colored = [f for f in filaments if not f.is_filler]
    per_group = ams_slots - len(fillers)
    if colored and per_group < 1:
        raise PaletteError(
            f"AMS slot limit {ams_slots} leaves no room for colored filaments "
            f"next to the filler"
        )
    if not colored:
        return [fillers]
    return [fillers + colored[i:i + per_group] for i in range(0, len(colored), per_group)]


def validate_groups(combinations: Sequence[ColorCombi], groups: Sequence[PaletteGroup]) -> None:
    """Every combination must be printable with the spools of a single group."""
    group_sets = [set(g.filament_keys) for g in groups]
    for combi in combinations:
        needed = set(combi.filament_keys)
        if not any(needed <= keys for keys in group_sets):
            raise PaletteError(
                f"combination {combi} needs filaments from more than one AMS group",
                combination=str(combi),
            )


def _build_groups(groups: Sequence[Sequence[Filament]],
                  combinations: Sequence[ColorCombi]) -> List[PaletteGroup]:
    result = []
    for index, members in enumerate(groups):
        keys = tuple(f.key for f in members)
        key_set = set(keys)
        indices = tuple(
            i for i, combi in enumerate(combinations)
            if set(combi.filament_keys) <= key_set
        )
        result.append(PaletteGroup(index, keys, indices))
    return result


# ═══════════════════════════════════════════════════════════════════════════════
# Palette assembly
# ═══════════════════════════════════════════════════════════════════════════════

def build_palette(filaments: Sequence[Filament], layer_count: int,
                  mode: StackingMode = StackingMode.ADDITIVE,
                  ams_slots: int = 0) -> Palette:
    """
    Build the palette of printable combinations for the active filaments.

    Raises:
        ConfigError: layer_count < 1
        PaletteError: no active filament, no filler in additive mode, a
            combination spanning several AMS groups, or nothing printable
    """
    if layer_count < 1:
        raise ConfigError(f"layer count must be >= 1, got {layer_count}")

    active = tuple(sorted((f for f in filaments if f.active), key=lambda f: f.key))
    if not active:
        raise PaletteError("palette has no active filament")

    if mode == StackingMode.ADDITIVE:
        filler = next((f for f in active if f.is_filler), None)
        if filler is None:
            raise PaletteError("additive stacking needs an active white (#FFFFFF) filler filament",
                               filament=FILLER_KEY)
        if not filler.samples:
            raise PaletteError(f"filler {filler.name} ({filler.key}) has no calibrated layer",
                               filament=FILLER_KEY)

    grouped = split_into_groups(active, ams_slots, mode)

    combinations: List[ColorCombi] = []
    for index, members in enumerate(grouped):
        if mode == StackingMode.ADDITIVE:
            combinations.extend(generate_additive(members, layer_count, group=index))
        else:
            combinations.extend(generate_single_color(members, layer_count, group=index))

    # Re-order every stack on the palette-wide rank so layer files agree
    rank = stacking_rank(active)
    combinations = [c.ordered(rank) for c in deduplicate_combinations(combinations)]
    if not combinations:
        raise PaletteError(f"no filament combination reaches {layer_count} layers")

    groups = _build_groups(grouped, combinations)
    validate_groups(combinations, groups)

    print(f"[COMBINATIONS] {len(combinations)} combinations "
          f"({len(active)} filaments, {layer_count} layers, {mode.value}, "
          f"{len(groups)} group(s))")

    return Palette(active, combinations, layer_count, mode, groups)


class CombinationCache:
    """
    Caller-owned memo of built palettes.

    Keyed by (active filaments, layer count, mode, AMS slots); two cache
    instances never share entries.
    """

    def __init__(self):
        self._entries: Dict[tuple, Palette] = {}

    @staticmethod
    def _key(filaments, layer_count, mode, ams_slots) -> tuple:
        active = tuple(sorted((f for f in filaments if f.active), key=lambda f: f.key))
        return (active, layer_count, mode, ams_slots)

    def get_or_build(self, filaments: Sequence[Filament], layer_count: int,
                     mode: StackingMode = StackingMode.ADDITIVE,
                     ams_slots: int = 0) -> Palette:
        key = self._key(filaments, layer_count, mode, ams_slots)
        palette = self._entries.get(key)
        if palette is None:
            palette = build_palette(filaments, layer_count, mode, ams_slots)
            self._entries[key] = palette
        return palette

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self):
        return len(self._entries)

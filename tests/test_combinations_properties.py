"""
Property-based tests for the combination generator.

**Property 1: exact height** — every generated stack sums to N.
**Property 2: additive uniqueness** — no filament appears twice in a stack
and no two stacks share the same (filament, height) multiset.
**Property 3: calibrated heights only** — colored filaments only use heights
they define; the filler may use any height 1..N.
"""

from hypothesis import assume, given, settings
import hypothesis.strategies as st

from config import StackingMode
from litho.color import Hsl
from litho.combinations import build_palette
from litho.palette import Filament, FilamentLayerSample


COLORED_KEYS = ["#AA0000", "#00AA00", "#0000AA", "#AAAA00"]


def _filament(key, heights):
    return Filament(key, key, True, {
        h: FilamentLayerSample(key, h, Hsl(37 * h, 50, 90 - 10 * h)) for h in heights
    })


@st.composite
def palettes(draw):
    n = draw(st.integers(1, 6))
    count = draw(st.integers(0, len(COLORED_KEYS)))
    filaments = [_filament("#FFFFFF", draw(st.sets(st.integers(1, 6), min_size=1, max_size=3)))]
    for key in COLORED_KEYS[:count]:
        filaments.append(_filament(key, draw(st.sets(st.integers(1, 6), min_size=1, max_size=4))))
    return filaments, n


class TestGeneratorProperties:

    @given(data=palettes())
    @settings(max_examples=80, deadline=None)
    def test_every_stack_sums_to_n(self, data):
        filaments, n = data
        palette = build_palette(filaments, n)
        assert all(c.total_height == n for c in palette.combinations)

    @given(data=palettes())
    @settings(max_examples=80, deadline=None)
    def test_no_repeated_filament(self, data):
        filaments, n = data
        palette = build_palette(filaments, n)
        for combi in palette.combinations:
            keys = [layer.filament_key for layer in combi.layers]
            assert len(keys) == len(set(keys))

    @given(data=palettes())
    @settings(max_examples=80, deadline=None)
    def test_no_duplicate_multisets(self, data):
        filaments, n = data
        palette = build_palette(filaments, n)
        keys = [c.key for c in palette.combinations]
        assert len(keys) == len(set(keys))

    @given(data=palettes())
    @settings(max_examples=80, deadline=None)
    def test_only_calibrated_heights(self, data):
        filaments, n = data
        defined = {f.key: set(f.samples) for f in filaments}
        palette = build_palette(filaments, n)
        for combi in palette.combinations:
            for layer in combi.layers:
                if layer.filament_key == "#FFFFFF":
                    assert 1 <= layer.height <= n
                else:
                    assert layer.height in defined[layer.filament_key]

    @given(data=palettes(), slots=st.integers(2, 4))
    @settings(max_examples=60, deadline=None)
    def test_grouped_palette_is_subset(self, data, slots):
        filaments, n = data
        full = {c.key for c in build_palette(filaments, n).combinations}
        grouped = build_palette(filaments, n, ams_slots=slots)
        assert {c.key for c in grouped.combinations} <= full

    @given(data=palettes())
    @settings(max_examples=60, deadline=None)
    def test_single_color_stacks_use_one_filament(self, data):
        filaments, n = data
        assume(any(min(f.samples) <= n for f in filaments))
        palette = build_palette(filaments, n, StackingMode.SINGLE_COLOR)
        for combi in palette.combinations:
            assert len(combi.filament_keys) == 1
            assert combi.total_height == n

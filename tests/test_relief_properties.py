"""
ChromaLitho - 浮雕高度映射属性测试 (Property-Based Tests)

使用 Hypothesis 验证亮度 → 厚度映射的正确性属性。
"""

import numpy as np
from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from litho.heightmap import ReliefMapper


thickness = st.floats(0.05, 5.0, allow_nan=False, allow_infinity=False)


# ============================================================================
# Property 1: 映射公式与值域
# ============================================================================

@settings(max_examples=100)
@given(lum=st.integers(0, 255), low=thickness, high=thickness, darker=st.booleans())
def test_mapping_stays_in_range(lum, low, high, darker):
    """任意亮度的输出都在 [min, max] 内，且满足线性公式"""
    assume(high > low + 1e-6)
    result = float(ReliefMapper.map_luminance_to_height(
        np.array([[lum]], dtype=np.uint8), low, high, darker)[0, 0])

    assert low - 1e-9 <= result <= high + 1e-9
    ratio = lum / 255.0
    expected = high - ratio * (high - low) if darker else low + ratio * (high - low)
    assert np.isclose(result, expected, atol=1e-9)


# ============================================================================
# Property 2: 单调性
# ============================================================================

@settings(max_examples=100, suppress_health_check=[HealthCheck.filter_too_much])
@given(a=st.integers(0, 255), b=st.integers(0, 255), low=thickness, high=thickness)
def test_brighter_is_thicker(a, b, low, high):
    """默认极性下亮度越高越厚；反转后越薄"""
    assume(high > low + 1e-6)
    assume(a < b)
    lum = np.array([[a, b]], dtype=np.uint8)

    normal = ReliefMapper.map_luminance_to_height(lum, low, high)
    inverted = ReliefMapper.map_luminance_to_height(lum, low, high, darker_thicker=True)

    assert normal[0, 0] < normal[0, 1]
    assert inverted[0, 0] > inverted[0, 1]


# ============================================================================
# Property 3: 反转对称
# ============================================================================

@settings(max_examples=100)
@given(lum=st.integers(0, 255), low=thickness, high=thickness)
def test_polarities_sum_to_range(lum, low, high):
    """正常 + 反转 = min + max"""
    assume(high > low + 1e-6)
    grid = np.array([[lum]], dtype=np.uint8)
    total = (ReliefMapper.map_luminance_to_height(grid, low, high)
             + ReliefMapper.map_luminance_to_height(grid, low, high, darker_thicker=True))
    assert np.isclose(float(total[0, 0]), low + high, atol=1e-9)

"""Tests for the six-nearest-neighbour bias lookup."""
from __future__ import annotations

import pytest

from hll_lite.sketch.bias import estimate_bias, nearest_window
from hll_lite.sketch.tables import PUBLISHED_TABLES, CorrectionTable

from tests.sketch.conftest import linear_table


POINTS = tuple(float(i) for i in range(20))


def _brute_force(estimate: float, raw: tuple[float, ...]) -> set[int]:
    ranked = sorted(range(len(raw)), key=lambda i: (abs(estimate - raw[i]), i))
    return set(ranked[:6])


class TestWindowBoundaries:
    def test_below_first_point(self):
        assert nearest_window(-5.0, POINTS) == range(0, 6)

    def test_above_last_point(self):
        assert nearest_window(100.0, POINTS) == range(14, 20)

    def test_near_low_end(self):
        assert nearest_window(2.2, POINTS) == range(0, 6)

    def test_near_high_end(self):
        assert nearest_window(17.9, POINTS) == range(14, 20)

    def test_exactly_six_points(self):
        assert nearest_window(3.0, POINTS[:6]) == range(0, 6)
        assert nearest_window(1e9, POINTS[:6]) == range(0, 6)

    def test_too_few_points(self):
        with pytest.raises(ValueError):
            nearest_window(1.0, POINTS[:5])


class TestWindowTies:
    def test_exact_hit_keeps_lower_side_on_tie(self):
        # 7 and 13 are both 3 away from 10; the high end is dropped first
        assert nearest_window(10.0, POINTS) == range(7, 13)

    def test_midpoint_is_symmetric(self):
        assert nearest_window(10.5, POINTS) == range(8, 14)

    def test_always_six_wide(self):
        for k in range(-10, 250):
            window = nearest_window(k / 10.0, POINTS)
            assert len(window) == 6
            assert 0 <= window.start and window.stop <= len(POINTS)


class TestWindowMatchesNearestNeighbours:
    def test_irregular_table(self):
        raw = tuple(float(x) ** 1.5 for x in range(30))
        for k in range(0, 400):
            estimate = k * 0.37
            assert set(nearest_window(estimate, raw)) == _brute_force(estimate, raw)

    def test_duplicate_reference_points(self):
        raw = (1.0, 2.0, 2.0, 2.0, 3.0, 4.0, 5.0, 9.0, 9.0, 10.0)
        window = nearest_window(2.0, raw)
        assert len(window) == 6
        assert set(range(1, 4)) <= set(window)


class TestEstimateBias:
    def test_mean_of_window(self):
        table = linear_table()
        # window 7..12 -> mean of 7..12
        assert estimate_bias(10.0, table) == 9.5

    def test_constant_bias(self):
        table = linear_table(bias=2.25)
        assert estimate_bias(3.3, table) == 2.25

    def test_reproducible(self):
        table = CorrectionTable(
            precision=5,
            raw_estimates=tuple(1.1 ** i for i in range(40)),
            biases=tuple(0.1 * i * i for i in range(40)),
            threshold=20.0,
        )
        results = {estimate_bias(12.34, table) for _ in range(50)}
        assert len(results) == 1


class TestPublishedTableWindow:
    @pytest.mark.parametrize("precision", [4, 11, 18])
    def test_below_first_point(self, precision):
        raw = PUBLISHED_TABLES[precision].raw_estimates
        assert nearest_window(raw[0] / 2, raw) == range(0, 6)

    @pytest.mark.parametrize("precision", [4, 11, 18])
    def test_above_last_point(self, precision):
        raw = PUBLISHED_TABLES[precision].raw_estimates
        n = len(raw)
        assert nearest_window(raw[-1] * 2, raw) == range(n - 6, n)

    def test_bias_at_low_end(self):
        table = PUBLISHED_TABLES[4]
        expected = sum(table.biases[:6]) / 6
        assert estimate_bias(0.0, table) == pytest.approx(expected)

    def test_bias_at_high_end(self):
        table = PUBLISHED_TABLES[18]
        expected = sum(table.biases[-6:]) / 6
        assert estimate_bias(10.0 * (1 << 18), table) == pytest.approx(expected)

    def test_unsorted_stretch_of_p5_row(self):
        raw = PUBLISHED_TABLES[5].raw_estimates
        for estimate in raw[120:135]:
            window = nearest_window(estimate, raw)
            assert len(window) == 6
            assert 0 <= window.start and window.stop <= len(raw)

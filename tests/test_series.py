"""Tests for volumelab.core.series — ordering, turning points, regression."""

import pytest

from volumelab.core.models import PricePoint
from volumelab.core.series import (
    find_turning_points,
    linear_regression,
    normalize_series,
    r_squared,
    residual_std,
)


def _make_points(closes):
    return [
        PricePoint(date=f"2024-01-{i + 1:02d}", close=c, volume=1000.0)
        for i, c in enumerate(closes)
    ]


class TestNormalizeSeries:
    def test_ascending_input_unchanged(self):
        points = _make_points([1, 2, 3])
        assert normalize_series(points) == points

    def test_descending_input_reversed(self):
        points = _make_points([1, 2, 3])
        result = normalize_series(list(reversed(points)))
        assert [p.date for p in result] == ["2024-01-01", "2024-01-02", "2024-01-03"]

    def test_unordered_input_sorted(self):
        points = _make_points([1, 2, 3, 4])
        shuffled = [points[2], points[0], points[3], points[1]]
        assert normalize_series(shuffled) == points

    def test_accepts_mappings(self):
        result = normalize_series([
            {"date": "2024-01-02", "close": "11.5"},
            {"date": "2024-01-01", "close": 10, "volume": 500, "high": 10.5},
        ])
        assert result[0] == PricePoint(date="2024-01-01", close=10.0, volume=500.0, high=10.5)
        assert result[1].volume == 0.0

    def test_missing_close_raises(self):
        with pytest.raises(ValueError, match="close"):
            normalize_series([{"date": "2024-01-01"}])

    def test_duplicate_date_raises(self):
        points = _make_points([1, 2]) + [PricePoint(date="2024-01-01", close=5.0)]
        with pytest.raises(ValueError, match="Duplicate date"):
            normalize_series(points)

    def test_empty(self):
        assert normalize_series([]) == []


class TestTurningPoints:
    def test_finds_peak_and_trough(self):
        series = _make_points([1, 2, 3, 5, 3, 2, 1, 0, 1, 2, 3])
        tps = find_turning_points(series, window=2)
        assert [(tp.index, tp.kind, tp.value) for tp in tps] == [
            (3, "max", 5),
            (7, "min", 0),
        ]

    def test_ties_disqualify(self):
        series = _make_points([1, 2, 3, 3, 2, 1, 0])
        assert find_turning_points(series, window=1) == []

    def test_edges_never_turning_points(self):
        series = _make_points([9, 1, 2, 3, 2, 1, 9])
        tps = find_turning_points(series, window=3)
        assert tps == []

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            find_turning_points(_make_points([1, 2, 3]), window=0)


class TestRegression:
    def test_perfect_line(self):
        xs = [0, 1, 2, 3, 4]
        ys = [1, 3, 5, 7, 9]
        fit = linear_regression(xs, ys)
        assert fit.slope == pytest.approx(2.0)
        assert fit.intercept == pytest.approx(1.0)
        assert fit.r_squared == pytest.approx(1.0)
        assert fit.predict(10) == pytest.approx(21.0)
        assert residual_std(xs, ys, fit.slope, fit.intercept) == pytest.approx(0.0, abs=1e-9)

    def test_fewer_than_two_points(self):
        assert linear_regression([1], [1]) is None
        assert linear_regression([], []) is None

    def test_vertical_data_returns_none(self):
        assert linear_regression([2, 2, 2], [1, 2, 3]) is None

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="differ in length"):
            linear_regression([1, 2, 3], [1, 2])

    def test_residual_std_is_population(self):
        # Residuals against y = 0 are -1, +1 → population std 1.0
        assert residual_std([0, 1], [-1, 1], 0.0, 0.0) == pytest.approx(1.0)

    def test_r_squared_constant_ys(self):
        assert r_squared([0, 1, 2], [5, 5, 5], 0.0, 5.0) == 0.0

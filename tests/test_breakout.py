"""Tests for the windowed breakout detector.

Covers prefix re-binning, the support/resistance gates, warm-up, window
splitting, the end-on-break policy and zoom offsets.  Scenarios use a
fixed four-zone layout so every weight can be checked by hand.
"""

from datetime import date, timedelta

import numpy as np
import pytest

from volumelab.breakout.detector import _find_anchor, detect_breaks
from volumelab.breakout.models import ZoneLayout
from volumelab.breakout.zones import build_layout, zone_count
from volumelab.config import BreakoutConfig
from volumelab.core.models import PricePoint, Zone


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_series(closes, volumes=None, start=date(2024, 1, 1)):
    volumes = volumes or [100.0] * len(closes)
    return [
        PricePoint(date=(start + timedelta(days=i)).isoformat(), close=c, volume=v)
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


def _four_zone_config(**overrides):
    params = dict(warmup_size=5, min_zones=4, max_zones=4)
    params.update(overrides)
    return BreakoutConfig(**params)


def _up_break_series():
    """Five bars building volume at 100-101, then a thin jump to 104.

    Layout at the last bar (zone height 1.0):
        z0 [100,101) 300   z1 [101,102) 200   z2 empty   z3 [103,104] 10
    """
    return _make_series(
        [100.0, 101.0, 100.0, 101.0, 100.5, 104.0],
        [100.0, 100.0, 100.0, 100.0, 100.0, 10.0],
    )


def _down_break_series():
    """Mirror of the up-break: volume at 102.5-104, then a thin drop to 100."""
    return _make_series(
        [104.0, 102.5, 104.0, 102.5, 103.5, 100.0],
        [100.0, 100.0, 100.0, 100.0, 100.0, 10.0],
    )


def _layout(weights, current):
    zones = tuple(
        Zone(min_price=float(i), max_price=float(i + 1), volume=w, volume_percent=w)
        for i, w in enumerate(weights)
    )
    return ZoneLayout(zones=zones, weights=tuple(weights), zone_height=1.0,
                      current_zone_index=current)


# ── Zones ────────────────────────────────────────────────────────────────


class TestZoneLayout:
    @pytest.mark.parametrize("prefix, expected", [
        (10, 15),
        (240, 16),
        (300, 20),
        (1000, 20),
    ])
    def test_zone_count_clamped(self, prefix, expected):
        assert zone_count(prefix, BreakoutConfig()) == expected

    def test_weights_sum_to_one(self):
        closes = np.array([100.0, 101.0, 102.5, 104.0])
        volumes = np.array([10.0, 20.0, 30.0, 40.0])
        layout = build_layout(closes, volumes, _four_zone_config())
        assert len(layout.zones) == 4
        assert sum(layout.weights) == pytest.approx(1.0)
        assert layout.zone_height == pytest.approx(1.0)
        assert layout.current_zone_index == 3
        assert layout.current_weight == pytest.approx(0.4)

    def test_flat_prefix_single_zone(self):
        layout = build_layout(np.array([5.0, 5.0]), np.array([1.0, 2.0]), BreakoutConfig())
        assert layout.zone_height == 0.0
        assert layout.weights == (1.0,)
        assert layout.zones[0].volume == 3.0

    def test_heaviest_zone(self):
        assert _layout([0.1, 0.5, 0.5, 0.0], 0).heaviest_zone().min_price == 1.0
        assert _layout([0.0, 0.0], 0).heaviest_zone() is None


# ── Anchor gates ─────────────────────────────────────────────────────────


class TestFindAnchor:
    def test_support_found(self):
        layout = _layout([0.4, 0.3, 0.05, 0.01], current=2)
        assert _find_anchor(layout, -1, _four_zone_config()) == (0, 0.4)

    def test_thicker_zone_above_blocks_up_break(self):
        layout = _layout([0.4, 0.3, 0.05, 0.25], current=2)
        assert _find_anchor(layout, -1, _four_zone_config()) is None

    def test_needs_two_heavy_zones_without_merge(self):
        layout = _layout([0.9, 0.0, 0.05, 0.0], current=2)
        assert _find_anchor(layout, -1, _four_zone_config()) is None

    def test_weak_support_rejected(self):
        layout = _layout([0.09, 0.08, 0.01, 0.0], current=2)
        assert _find_anchor(layout, -1, _four_zone_config()) is None

    def test_adjacent_pair_merge(self):
        layout = _layout([0.06, 0.06, 0.0, 0.02, 0.0], current=3)
        plain = _four_zone_config(differential=0.08)
        merged = _four_zone_config(differential=0.08, merge_adjacent=True)

        assert _find_anchor(layout, -1, plain) is None
        index, weight = _find_anchor(layout, -1, merged)
        assert index == 1
        assert weight == pytest.approx(0.12)


# ── Detection ────────────────────────────────────────────────────────────


class TestDetectBreaks:
    def test_up_break(self):
        result = detect_breaks(_up_break_series(), config=_four_zone_config())

        assert len(result.breaks) == 1
        signal = result.breaks[0]
        assert signal.is_up_break
        assert signal.date == "2024-01-06"
        assert signal.price == 104.0
        assert signal.index == 5
        assert signal.support_level == pytest.approx(100.0)
        assert signal.resistance_level is None
        assert signal.triggering_zone_weight == pytest.approx(300 / 510)
        assert signal.current_weight == pytest.approx(10 / 510)

    def test_down_break(self):
        result = detect_breaks(_down_break_series(), config=_four_zone_config())

        assert len(result.breaks) == 1
        signal = result.breaks[0]
        assert not signal.is_up_break
        assert signal.price == 100.0
        assert signal.resistance_level == pytest.approx(104.0)
        assert signal.support_level is None

    def test_down_breaks_can_be_disabled(self):
        config = _four_zone_config(detect_down_breaks=False)
        assert detect_breaks(_down_break_series(), config=config).breaks == []

    def test_warmup_suppresses_signal(self):
        result = detect_breaks(_up_break_series(), config=_four_zone_config(warmup_size=6))
        assert result.breaks == []
        assert len(result.windows[0].snapshots) == 6

    def test_descending_input(self):
        series = list(reversed(_up_break_series()))
        result = detect_breaks(series, config=_four_zone_config())
        assert [b.date for b in result.breaks] == ["2024-01-06"]

    def test_flat_prefix_never_breaks(self):
        result = detect_breaks(_make_series([50.0] * 100))
        assert result.breaks == []
        assert all(s.layout.zone_height == 0 for s in result.windows[0].snapshots)

    def test_rising_series_never_breaks_down(self):
        closes = [100.0 + i * 0.5 for i in range(200)]
        result = detect_breaks(_make_series(closes, [1000.0] * 200))
        assert not any(not b.is_up_break for b in result.breaks)

    def test_zoom_offsets_index(self):
        junk = _make_series([1.0, 200.0, 3.0], start=date(2023, 12, 1))
        result = detect_breaks(junk + _up_break_series(), zoom_range=(3, None),
                               config=_four_zone_config())
        assert len(result.breaks) == 1
        assert result.breaks[0].index == 8
        assert result.windows[0].start_date == "2024-01-01"

    def test_empty_zoom(self):
        result = detect_breaks(_up_break_series(), zoom_range=(0, 0))
        assert result.windows == []
        assert result.breaks == []


class TestWindows:
    def test_split_dates_close_windows(self):
        series = _make_series([10.0] * 10)
        result = detect_breaks(series, window_split_dates=["2024-01-04"])

        assert len(result.windows) == 2
        first, second = result.windows
        assert (first.start_date, first.end_date) == ("2024-01-01", "2024-01-04")
        assert (second.start_date, second.end_date) == ("2024-01-05", "2024-01-10")
        assert second.window_index == 1
        assert len(first.snapshots) == 4

    def test_split_date_on_last_bar(self):
        series = _make_series([10.0] * 5)
        result = detect_breaks(series, window_split_dates=["2024-01-05"])
        assert len(result.windows) == 1

    def test_scanning_continues_after_break(self):
        series = _up_break_series() + _make_series([104.0, 104.0], start=date(2024, 1, 7))
        result = detect_breaks(series, config=_four_zone_config())
        assert len(result.windows) == 1
        assert result.windows[0].end_date == "2024-01-08"
        assert result.windows[0].break_detected

    def test_end_window_on_break(self):
        series = _up_break_series() + _make_series([104.0, 104.0], start=date(2024, 1, 7))
        config = _four_zone_config(end_window_on_break=True)
        result = detect_breaks(series, config=config)

        assert len(result.breaks) == 1
        assert len(result.windows) == 2
        assert result.windows[0].end_date == "2024-01-06"
        assert result.windows[0].break_detected
        assert result.windows[1].start_date == "2024-01-07"
        assert not result.windows[1].break_detected

    def test_split_window_preset(self):
        config = BreakoutConfig.split_window()
        assert config.differential == 0.08
        assert config.merge_adjacent
        assert config.end_window_on_break
        assert BreakoutConfig.continuous() == BreakoutConfig()

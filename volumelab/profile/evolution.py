"""Profile evolution and benchmark comparison.

Tracks how the POC and value area shift across sliding windows, and
compares one series' volume concentration against a benchmark's.
"""

import logging
import math
from collections.abc import Sequence
from typing import Optional

import numpy as np

from volumelab.config import EvolutionConfig, ProfileConfig
from volumelab.core.series import PointLike, normalize_series
from volumelab.profile.models import (
    EvolutionResult,
    EvolutionWindow,
    PocTrendPoint,
    ProfileComparison,
    ValueAreaExpansion,
    ValueAreaTrendPoint,
)
from volumelab.profile.statistics import compute_statistics

logger = logging.getLogger("volumelab.profile")

# Relative width change (percent) beyond which the value area counts as moving.
EXPANSION_THRESHOLD_PCT = 5.0


def analyze_evolution(
    series: Sequence[PointLike],
    config: Optional[EvolutionConfig] = None,
) -> EvolutionResult:
    """Recompute the profile over windows of ``window_size`` bars stepped by ``step_size``.

    Each window is dated at its middle bar.  ``poc_volatility`` is the
    population standard deviation of the per-window POC prices.

    Returns an empty ``EvolutionResult`` when the series is shorter than
    one window.
    """
    config = config or EvolutionConfig()
    points = normalize_series(series)
    if len(points) < config.window_size:
        return EvolutionResult()

    profile_config = ProfileConfig(num_bins=config.num_bins)
    windows: list[EvolutionWindow] = []
    poc_trend: list[PocTrendPoint] = []
    va_trend: list[ValueAreaTrendPoint] = []

    for start in range(0, len(points) - config.window_size + 1, config.step_size):
        window = points[start : start + config.window_size]
        stats = compute_statistics(window, profile_config)
        middle = window[len(window) // 2].date

        windows.append(EvolutionWindow(
            start_index=start,
            end_index=start + config.window_size - 1,
            start_date=window[0].date,
            end_date=window[-1].date,
            stats=stats,
        ))
        poc_trend.append(PocTrendPoint(
            date=middle, poc_price=stats.poc.price, poc_volume=stats.poc.volume,
        ))
        va_trend.append(ValueAreaTrendPoint(
            date=middle,
            value_area_high=stats.value_area_high,
            value_area_low=stats.value_area_low,
        ))

    logger.debug("Profile evolution: %d windows", len(windows))
    return EvolutionResult(
        windows=windows,
        poc_trend=poc_trend,
        value_area_trend=va_trend,
        poc_volatility=float(np.std([p.poc_price for p in poc_trend])),
        value_area_expansion=_value_area_expansion(va_trend),
    )


def _value_area_expansion(trend: list[ValueAreaTrendPoint]) -> Optional[ValueAreaExpansion]:
    """Classify the first → last change in value-area width.

    A first width of zero gives a rate of ``inf`` (or ``0.0`` when the
    last width is also zero).
    """
    if not trend:
        return None

    widths = [t.width for t in trend]
    first, last = widths[0], widths[-1]
    if first == 0:
        rate = 0.0 if last == 0 else math.inf
    else:
        rate = (last - first) / first * 100

    if rate > EXPANSION_THRESHOLD_PCT:
        label = "expanding"
    elif rate < -EXPANSION_THRESHOLD_PCT:
        label = "contracting"
    else:
        label = "stable"

    return ValueAreaExpansion(
        trend=label,
        rate=rate,
        avg_width=sum(widths) / len(widths),
        min_width=min(widths),
        max_width=max(widths),
    )


# ── Benchmark comparison ─────────────────────────────────────────────────


def compare_profiles(
    series: Sequence[PointLike],
    benchmark: Sequence[PointLike],
    config: Optional[ProfileConfig] = None,
) -> ProfileComparison:
    """Compare the volume concentration of *series* against *benchmark*.

    ``relative_volume_concentration`` is the ratio of POC volume shares;
    ``relative_hvn_count`` the ratio of HVN counts (benchmark count floored
    at 1).  Both are ``None`` when either profile is empty or the benchmark
    POC holds no volume.
    """
    stock = compute_statistics(series, config)
    bench = compute_statistics(benchmark, config)

    if stock.poc is None or bench.poc is None or bench.poc.volume_percent == 0:
        return ProfileComparison(
            stock=stock,
            benchmark=bench,
            relative_volume_concentration=None,
            relative_hvn_count=None,
            interpretation="Insufficient data for comparison",
        )

    concentration = stock.poc.volume_percent / bench.poc.volume_percent
    hvn_count = len(stock.high_volume_nodes) / max(len(bench.high_volume_nodes), 1)
    return ProfileComparison(
        stock=stock,
        benchmark=bench,
        relative_volume_concentration=concentration,
        relative_hvn_count=hvn_count,
        interpretation=interpret_comparison(concentration, hvn_count),
    )


def interpret_comparison(volume_concentration: float, hvn_count: float) -> str:
    """Plain-language reading of the two comparison ratios."""
    if volume_concentration > 1.2 and hvn_count > 1.2:
        return (
            "Higher volume concentration and more support/resistance levels "
            "than benchmark - more institutional interest"
        )
    if volume_concentration < 0.8 and hvn_count < 0.8:
        return (
            "Lower volume concentration and fewer support/resistance levels "
            "- less institutional interest"
        )
    if volume_concentration > 1.2:
        return "Higher volume concentration at key levels - strong accumulation/distribution zones"
    return "Volume distribution similar to benchmark - typical trading behavior"

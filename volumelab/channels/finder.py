"""Channel finder — grid search of regression channels scored by turning-point touches.

Every ``(start, length)`` cell gets an OLS fit of the closes; each stdev
multiplier turns the fit into a band, and the band scores one point per
turning point sitting on the matching boundary.

``optimize_slope_channel`` instead grows a single channel backwards from
the newest bar until the older data stops fitting it.
"""

import logging
import math
from collections.abc import Sequence
from typing import Optional

import numpy as np

from volumelab.channels.models import Channel
from volumelab.config import ChannelConfig
from volumelab.core.models import TurningPoint
from volumelab.core.series import (
    PointLike,
    find_turning_points,
    linear_regression,
    normalize_series,
    residual_std,
)

logger = logging.getLogger("volumelab.channels")

# Used when max_start_index is not configured: leave room for one minimum channel.
DEFAULT_START_MARGIN = 20
# Volume filter drops points at or below this volume percentile.
VOLUME_FILTER_PERCENTILE = 0.1


def count_touches(
    turning_points: Sequence[TurningPoint],
    slope: float,
    intercept: float,
    channel_width: float,
    tolerance: float = 0.05,
) -> int:
    """Count turning points that touch the channel boundary on their own side.

    A max touches when ``|value − upper| ≤ tolerance × 2 × width`` and it
    sits on or above the midline; a min mirrors this against the lower
    bound.
    """
    band = channel_width * 2 * tolerance
    touches = 0
    for tp in turning_points:
        predicted = slope * tp.index + intercept
        if tp.kind == "max":
            if abs(tp.value - (predicted + channel_width)) <= band and tp.value >= predicted:
                touches += 1
        elif abs(tp.value - (predicted - channel_width)) <= band and tp.value <= predicted:
            touches += 1
    return touches


def _valid_mask(volumes: np.ndarray, min_length: int) -> np.ndarray:
    """Mask of bars whose volume is above the 10th percentile of non-zero volumes.

    Falls back to every bar when fewer than *min_length* survive.
    """
    everything = np.ones(len(volumes), dtype=bool)
    traded = np.sort(volumes[volumes > 0])
    if len(traded) == 0:
        return everything
    threshold = traded[math.floor(len(traded) * VOLUME_FILTER_PERCENTILE)]
    mask = volumes > threshold
    if mask.sum() < min_length:
        return everything
    return mask


def _outside_fraction(
    xs: np.ndarray, ys: np.ndarray, slope: float, intercept: float, width: float, tolerance: float,
) -> float:
    """Fraction of closes beyond the band by more than the touch tolerance."""
    predicted = slope * xs + intercept
    slack = width * 2 * tolerance
    outside = (ys - (predicted + width) > slack) | ((predicted - width) - ys > slack)
    return float(outside.sum()) / len(xs)


def find_best_channels(
    series: Sequence[PointLike],
    config: Optional[ChannelConfig] = None,
) -> list[Channel]:
    """Search the start/length/multiplier grid for the best-touching channels.

    Keeps candidates whose touch count is at least
    ``floor(max_touch × similarity_threshold)`` and returns them sorted by
    touch count, then length, both descending.  Returns ``[]`` when the
    series is shorter than ``min_length`` or nothing touches.
    """
    config = config or ChannelConfig()
    points = normalize_series(series)
    n = len(points)
    if n < config.min_length:
        return []

    closes = np.array([p.close for p in points], dtype=float)
    if config.volume_filter:
        mask = _valid_mask(np.array([p.volume for p in points], dtype=float), config.min_length)
    else:
        mask = np.ones(n, dtype=bool)

    turning_points = [
        tp for tp in find_turning_points(points, config.turning_point_window) if mask[tp.index]
    ]

    max_start = (
        config.max_start_index
        if config.max_start_index is not None
        else max(0, n - DEFAULT_START_MARGIN)
    )

    candidates: list[Channel] = []
    for start in range(config.min_start_index, max_start + 1, config.start_step):
        remaining = n - start
        if remaining < config.min_length:
            continue
        longest = min(config.max_length, remaining) if config.max_length else remaining

        for length in range(config.min_length, longest + 1, config.length_step):
            end = start + length - 1
            segment = mask[start : end + 1]
            xs = np.arange(start, end + 1, dtype=float)[segment]
            ys = closes[start : end + 1][segment]

            fit = linear_regression(xs, ys)
            if fit is None:
                continue
            std_dev = residual_std(xs, ys, fit.slope, fit.intercept)

            segment_tps = [tp for tp in turning_points if start <= tp.index <= end]
            if not segment_tps:
                continue

            for multiplier in config.stdev_multipliers:
                width = std_dev * multiplier
                within = 1.0
                if config.max_outside_fraction is not None:
                    outside = _outside_fraction(
                        xs, ys, fit.slope, fit.intercept, width, config.touch_tolerance,
                    )
                    if outside > config.max_outside_fraction:
                        continue
                    within = 1.0 - outside

                touches = count_touches(
                    segment_tps, fit.slope, fit.intercept, width, config.touch_tolerance,
                )
                if touches == 0:
                    continue
                candidates.append(Channel(
                    start_index=start,
                    end_index=end,
                    slope=fit.slope,
                    intercept=fit.intercept,
                    std_dev=std_dev,
                    stdev_multiplier=multiplier,
                    touch_count=touches,
                    turning_points_count=len(segment_tps),
                    length=length,
                    channel_width=width,
                    percent_within_bounds=within,
                    r_squared=fit.r_squared,
                ))

    if not candidates:
        logger.info("Channel search over %d bars: no touching channel", n)
        return []

    max_touch = max(c.touch_count for c in candidates)
    floor_touch = math.floor(max_touch * config.similarity_threshold)
    best = [c for c in candidates if c.touch_count >= floor_touch]
    best.sort(key=lambda c: (-c.touch_count, -c.length))

    logger.info(
        "Channel search over %d bars: %d candidate(s), %d within %.0f%% of %d touches",
        n, len(candidates), len(best), config.similarity_threshold * 100, max_touch,
    )
    return best


def filter_overlapping(channels: Sequence[Channel], overlap_threshold: float = 0.5) -> list[Channel]:
    """Drop channels that mostly overlap a better-ranked kept channel.

    *channels* must already be ranked best-first.  The first is always
    kept; each later one is dropped when ``overlap / its own length``
    exceeds *overlap_threshold* against any kept channel.
    """
    if len(channels) <= 1:
        return list(channels)

    kept = [channels[0]]
    for candidate in channels[1:]:
        candidate_length = candidate.end_index - candidate.start_index + 1
        overlapping = False
        for existing in kept:
            overlap = max(
                0,
                min(candidate.end_index, existing.end_index)
                - max(candidate.start_index, existing.start_index)
                + 1,
            )
            if overlap / candidate_length > overlap_threshold:
                overlapping = True
                break
        if not overlapping:
            kept.append(candidate)
    return kept


def fit_channel(
    series: Sequence[PointLike],
    start_index: int,
    end_index: int,
    stdev_multiplier: float = 2.0,
    tolerance: float = 0.05,
    turning_point_window: int = 3,
) -> Optional[Channel]:
    """Fit a channel to the inclusive index range of a hand-picked segment.

    Returns ``None`` when the range holds fewer than 2 bars.
    """
    points = normalize_series(series)
    start = max(0, start_index)
    end = min(len(points) - 1, end_index)
    if end - start + 1 < 2:
        return None

    xs = np.arange(start, end + 1, dtype=float)
    ys = np.array([p.close for p in points[start : end + 1]], dtype=float)
    fit = linear_regression(xs, ys)
    if fit is None:
        return None

    std_dev = residual_std(xs, ys, fit.slope, fit.intercept)
    width = std_dev * stdev_multiplier
    segment_tps = [
        tp for tp in find_turning_points(points, turning_point_window)
        if start <= tp.index <= end
    ]
    return Channel(
        start_index=start,
        end_index=end,
        slope=fit.slope,
        intercept=fit.intercept,
        std_dev=std_dev,
        stdev_multiplier=stdev_multiplier,
        touch_count=count_touches(segment_tps, fit.slope, fit.intercept, width, tolerance),
        turning_points_count=len(segment_tps),
        length=end - start + 1,
        channel_width=width,
        r_squared=fit.r_squared,
    )


# ── Slope channel optimiser ──────────────────────────────────────────────

# Candidate band multipliers, narrowest first: 1.0, 1.1, ... 4.0.
SLOPE_MULTIPLIERS = tuple(round(1.0 + 0.1 * i, 1) for i in range(31))
SLOPE_FALLBACK_MULTIPLIER = 2.5
MIN_SLOPE_POINTS = 10


def find_optimal_stdev(
    xs: Sequence[float],
    ys: Sequence[float],
    slope: float,
    intercept: float,
    std_dev: float,
    max_outside_fraction: float = 0.05,
    tolerance: float = 0.05,
) -> tuple[float, int, bool]:
    """Pick the narrowest band multiplier that keeps enough closes inside.

    Walks ``SLOPE_MULTIPLIERS`` and returns ``(multiplier, touches, True)``
    for the first one with at most *max_outside_fraction* of the points
    strictly outside ``midline ± std_dev × multiplier``.  *touches* counts
    points within ``tolerance × 2 × width`` of either boundary.

    Returns ``(2.5, 0, False)`` when no multiplier qualifies.
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if len(x) == 0:
        return SLOPE_FALLBACK_MULTIPLIER, 0, False

    predicted = slope * x + intercept
    for multiplier in SLOPE_MULTIPLIERS:
        width = std_dev * multiplier
        upper = predicted + width
        lower = predicted - width
        outside = np.count_nonzero((y > upper) | (y < lower))
        if outside / len(y) <= max_outside_fraction:
            slack = width * 2 * tolerance
            touches = np.count_nonzero((np.abs(y - upper) <= slack) | (np.abs(y - lower) <= slack))
            return multiplier, int(touches), True
    return SLOPE_FALLBACK_MULTIPLIER, 0, False


def _trend_broken(
    xs: np.ndarray, ys: np.ndarray, slope: float, intercept: float, width: float, threshold: float,
) -> bool:
    """True when more than *threshold* of the points lie outside the band."""
    if len(xs) == 0:
        return False
    predicted = slope * xs + intercept
    outside = np.count_nonzero((ys > predicted + width) | (ys < predicted - width))
    return outside / len(xs) > threshold


def optimize_slope_channel(
    series: Sequence[PointLike],
    min_lookback: int = 100,
    max_outside_fraction: float = 0.05,
    trend_break_threshold: float = 0.5,
    volume_filter: bool = False,
    tolerance: float = 0.05,
    turning_point_window: int = 3,
) -> Optional[Channel]:
    """Fit a channel to the most recent bars, extending the lookback while the trend holds.

    Starts from the newest ``min_lookback`` bars and adds one older bar at
    a time.  Before each refit, the oldest tenth of the extended window is
    checked against the current band; the search stops when more than
    *trend_break_threshold* of it lies outside, or when the refit has no
    multiplier in ``SLOPE_MULTIPLIERS`` keeping at most
    *max_outside_fraction* of the closes inside.

    With fewer than 10 usable points in the starting window, or no valid
    multiplier for it, the channel covers ``min_lookback`` bars with
    multiplier 2.5 and zero touches.  ``touch_count`` counts closes near
    either boundary rather than turning points.

    Returns ``None`` for series shorter than 10 bars.
    """
    if min_lookback < 2:
        raise ValueError(f"min_lookback must be >= 2, got {min_lookback}")

    points = normalize_series(series)
    n = len(points)
    if n < MIN_SLOPE_POINTS:
        return None

    closes = np.array([p.close for p in points], dtype=float)
    indices = np.arange(n, dtype=float)
    if volume_filter:
        mask = _valid_mask(np.array([p.volume for p in points], dtype=float), MIN_SLOPE_POINTS)
    else:
        mask = np.ones(n, dtype=bool)

    def _window(count: int) -> tuple[np.ndarray, np.ndarray]:
        start = n - count
        keep = mask[start:]
        return indices[start:][keep], closes[start:][keep]

    count = min(min_lookback, n)
    multiplier, touches = SLOPE_FALLBACK_MULTIPLIER, 0
    xs, ys = _window(count)
    fit = linear_regression(xs, ys) if len(xs) >= MIN_SLOPE_POINTS else None
    if fit is not None:
        std_dev = residual_std(xs, ys, fit.slope, fit.intercept)
        multiplier, touches, valid = find_optimal_stdev(
            xs, ys, fit.slope, fit.intercept, std_dev, max_outside_fraction, tolerance,
        )
        if valid:
            for extended in range(count + 1, n + 1):
                xs, ys = _window(extended)
                if len(xs) < MIN_SLOPE_POINTS:
                    continue

                oldest = xs <= n - 1 - math.floor((extended - 1) * 0.9)
                if _trend_broken(
                    xs[oldest], ys[oldest], fit.slope, fit.intercept,
                    std_dev * multiplier, trend_break_threshold,
                ):
                    logger.debug("Trend break extending lookback to %d bars", extended)
                    break

                candidate = linear_regression(xs, ys)
                if candidate is None:
                    break
                candidate_std = residual_std(xs, ys, candidate.slope, candidate.intercept)
                candidate_multiplier, candidate_touches, valid = find_optimal_stdev(
                    xs, ys, candidate.slope, candidate.intercept, candidate_std,
                    max_outside_fraction, tolerance,
                )
                if not valid:
                    break
                count = extended
                fit, std_dev = candidate, candidate_std
                multiplier, touches = candidate_multiplier, candidate_touches

    # Final band over every bar of the chosen lookback.
    start = n - count
    xs = indices[start:]
    ys = closes[start:]
    final = linear_regression(xs, ys)
    if final is None:
        return None
    final_std = residual_std(xs, ys, final.slope, final.intercept)
    width = final_std * multiplier
    predicted = final.slope * xs + final.intercept
    outside = np.count_nonzero((ys > predicted + width) | (ys < predicted - width))

    segment_tps = [
        tp for tp in find_turning_points(points, turning_point_window) if tp.index >= start
    ]
    logger.info(
        "Slope channel over the last %d of %d bars: x%.1f stdev, %d touches",
        count, n, multiplier, touches,
    )
    return Channel(
        start_index=start,
        end_index=n - 1,
        slope=final.slope,
        intercept=final.intercept,
        std_dev=final_std,
        stdev_multiplier=multiplier,
        touch_count=touches,
        turning_points_count=len(segment_tps),
        length=count,
        channel_width=width,
        percent_within_bounds=1.0 - outside / count,
        r_squared=final.r_squared,
    )

"""Windowed breakout detector — low-volume breakouts from cumulative zone layouts.

At every bar of a window the detector re-bins the window's prefix up to
that bar and asks whether price has just moved into a thin zone next to a
heavy one:

  - Up-break: heavier zones directly below (support), thinner zones above.
  - Down-break: heavier zones directly above (resistance), thinner below.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

import numpy as np

from volumelab.breakout.models import (
    BreakoutResult,
    BreakSignal,
    BreakWindow,
    ZoneLayout,
    ZoneSnapshot,
)
from volumelab.breakout.zones import build_layout
from volumelab.config import BreakoutConfig
from volumelab.core.series import PointLike, normalize_series

logger = logging.getLogger("volumelab.breakout")


def _non_zero_zones(
    weights: tuple[float, ...], origin: int, step: int, limit: int,
) -> list[tuple[int, float]]:
    """Up to *limit* non-empty zones walking from *origin* in direction *step*.

    The zone at *origin* itself is excluded; nearest zones come first.
    """
    found: list[tuple[int, float]] = []
    idx = origin + step
    while 0 <= idx < len(weights) and len(found) < limit:
        if weights[idx] > 0:
            found.append((idx, weights[idx]))
        idx += step
    return found


def _find_anchor(
    layout: ZoneLayout, step: int, config: BreakoutConfig,
) -> Optional[tuple[int, float]]:
    """Return ``(zone_index, weight)`` of the heavy zone price is breaking away from.

    *step* is ``-1`` to look for support below (up-break) and ``+1`` to
    look for resistance above (down-break).  ``None`` when the gates fail.
    """
    current = layout.current_weight
    heavy = _non_zero_zones(layout.weights, layout.current_zone_index, step, config.lookback_zones)
    if not heavy:
        return None

    candidates = list(heavy)
    if config.merge_adjacent:
        # Pairs are anchored on the zone nearer to price.
        candidates += [
            (heavy[k][0], heavy[k][1] + heavy[k + 1][1]) for k in range(len(heavy) - 1)
        ]
        triggered = any(w - current >= config.differential for _, w in candidates)
    else:
        triggered = len(heavy) >= 2 and all(
            w - current >= config.differential for _, w in heavy[:2]
        )
    if not triggered:
        return None

    anchor = max(candidates, key=lambda c: c[1])  # first (nearest) maximum wins
    if anchor[1] < config.support_volume_threshold:
        return None

    thin = _non_zero_zones(
        layout.weights, layout.current_zone_index, -step, config.lookahead_zones,
    )
    if any(w >= current for _, w in thin):
        return None
    return anchor


def detect_breaks(
    series: Sequence[PointLike],
    zoom_range: tuple[int, Optional[int]] = (0, None),
    window_split_dates: Iterable[str] = (),
    config: Optional[BreakoutConfig] = None,
) -> BreakoutResult:
    """Scan *series* for low-volume breakouts and breakdowns.

    Args:
        series: Price series in either date order.
        zoom_range: Half-open ``(start, end)`` index slice of the ascending
            series to analyse; ``end=None`` means the series end.
        window_split_dates: Dates that close the current window (the date
            itself is the window's last bar).
        config: Detector parameters; defaults to the continuous variant.

    Returns:
        ``BreakoutResult`` with one ``BreakWindow`` per processed window
        and the breaks in chronological order.
    """
    config = config or BreakoutConfig()
    points = normalize_series(series)
    start, end = zoom_range
    offset = max(0, start)
    visible = points[offset : len(points) if end is None else end]
    if not visible:
        return BreakoutResult()

    closes = np.array([p.close for p in visible], dtype=float)
    volumes = np.array([p.volume for p in visible], dtype=float)
    split_dates = set(window_split_dates)

    windows: list[BreakWindow] = []
    breaks: list[BreakSignal] = []
    window_start = 0
    n = len(visible)

    while window_start < n:
        window_end = n
        for k in range(window_start, n):
            if visible[k].date in split_dates:
                window_end = k + 1
                break

        window_index = len(windows)
        snapshots: list[ZoneSnapshot] = []
        detected = False

        for pos in range(window_start, window_end):
            point = visible[pos]
            layout = build_layout(
                closes[window_start : pos + 1], volumes[window_start : pos + 1], config,
            )
            snapshots.append(ZoneSnapshot(
                date=point.date, price=point.close, volume=point.volume, layout=layout,
            ))

            if layout.zone_height == 0 or pos - window_start < config.warmup_size:
                continue

            signal = _evaluate(layout, point.date, point.close, window_index, offset + pos, config)
            if signal is None:
                continue

            breaks.append(signal)
            detected = True
            logger.debug(
                "%s-break at %s (%.4f), window %d, anchor weight %.3f",
                "Up" if signal.is_up_break else "Down", signal.date, signal.price,
                window_index, signal.triggering_zone_weight,
            )
            if config.end_window_on_break:
                window_end = pos + 1
                break

        windows.append(BreakWindow(
            window_index=window_index,
            start_date=visible[window_start].date,
            end_date=visible[window_end - 1].date,
            snapshots=snapshots,
            break_detected=detected,
        ))
        window_start = window_end

    logger.info(
        "Breakout scan: %d bars, %d window(s), %d break(s)", n, len(windows), len(breaks),
    )
    return BreakoutResult(windows=windows, breaks=breaks)


def _evaluate(
    layout: ZoneLayout,
    date: str,
    price: float,
    window_index: int,
    index: int,
    config: BreakoutConfig,
) -> Optional[BreakSignal]:
    support = _find_anchor(layout, -1, config)
    if support is not None:
        return BreakSignal(
            date=date,
            price=price,
            is_up_break=True,
            window_index=window_index,
            index=index,
            triggering_zone_weight=support[1],
            current_weight=layout.current_weight,
            support_level=layout.zones[support[0]].min_price,
        )

    if not config.detect_down_breaks:
        return None
    resistance = _find_anchor(layout, 1, config)
    if resistance is not None:
        return BreakSignal(
            date=date,
            price=price,
            is_up_break=False,
            window_index=window_index,
            index=index,
            triggering_zone_weight=resistance[1],
            current_weight=layout.current_weight,
            resistance_level=layout.zones[resistance[0]].max_price,
        )
    return None

"""Series utilities — ordering, turning points, least-squares regression. Pure functions, no I/O."""

from collections.abc import Mapping, Sequence
from typing import Optional, Union

import numpy as np

from volumelab.core.models import PricePoint, RegressionResult, TurningPoint


PointLike = Union[PricePoint, Mapping]


def _to_point(raw: PointLike) -> PricePoint:
    if isinstance(raw, PricePoint):
        return raw
    try:
        return PricePoint(
            date=str(raw["date"]),
            close=float(raw["close"]),
            volume=float(raw.get("volume") or 0.0),
            high=float(raw["high"]) if raw.get("high") is not None else None,
            low=float(raw["low"]) if raw.get("low") is not None else None,
        )
    except KeyError as exc:
        raise ValueError(f"Price point is missing required field {exc}") from exc


def normalize_series(points: Sequence[PointLike]) -> list[PricePoint]:
    """Return *points* as ``PricePoint`` objects in ascending date order.

    Accepts oldest-first or newest-first input, and plain mappings with
    ``date``/``close``/``volume`` keys.  Dates compare as strings, so they
    must sort chronologically (ISO-8601).

    Raises ``ValueError`` if two points share a date.
    """
    series = [_to_point(p) for p in points]
    if len(series) < 2:
        return series

    if series[0].date > series[-1].date:
        series.reverse()
    if any(series[i].date >= series[i + 1].date for i in range(len(series) - 1)):
        series.sort(key=lambda p: p.date)
        for i in range(len(series) - 1):
            if series[i].date == series[i + 1].date:
                raise ValueError(f"Duplicate date in price series: {series[i].date}")
    return series


# ── Turning points ───────────────────────────────────────────────────────


def find_turning_points(series: Sequence[PricePoint], window: int = 3) -> list[TurningPoint]:
    """Identify local maxima and minima of the close series.

    Index ``i`` is a max (min) when its close is strictly greater (less)
    than every close within *window* bars on each side.  Equal neighbours
    disqualify both kinds.  The first and last *window* bars are never
    turning points.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    points: list[TurningPoint] = []
    for i in range(window, len(series) - window):
        current = series[i].close
        is_max = True
        is_min = True
        for j in range(-window, window + 1):
            if j == 0:
                continue
            other = series[i + j].close
            if other >= current:
                is_max = False
            if other <= current:
                is_min = False
            if not is_max and not is_min:
                break
        if is_max:
            points.append(TurningPoint(index=i, kind="max", value=current))
        elif is_min:
            points.append(TurningPoint(index=i, kind="min", value=current))
    return points


# ── Regression ───────────────────────────────────────────────────────────


def linear_regression(
    xs: Sequence[float], ys: Sequence[float],
) -> Optional[RegressionResult]:
    """Ordinary least-squares fit of *ys* on *xs*.

        slope     = (n·Σxy − Σx·Σy) / (n·Σx² − (Σx)²)
        intercept = (Σy − slope·Σx) / n

    Returns ``None`` for fewer than 2 points or when every x is equal.
    """
    if len(xs) != len(ys):
        raise ValueError(f"xs and ys differ in length: {len(xs)} != {len(ys)}")
    n = len(xs)
    if n < 2:
        return None

    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    sum_x = x.sum()
    sum_y = y.sum()
    denominator = n * np.dot(x, x) - sum_x * sum_x
    if denominator == 0:
        return None

    slope = float((n * np.dot(x, y) - sum_x * sum_y) / denominator)
    intercept = float((sum_y - slope * sum_x) / n)
    return RegressionResult(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared(xs, ys, slope, intercept),
    )


def residual_std(
    xs: Sequence[float], ys: Sequence[float], slope: float, intercept: float,
) -> float:
    """Population standard deviation of the residuals ``y − (slope·x + intercept)``."""
    if len(xs) == 0:
        return 0.0
    residuals = np.asarray(ys, dtype=float) - (slope * np.asarray(xs, dtype=float) + intercept)
    return float(np.std(residuals))


def r_squared(
    xs: Sequence[float], ys: Sequence[float], slope: float, intercept: float,
) -> float:
    """Coefficient of determination; ``0.0`` when *ys* has no variance."""
    if len(ys) == 0:
        return 0.0
    y = np.asarray(ys, dtype=float)
    predicted = slope * np.asarray(xs, dtype=float) + intercept
    ss_total = float(np.sum((y - y.mean()) ** 2))
    if ss_total == 0:
        return 0.0
    ss_residual = float(np.sum((y - predicted) ** 2))
    return 1.0 - ss_residual / ss_total

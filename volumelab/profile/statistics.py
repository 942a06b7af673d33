"""Volume profile statistics — POC, value area, HVN/LVN detection. Pure functions, no I/O.

Closes are bucketed into equal-width price zones spanning the series range;
each zone accumulates the volume of the bars that closed inside it.
"""

import logging
import math
from collections.abc import Sequence
from typing import Optional

import pandas as pd

from volumelab.config import ProfileConfig
from volumelab.core.models import PricePoint, Zone
from volumelab.core.series import PointLike, normalize_series
from volumelab.profile.models import PeriodProfile, PointOfControl, ProfileStats, VolumeNode

logger = logging.getLogger("volumelab.profile")

# Same-type nodes closer than this many bin widths are merged into a cluster.
CLUSTER_GAP_BINS = 2


def bin_index(price: float, min_price: float, bin_width: float, num_bins: int) -> int:
    """Zone index of *price*, clamped to ``[0, num_bins - 1]``."""
    index = math.floor((price - min_price) / bin_width)
    return max(0, min(num_bins - 1, index))


def compute_statistics(
    series: Sequence[PointLike],
    config: Optional[ProfileConfig] = None,
) -> ProfileStats:
    """Compute the volume profile of *series* and its landmarks.

    Algorithm:
        1. Partition ``[min close, max close]`` into ``num_bins`` zones.
        2. Add each bar's volume to the zone containing its close.
        3. POC = first zone (lowest price) holding the maximum volume.
        4. Value area = zones taken by descending volume until their sum
           first reaches ``value_area_fraction`` of the total.
        5. HVN/LVN = zones far above/below the average zone volume,
           clustered with same-type neighbours.

    Empty input returns an empty ``ProfileStats``; a series with a single
    price level returns one zone holding all the volume.
    """
    config = config or ProfileConfig()
    points = normalize_series(series)

    if not points:
        return ProfileStats(poc=None, value_area_low=None, value_area_high=None)

    closes = [p.close for p in points]
    min_price = min(closes)
    max_price = max(closes)
    total_volume = sum(p.volume for p in points)

    if max_price == min_price:
        return _flat_profile(min_price, total_volume, len(points))

    num_bins = config.num_bins
    bin_width = (max_price - min_price) / num_bins
    volumes = [0.0] * num_bins
    counts = [0] * num_bins
    for point in points:
        idx = bin_index(point.close, min_price, bin_width, num_bins)
        volumes[idx] += point.volume
        counts[idx] += 1

    bins = [
        Zone(
            min_price=min_price + i * bin_width,
            max_price=min_price + (i + 1) * bin_width,
            volume=volumes[i],
            volume_percent=volumes[i] / total_volume if total_volume > 0 else 0.0,
            data_points=counts[i],
        )
        for i in range(num_bins)
    ]
    average = total_volume / num_bins

    poc_zone = max(bins, key=lambda z: z.volume)  # first maximum wins
    poc = PointOfControl(
        price=poc_zone.mid_price,
        min_price=poc_zone.min_price,
        max_price=poc_zone.max_price,
        volume=poc_zone.volume,
        volume_percent=poc_zone.volume_percent,
    )

    binned_volume = math.fsum(volumes)
    value_area, accumulated = _value_area(bins, binned_volume * config.value_area_fraction)
    if value_area:
        value_area_low = value_area[0].min_price
        value_area_high = value_area[-1].max_price
    else:
        value_area_low, value_area_high = min_price, max_price

    hvns = _high_volume_nodes(bins, average, poc_zone.volume, config.hvn_threshold)
    lvns = _low_volume_nodes(bins, average, config.lvn_threshold)

    stats = ProfileStats(
        poc=poc,
        value_area_low=value_area_low,
        value_area_high=value_area_high,
        value_area=value_area,
        high_volume_nodes=cluster_nodes(hvns, bin_width),
        low_volume_nodes=cluster_nodes(lvns, bin_width),
        bins=bins,
        total_volume=total_volume,
        average_volume_per_bin=average,
        value_area_fraction=accumulated / binned_volume if binned_volume > 0 else 0.0,
        price_min=min_price,
        price_max=max_price,
        bin_width=bin_width,
    )
    logger.debug(
        "Profile over %d points: POC %.4f, VA %.4f-%.4f, %d HVN, %d LVN",
        len(points), poc.price, value_area_low, value_area_high,
        len(stats.high_volume_nodes), len(stats.low_volume_nodes),
    )
    return stats


def _flat_profile(price: float, total_volume: float, count: int) -> ProfileStats:
    """Degenerate profile for a series whose closes are all equal."""
    percent = 1.0 if total_volume > 0 else 0.0
    zone = Zone(
        min_price=price, max_price=price, volume=total_volume,
        volume_percent=percent, data_points=count,
    )
    return ProfileStats(
        poc=PointOfControl(
            price=price, min_price=price, max_price=price,
            volume=total_volume, volume_percent=percent,
        ),
        value_area_low=price,
        value_area_high=price,
        value_area=[zone],
        bins=[zone],
        total_volume=total_volume,
        average_volume_per_bin=total_volume,
        value_area_fraction=percent,
        price_min=price,
        price_max=price,
    )


def _value_area(bins: list[Zone], target_volume: float) -> tuple[list[Zone], float]:
    """Greedily take zones by descending volume until *target_volume* is reached.

    Empty zones are never taken.  Sums use ``math.fsum`` so that taking
    every non-empty zone reproduces the binned total exactly.

    Returns the taken zones re-sorted by price, and their summed volume.
    """
    by_volume = sorted(bins, key=lambda z: z.volume, reverse=True)  # stable: ties keep price order
    taken: list[Zone] = []
    accumulated = 0.0
    for zone in by_volume:
        if accumulated >= target_volume or zone.volume == 0:
            break
        taken.append(zone)
        accumulated = math.fsum(z.volume for z in taken)
    taken.sort(key=lambda z: z.min_price)
    return taken, accumulated


# ── Volume nodes ─────────────────────────────────────────────────────────


def _high_volume_nodes(
    bins: list[Zone], average: float, poc_volume: float, threshold: float,
) -> list[VolumeNode]:
    return [
        VolumeNode(
            kind="HVN",
            price=z.mid_price,
            min_price=z.min_price,
            max_price=z.max_price,
            volume=z.volume,
            volume_percent=z.volume_percent,
            volume_ratio=z.volume / average,
            strength=z.volume / poc_volume,
        )
        for z in bins
        if z.volume > 0 and z.volume >= average * threshold
    ]


def _low_volume_nodes(bins: list[Zone], average: float, threshold: float) -> list[VolumeNode]:
    return [
        VolumeNode(
            kind="LVN",
            price=z.mid_price,
            min_price=z.min_price,
            max_price=z.max_price,
            volume=z.volume,
            volume_percent=z.volume_percent,
            volume_ratio=z.volume / average,
            weakness=1 - z.volume / average,
        )
        for z in bins
        if z.volume > 0 and z.volume < average * threshold
    ]


def cluster_nodes(nodes: list[VolumeNode], bin_width: float) -> list[VolumeNode]:
    """Merge same-type nodes whose price gap is at most two bin widths.

    Returns clusters sorted by price.  A cluster sums the member volumes,
    averages their percent, ratio and strength/weakness, and spans the
    union of their price ranges.
    """
    if not nodes:
        return []

    ordered = sorted(nodes, key=lambda n: n.price)
    clusters: list[list[VolumeNode]] = []
    current: list[VolumeNode] = [ordered[0]]
    for node in ordered[1:]:
        if node.min_price - current[-1].max_price <= bin_width * CLUSTER_GAP_BINS:
            current.append(node)
        else:
            clusters.append(current)
            current = [node]
    clusters.append(current)

    return [_merge_cluster(c) for c in clusters]


def _merge_cluster(members: list[VolumeNode]) -> VolumeNode:
    if len(members) == 1:
        return members[0]

    n = len(members)
    low = min(m.min_price for m in members)
    high = max(m.max_price for m in members)
    kind = members[0].kind

    def _mean(values: list[float]) -> float:
        return sum(values) / len(values)

    return VolumeNode(
        kind=kind,
        price=(low + high) / 2,
        min_price=low,
        max_price=high,
        volume=sum(m.volume for m in members),
        volume_percent=_mean([m.volume_percent for m in members]),
        volume_ratio=_mean([m.volume_ratio for m in members]),
        strength=_mean([m.strength for m in members]) if kind == "HVN" else None,
        weakness=_mean([m.weakness for m in members]) if kind == "LVN" else None,
        node_count=n,
    )


# ── Period profiles ──────────────────────────────────────────────────────

_PERIODS = ("day", "week", "month")


def _period_key(date: str, period: str) -> str:
    ts = pd.Timestamp(date)
    if period == "month":
        return f"{ts.year}-{ts.month:02d}"
    if period == "week":
        iso = ts.isocalendar()
        return f"{iso[0]}-W{iso[1]:02d}"
    return ts.strftime("%Y-%m-%d")


def profile_by_period(
    series: Sequence[PointLike],
    period: str = "day",
    config: Optional[ProfileConfig] = None,
) -> list[PeriodProfile]:
    """Compute a separate profile for each calendar *period* of the series.

    *period* is ``"day"``, ``"week"`` (ISO week) or ``"month"``.
    Raises ``ValueError`` for any other period name.
    """
    if period not in _PERIODS:
        raise ValueError(f"Unknown period '{period}'. Available: {', '.join(_PERIODS)}")

    groups: dict[str, list[PricePoint]] = {}
    for point in normalize_series(series):
        groups.setdefault(_period_key(point.date, period), []).append(point)

    return [
        PeriodProfile(
            period=key,
            start_date=points[0].date,
            end_date=points[-1].date,
            stats=compute_statistics(points, config),
        )
        for key, points in groups.items()
    ]

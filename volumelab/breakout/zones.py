"""Prefix re-binning — the zone layout the detector sees at each bar."""

import numpy as np

from volumelab.breakout.models import ZoneLayout
from volumelab.config import BreakoutConfig
from volumelab.core.models import Zone


def zone_count(prefix_length: int, config: BreakoutConfig) -> int:
    """``clamp(floor(prefix_length / points_per_zone), min_zones, max_zones)``."""
    return max(config.min_zones, min(config.max_zones, prefix_length // config.points_per_zone))


def build_layout(
    closes: np.ndarray,
    volumes: np.ndarray,
    config: BreakoutConfig,
) -> ZoneLayout:
    """Bin the prefix (*closes*, *volumes*) into equal-height zones.

    The last element of the prefix is the current bar; its zone index is
    recorded in the layout.  A prefix with no price range collapses into
    one synthetic zone of weight 1.0.
    """
    low = float(closes.min())
    high = float(closes.max())
    total = float(volumes.sum())

    if high == low:
        zone = Zone(
            min_price=low, max_price=low, volume=total,
            volume_percent=1.0, data_points=len(closes),
        )
        return ZoneLayout(zones=(zone,), weights=(1.0,), zone_height=0.0, current_zone_index=0)

    count = zone_count(len(closes), config)
    height = (high - low) / count
    indices = np.clip(np.floor((closes - low) / height).astype(int), 0, count - 1)
    zone_volumes = np.bincount(indices, weights=volumes, minlength=count)
    zone_points = np.bincount(indices, minlength=count)
    weights = zone_volumes / total if total > 0 else np.zeros(count)

    zones = tuple(
        Zone(
            min_price=low + j * height,
            max_price=low + (j + 1) * height,
            volume=float(zone_volumes[j]),
            volume_percent=float(weights[j]),
            data_points=int(zone_points[j]),
        )
        for j in range(count)
    )
    return ZoneLayout(
        zones=zones,
        weights=tuple(float(w) for w in weights),
        zone_height=height,
        current_zone_index=int(indices[-1]),
    )

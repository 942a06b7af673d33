"""Profile signals — rule-based observations on the latest price. Pure functions."""

from collections.abc import Sequence
from typing import Optional

from volumelab.core.series import PointLike, normalize_series
from volumelab.profile.models import ProfileSignal, ProfileStats, VolumeNode

POC_PROXIMITY = 0.02
HVN_PROXIMITY = 0.03
LVN_PROXIMITY = 0.02

POC_CONFIDENCE = 0.65
VALUE_AREA_CONFIDENCE = 0.75
HVN_CONFIDENCE = 0.70
LVN_CONFIDENCE = 0.60


def _nearest_node(price: float, nodes: list[VolumeNode]) -> Optional[VolumeNode]:
    if not nodes:
        return None
    return min(nodes, key=lambda n: abs(price - n.price))


def generate_signals(series: Sequence[PointLike], stats: ProfileStats) -> list[ProfileSignal]:
    """Evaluate the most recent close of *series* against *stats*.

    Rules, in order:
        1. Within 2% of the POC → NEUTRAL (consolidation zone).
        2. Crossed above the value-area high on the last bar → BUY.
        3. Crossed below the value-area low on the last bar → SELL.
        4. Within 3% of the nearest HVN → HOLD (expect a reaction).
        5. Within 2% of the nearest LVN → WATCH (fast-move zone).

    Several rules may fire at once.  Returns ``[]`` for an empty series
    or an empty profile.
    """
    points = normalize_series(series)
    if not points or stats.poc is None:
        return []

    signals: list[ProfileSignal] = []
    price = points[-1].close
    previous = points[-2].close if len(points) > 1 else None
    poc = stats.poc.price

    if poc > 0 and abs(price - poc) / poc < POC_PROXIMITY:
        signals.append(ProfileSignal(
            kind="NEUTRAL",
            reason="Price at Point of Control",
            price=price,
            confidence=POC_CONFIDENCE,
            detail="High volume area - expect consolidation or strong move on break",
            level=poc,
        ))

    if previous is not None:
        vah = stats.value_area_high
        val = stats.value_area_low
        if price > vah and previous <= vah:
            signals.append(ProfileSignal(
                kind="BUY",
                reason="Breakout above Value Area High",
                price=price,
                confidence=VALUE_AREA_CONFIDENCE,
                detail="Price moving into low volume territory above the value area",
                level=vah,
            ))
        if price < val and previous >= val:
            signals.append(ProfileSignal(
                kind="SELL",
                reason="Breakdown below Value Area Low",
                price=price,
                confidence=VALUE_AREA_CONFIDENCE,
                detail="Price moving into low volume territory below the value area",
                level=val,
            ))

    hvn = _nearest_node(price, stats.high_volume_nodes)
    if hvn is not None and abs(price - hvn.price) / price < HVN_PROXIMITY:
        above = price > hvn.price
        signals.append(ProfileSignal(
            kind="HOLD",
            reason=f"Price near High Volume Node ({'above' if above else 'below'})",
            price=price,
            confidence=HVN_CONFIDENCE,
            detail=f"Strong {'support' if above else 'resistance'} zone - expect reaction",
            level=hvn.price,
        ))

    lvn = _nearest_node(price, stats.low_volume_nodes)
    if lvn is not None and abs(price - lvn.price) / price < LVN_PROXIMITY:
        signals.append(ProfileSignal(
            kind="WATCH",
            reason="Price in Low Volume Node",
            price=price,
            confidence=LVN_CONFIDENCE,
            detail="Low volume area - price can move quickly through this zone",
            level=lvn.price,
        ))

    return signals

"""Breakout detector data models."""

from dataclasses import dataclass, field
from typing import Optional

from volumelab.core.models import Zone


@dataclass(frozen=True)
class ZoneLayout:
    """Zones rebuilt from a cumulative prefix of a window.

    ``weights`` are zone volume / prefix volume, aligned with ``zones``.
    """

    zones: tuple[Zone, ...]
    weights: tuple[float, ...]
    zone_height: float
    current_zone_index: int

    @property
    def current_weight(self) -> float:
        return self.weights[self.current_zone_index]

    def heaviest_zone(self) -> Optional[Zone]:
        """First zone of maximum weight, or ``None`` if no zone holds volume."""
        best = None
        best_weight = 0.0
        for zone, weight in zip(self.zones, self.weights):
            if weight > best_weight:
                best, best_weight = zone, weight
        return best


@dataclass(frozen=True)
class ZoneSnapshot:
    """The layout seen at one bar of a window."""

    date: str
    price: float
    volume: float
    layout: ZoneLayout


@dataclass(frozen=True)
class BreakSignal:
    """A confirmed low-volume breakout (``is_up_break``) or breakdown."""

    date: str
    price: float
    is_up_break: bool
    window_index: int
    index: int  # position in the ascending input series
    triggering_zone_weight: float  # weight of the support/resistance zone
    current_weight: float
    support_level: Optional[float] = None
    resistance_level: Optional[float] = None


@dataclass(frozen=True)
class BreakWindow:
    window_index: int
    start_date: str
    end_date: str
    snapshots: list[ZoneSnapshot] = field(default_factory=list)
    break_detected: bool = False


@dataclass(frozen=True)
class BreakoutResult:
    windows: list[BreakWindow] = field(default_factory=list)
    breaks: list[BreakSignal] = field(default_factory=list)

"""Volume profile data models — statistics, nodes, signals, evolution."""

from dataclasses import dataclass, field
from typing import Optional

from volumelab.core.models import Zone


@dataclass(frozen=True)
class PointOfControl:
    """The zone with the highest traded volume."""

    price: float  # zone mid-price
    min_price: float
    max_price: float
    volume: float
    volume_percent: float


@dataclass(frozen=True)
class VolumeNode:
    """A high- or low-volume node, possibly a cluster of adjacent zones."""

    kind: str  # "HVN" or "LVN"
    price: float
    min_price: float
    max_price: float
    volume: float
    volume_percent: float
    volume_ratio: float  # volume / average volume per bin
    strength: Optional[float] = None  # HVN only: volume / POC volume
    weakness: Optional[float] = None  # LVN only: 1 - volume_ratio
    node_count: int = 1

    @property
    def is_cluster(self) -> bool:
        return self.node_count > 1


@dataclass(frozen=True)
class ProfileStats:
    """Volume-by-price distribution and its landmarks.

    An empty input series yields ``poc=None``, ``None`` value-area bounds
    and empty lists.
    """

    poc: Optional[PointOfControl]
    value_area_low: Optional[float]
    value_area_high: Optional[float]
    value_area: list[Zone] = field(default_factory=list)
    high_volume_nodes: list[VolumeNode] = field(default_factory=list)
    low_volume_nodes: list[VolumeNode] = field(default_factory=list)
    bins: list[Zone] = field(default_factory=list)
    total_volume: float = 0.0
    average_volume_per_bin: float = 0.0
    value_area_fraction: float = 0.0
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    bin_width: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.poc is None


@dataclass(frozen=True)
class PeriodProfile:
    """Statistics for one calendar period (day, week or month)."""

    period: str
    start_date: str
    end_date: str
    stats: ProfileStats


@dataclass(frozen=True)
class ProfileSignal:
    """A rule-based observation about the latest price against the profile."""

    kind: str  # BUY / SELL / HOLD / WATCH / NEUTRAL
    reason: str
    price: float
    confidence: float
    detail: str
    level: Optional[float] = None  # the landmark price that triggered the rule


# ── Evolution ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EvolutionWindow:
    start_index: int
    end_index: int
    start_date: str
    end_date: str
    stats: ProfileStats


@dataclass(frozen=True)
class PocTrendPoint:
    date: str
    poc_price: float
    poc_volume: float


@dataclass(frozen=True)
class ValueAreaTrendPoint:
    date: str
    value_area_high: float
    value_area_low: float

    @property
    def width(self) -> float:
        return self.value_area_high - self.value_area_low


@dataclass(frozen=True)
class ValueAreaExpansion:
    """How the value-area width changed between the first and last window."""

    trend: str  # "expanding", "contracting" or "stable"
    rate: float  # percent change first → last
    avg_width: float
    min_width: float
    max_width: float


@dataclass(frozen=True)
class EvolutionResult:
    windows: list[EvolutionWindow] = field(default_factory=list)
    poc_trend: list[PocTrendPoint] = field(default_factory=list)
    value_area_trend: list[ValueAreaTrendPoint] = field(default_factory=list)
    poc_volatility: float = 0.0
    value_area_expansion: Optional[ValueAreaExpansion] = None


@dataclass(frozen=True)
class ProfileComparison:
    """A series' profile compared against a benchmark's."""

    stock: ProfileStats
    benchmark: ProfileStats
    relative_volume_concentration: Optional[float]
    relative_hvn_count: Optional[float]
    interpretation: str

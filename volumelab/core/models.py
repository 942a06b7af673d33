"""Core data models — price points, price zones, turning points."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PricePoint:
    """A single bar of the price series."""

    date: str
    close: float
    volume: float = 0.0
    high: Optional[float] = None
    low: Optional[float] = None


@dataclass(frozen=True)
class Zone:
    """A price bucket ``[min_price, max_price)`` with the volume traded inside it.

    The topmost zone of a layout is closed on both ends.
    """

    min_price: float
    max_price: float
    volume: float
    volume_percent: float
    data_points: int = 0

    @property
    def mid_price(self) -> float:
        return (self.min_price + self.max_price) / 2


@dataclass(frozen=True)
class TurningPoint:
    """A local maximum or minimum of the close series."""

    index: int
    kind: str  # "max" or "min"
    value: float


@dataclass(frozen=True)
class RegressionResult:
    """Ordinary least-squares fit ``y = slope × x + intercept``."""

    slope: float
    intercept: float
    r_squared: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept

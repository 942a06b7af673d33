"""Regression channel data model."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Channel:
    """A regression line over ``[start_index, end_index]`` with a ±``channel_width`` band."""

    start_index: int
    end_index: int
    slope: float
    intercept: float
    std_dev: float
    stdev_multiplier: float
    touch_count: int
    turning_points_count: int
    length: int
    channel_width: float
    percent_within_bounds: float = 1.0
    r_squared: Optional[float] = None

    def midline_at(self, index: float) -> float:
        return self.slope * index + self.intercept

    def upper_at(self, index: float) -> float:
        return self.midline_at(index) + self.channel_width

    def lower_at(self, index: float) -> float:
        return self.midline_at(index) - self.channel_width

"""Breakout backtest pipeline — detect breaks, then replay them."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional

from volumelab.backtest.models import SimulationResult
from volumelab.backtest.simulator import TradeSimulator
from volumelab.breakout.detector import detect_breaks
from volumelab.breakout.models import BreakSignal, BreakWindow
from volumelab.config import BreakoutConfig, SimulationConfig
from volumelab.core.series import PointLike, normalize_series


@dataclass(frozen=True)
class BacktestReport:
    windows: list[BreakWindow] = field(default_factory=list)
    breaks: list[BreakSignal] = field(default_factory=list)
    simulation: SimulationResult = field(default_factory=SimulationResult)


def run_breakout_backtest(
    series: Sequence[PointLike],
    zoom_range: tuple[int, Optional[int]] = (0, None),
    window_split_dates: Iterable[str] = (),
    breakout_config: Optional[BreakoutConfig] = None,
    simulation_config: Optional[SimulationConfig] = None,
) -> BacktestReport:
    """Run the detector over the zoomed slice and simulate on the full series."""
    points = normalize_series(series)
    detected = detect_breaks(points, zoom_range, window_split_dates, breakout_config)
    simulation = TradeSimulator(simulation_config).run(
        points, detected.breaks, detected.windows,
    )
    return BacktestReport(
        windows=detected.windows,
        breaks=detected.breaks,
        simulation=simulation,
    )

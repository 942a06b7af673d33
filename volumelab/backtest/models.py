"""Trade simulation data models."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Trade:
    """A round trip: one buy and its matching sell (or the open position)."""

    buy_price: float
    buy_date: str
    sell_price: float
    sell_date: str
    pl_percent: float
    is_cutoff: bool = False
    is_open: bool = False
    reason: str = ""


@dataclass(frozen=True)
class SignalEvent:
    """A buy or sell the simulator acted on."""

    date: str
    price: float
    is_cutoff: bool = False
    reason: str = ""


@dataclass(frozen=True)
class CutoffUpdate:
    """A point on the trailing-stop line of one trade."""

    date: str
    price: float
    trade_id: int


@dataclass(frozen=True)
class SimulationResult:
    trades: list[Trade] = field(default_factory=list)
    total_pl: float = 0.0
    win_rate: float = 0.0
    market_change: float = 0.0
    buy_signals: list[SignalEvent] = field(default_factory=list)
    sell_signals: list[SignalEvent] = field(default_factory=list)
    cutoff_updates: list[CutoffUpdate] = field(default_factory=list)
    is_holding: bool = False
    summary: Optional[dict] = None

    @property
    def closed_trades(self) -> list[Trade]:
        return [t for t in self.trades if not t.is_open]

    @property
    def sell_dates(self) -> list[str]:
        """Exit dates, usable as ``window_split_dates`` for another detector pass."""
        return [s.date for s in self.sell_signals]

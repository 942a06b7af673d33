"""Backtest statistics — pure functions over the trades of a simulation."""

from typing import Optional

import numpy as np

from volumelab.backtest.models import Trade


def plpercent_after_fees(buy_price: float, sell_price: float, fee: float) -> float:
    """Round-trip return in percent with *fee* charged on both legs.

        effective_buy  = buy × (1 + fee)
        effective_sell = sell × (1 − fee)
        pl             = (effective_sell − effective_buy) / effective_buy × 100
    """
    effective_buy = buy_price * (1 + fee)
    effective_sell = sell_price * (1 - fee)
    return (effective_sell - effective_buy) / effective_buy * 100


def total_pl(trades: list[Trade]) -> float:
    """Sum of every trade's P&L percent, the open trade included."""
    return sum(t.pl_percent for t in trades)


def win_rate(trades: list[Trade]) -> float:
    """Winning closed trades / closed trades × 100; 0.0 with no closed trades."""
    closed = [t for t in trades if not t.is_open]
    if not closed:
        return 0.0
    return sum(1 for t in closed if t.pl_percent > 0) / len(closed) * 100


def market_change(trades: list[Trade]) -> float:
    """Simple return from the first trade's buy to the last trade's sell, in percent."""
    if not trades:
        return 0.0
    start = trades[0].buy_price
    return (trades[-1].sell_price - start) / start * 100


def calculate_stats(trades: list[Trade]) -> dict:
    """Summarise the closed trades of a simulation.

    The open position is left out.  ``win_rate`` is a fraction here;
    ``profit_factor`` is ``None`` when no closed trade lost money.
    ``max_drawdown`` and ``net_pl`` are in P&L-percent points.
    """
    closed = [t for t in trades if not t.is_open]
    winners = [t for t in closed if t.pl_percent > 0]
    losers = [t for t in closed if t.pl_percent <= 0]

    gross_loss = -sum(t.pl_percent for t in losers)
    profit_factor: Optional[float] = None
    if gross_loss > 0:
        profit_factor = round(sum(t.pl_percent for t in winners) / gross_loss, 4)

    return {
        "total_trades": len(closed),
        "winning_trades": len(winners),
        "losing_trades": len(losers),
        "cutoff_exits": sum(1 for t in closed if t.is_cutoff),
        "win_rate": round(len(winners) / len(closed), 4) if closed else 0.0,
        "profit_factor": profit_factor,
        "sharpe_ratio": round(_sharpe(closed), 4),
        "max_drawdown": round(_max_drawdown(closed), 4),
        "net_pl": round(sum(t.pl_percent for t in closed), 4),
    }


# ── Helpers ──────────────────────────────────────────────────────────────


def _sharpe(trades: list[Trade]) -> float:
    """Per-trade Sharpe ratio: mean P&L over its sample std, 0.0 when undefined."""
    if len(trades) < 2:
        return 0.0
    pls = np.array([t.pl_percent for t in trades], dtype=float)
    std = pls.std(ddof=1)
    if std == 0:
        return 0.0
    return float(pls.mean() / std)


def _max_drawdown(trades: list[Trade]) -> float:
    """Deepest fall of the cumulative P&L curve below its running peak.

    The curve starts at 0, so a losing first trade counts as drawdown.
    """
    if not trades:
        return 0.0
    equity = np.cumsum([t.pl_percent for t in trades])
    peaks = np.maximum.accumulate(np.maximum(equity, 0.0))
    return float(np.max(peaks - equity))

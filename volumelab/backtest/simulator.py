"""Trade simulator — replays breakout signals through a long-only position.

Iterates the price series chronologically, holding at most one position.
No real orders are placed; P&L is tracked in percent per trade.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from volumelab.backtest.models import CutoffUpdate, SignalEvent, SimulationResult, Trade
from volumelab.backtest.stats import (
    calculate_stats,
    market_change,
    plpercent_after_fees,
    total_pl,
    win_rate,
)
from volumelab.backtest.trailing_stop import TrailingStop
from volumelab.breakout.models import BreakSignal, BreakWindow, ZoneSnapshot
from volumelab.config import SimulationConfig
from volumelab.core.series import PointLike, normalize_series

logger = logging.getLogger("volumelab.backtest")


class TradeSimulator:
    """Simulates the FLAT/HOLDING state machine on historical bars.

    Args:
        config: Fees, stop distances and gating rules.
    """

    def __init__(self, config: Optional[SimulationConfig] = None) -> None:
        self._config = config or SimulationConfig()

    # ── Public API ───────────────────────────────────────────────────────

    def run(
        self,
        series: Sequence[PointLike],
        breaks: Iterable[BreakSignal],
        windows: Iterable[BreakWindow] = (),
    ) -> SimulationResult:
        """Execute a full simulation.

        Per bar, in priority order:
            1. Close the position if the close fell below the cutoff.
            2. Ratchet the trailing cutoff up.
            3. All-time-high bookkeeping and the optional heaviest-zone exit.
            4. Apply the break signal dated on this bar, if any.

        Args:
            series: Full price series in either date order.
            breaks: Breakout detector output; matched to bars by date.
            windows: Detector windows, needed only for
                ``exit_below_heaviest_zone``.

        Returns:
            ``SimulationResult`` with trades (the last may be open),
            aggregates and the event log.
        """
        cfg = self._config
        bars = normalize_series(series)
        break_map = {b.date: b for b in breaks}
        if not break_map:
            return SimulationResult(summary=calculate_stats([]))

        snapshots: dict[str, ZoneSnapshot] = {}
        if cfg.exit_below_heaviest_zone:
            for window in windows:
                for snap in window.snapshots:
                    snapshots[snap.date] = snap

        trades: list[Trade] = []
        buys: list[SignalEvent] = []
        sells: list[SignalEvent] = []
        cutoffs: list[CutoffUpdate] = []
        position: Optional[dict] = None
        trade_id = 0
        last_exit = -cfg.min_bars_between_trades
        all_time_high = float("-inf")
        since_reset = 0

        def _close(i: int, date: str, price: float, is_cutoff: bool, reason: str) -> None:
            nonlocal position, trade_id, last_exit
            trades.append(Trade(
                buy_price=position["buy_price"],
                buy_date=position["buy_date"],
                sell_price=price,
                sell_date=date,
                pl_percent=plpercent_after_fees(
                    position["buy_price"], price, cfg.transaction_fee,
                ),
                is_cutoff=is_cutoff,
                reason=reason,
            ))
            sells.append(SignalEvent(date=date, price=price, is_cutoff=is_cutoff, reason=reason))
            logger.debug("SELL %s @ %.4f (%s)", date, price, reason)
            position = None
            trade_id += 1
            last_exit = i

        for i, bar in enumerate(bars):
            close = bar.close

            # 1: Trailing-stop breach
            if position is not None and position["stop"].is_breached(close):
                cutoff = position["stop"].cutoff
                _close(i, bar.date, close, True, f"Price {close:.2f} < Cutoff {cutoff:.2f}")
                continue

            # 2: Ratchet the cutoff
            if position is not None:
                raised = position["stop"].update(close)
                if raised is not None:
                    cutoffs.append(CutoffUpdate(date=bar.date, price=raised, trade_id=trade_id))

            # 3: All-time high resets the sell gate while holding
            if close > all_time_high:
                all_time_high = close
                if position is not None and cfg.ath_reset:
                    since_reset = 0
                else:
                    since_reset += 1
            else:
                since_reset += 1

            if position is not None and cfg.exit_below_heaviest_zone:
                snap = snapshots.get(bar.date)
                heaviest = snap.layout.heaviest_zone() if snap is not None else None
                if heaviest is not None and close < heaviest.min_price:
                    _close(
                        i, bar.date, close, False,
                        f"Price {close:.2f} < Heaviest zone {heaviest.min_price:.2f}",
                    )
                    continue

            # 4: Break signal on this bar
            signal = break_map.get(bar.date)
            if signal is None:
                continue

            if signal.is_up_break:
                if position is not None:
                    continue  # already holding
                if not cfg.ath_reset and i - last_exit < cfg.min_bars_between_trades:
                    continue  # too soon after the last exit
                stop = TrailingStop(signal.price, cfg.cutoff_percent, cfg.trailing_factor)
                position = {"buy_price": signal.price, "buy_date": signal.date, "stop": stop}
                buys.append(SignalEvent(date=signal.date, price=signal.price, reason="Breakout"))
                cutoffs.append(CutoffUpdate(date=signal.date, price=stop.cutoff, trade_id=trade_id))
                logger.debug("BUY %s @ %.4f, cutoff %.4f", signal.date, signal.price, stop.cutoff)
            elif position is not None:
                if cfg.ath_reset and since_reset < cfg.min_points_since_reset:
                    continue  # profile window too young to trust a breakdown
                _close(i, signal.date, signal.price, False, "Breakdown signal")

        # Mark any remaining position to the last close
        is_holding = position is not None
        if position is not None and bars:
            last = bars[-1]
            buy_price = position["buy_price"]
            if cfg.apply_fees_to_open:
                pl = plpercent_after_fees(buy_price, last.close, cfg.transaction_fee)
            else:
                pl = (last.close - buy_price) / buy_price * 100
            trades.append(Trade(
                buy_price=buy_price,
                buy_date=position["buy_date"],
                sell_price=last.close,
                sell_date=last.date,
                pl_percent=pl,
                is_open=True,
                reason="Open position",
            ))

        result = SimulationResult(
            trades=trades,
            total_pl=total_pl(trades),
            win_rate=win_rate(trades),
            market_change=market_change(trades),
            buy_signals=buys,
            sell_signals=sells,
            cutoff_updates=cutoffs,
            is_holding=is_holding,
            summary=calculate_stats(trades),
        )
        logger.info(
            "Simulation: %d trade(s), total P&L %.2f%%, win rate %.1f%%",
            len(trades), result.total_pl, result.win_rate,
        )
        return result

"""Run the breakout backtest and channel search over a CSV of daily bars.

Usage (from the project root):
    python -m scripts.backtest_csv data/AAPL.csv
    python -m scripts.backtest_csv data/AAPL.csv --variant split_window --channels

Configuration defaults come from ``.env`` (see ``volumelab.config``);
``--variant`` overrides ``VOLUMELAB_BREAKOUT_VARIANT``.
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from typing import Optional

from volumelab.backtest.pipeline import run_breakout_backtest
from volumelab.channels.finder import filter_overlapping, find_best_channels
from volumelab.config import load_config
from volumelab.data.loader import load_series_csv
from volumelab.profile.statistics import compute_statistics

logger = logging.getLogger("volumelab.scripts.backtest")


def build_report(path: str, variant: Optional[str] = None, channels: bool = False) -> dict:
    """Load *path* and return a JSON-serialisable summary of every analysis."""
    config = load_config(variant=variant)

    series = load_series_csv(path)
    stats = compute_statistics(series, config.profile)
    report = run_breakout_backtest(
        series,
        breakout_config=config.breakout,
        simulation_config=config.simulation,
    )
    sim = report.simulation

    summary = {
        "bars": len(series),
        "poc": asdict(stats.poc) if stats.poc is not None else None,
        "value_area": [stats.value_area_low, stats.value_area_high],
        "breaks": [asdict(b) for b in report.breaks],
        "trades": [asdict(t) for t in sim.trades],
        "total_pl": sim.total_pl,
        "win_rate": sim.win_rate,
        "market_change": sim.market_change,
        "stats": sim.summary,
    }
    if channels:
        found = filter_overlapping(
            find_best_channels(series, config.channels), config.channels.overlap_threshold,
        )
        summary["channels"] = [asdict(c) for c in found]
    return summary


def main(argv: Optional[list[str]] = None) -> dict:
    parser = argparse.ArgumentParser(description="Volume-profile breakout backtest over a CSV")
    parser.add_argument("path", help="CSV with date, close, volume columns")
    parser.add_argument("--variant", choices=["continuous", "split_window"])
    parser.add_argument("--channels", action="store_true", help="Also run the channel search")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=load_config().log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    summary = build_report(args.path, args.variant, args.channels)
    print(json.dumps(summary, indent=2, default=str))
    logger.info("Done: %d trade(s) over %d bars", len(summary["trades"]), summary["bars"])
    return summary


if __name__ == "__main__":
    main()

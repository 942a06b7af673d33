"""Tests for scripts.backtest_csv — end-to-end run over a CSV file."""

import json
import math

import pandas as pd
import pytest

import scripts.backtest_csv as backtest_csv
from scripts.backtest_csv import build_report, main


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("VOLUMELAB_BREAKOUT_VARIANT", raising=False)
    monkeypatch.delenv("VOLUMELAB_LOG_LEVEL", raising=False)
    monkeypatch.delenv("VOLUMELAB_WARMUP_SIZE", raising=False)
    monkeypatch.delenv("VOLUMELAB_CUTOFF_PERCENT", raising=False)


@pytest.fixture
def bars_csv(tmp_path):
    path = tmp_path / "bars.csv"
    pd.DataFrame({
        "date": pd.date_range("2024-01-01", periods=60, freq="D").strftime("%Y-%m-%d"),
        "close": [100 + 5 * math.sin(2 * math.pi * i / 12) for i in range(60)],
        "volume": [1000] * 60,
    }).to_csv(path, index=False)
    return str(path)


class TestBacktestScript:
    def test_main_prints_json_summary(self, bars_csv, capsys):
        summary = main([bars_csv, "--channels"])

        printed = json.loads(capsys.readouterr().out)
        assert printed["bars"] == 60
        assert summary["bars"] == 60
        assert "channels" in printed
        assert printed["stats"]["total_trades"] == 0
        assert len(printed["value_area"]) == 2

    def test_variant_override(self, bars_csv):
        summary = build_report(bars_csv, variant="split_window")
        assert summary["breaks"] == []
        assert "channels" not in summary

    def test_variant_keeps_env_overrides(self, bars_csv, monkeypatch):
        monkeypatch.setenv("VOLUMELAB_WARMUP_SIZE", "40")
        monkeypatch.setenv("VOLUMELAB_CUTOFF_PERCENT", "0.2")
        seen = {}
        original = backtest_csv.run_breakout_backtest

        def _recording(series, **kwargs):
            seen.update(kwargs)
            return original(series, **kwargs)

        monkeypatch.setattr(backtest_csv, "run_breakout_backtest", _recording)
        build_report(bars_csv, variant="split_window")

        assert seen["breakout_config"].warmup_size == 40
        assert seen["breakout_config"].end_window_on_break
        assert seen["simulation_config"].cutoff_percent == 0.2
        assert seen["simulation_config"].ath_reset

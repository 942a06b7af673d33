"""Price series loading from pandas DataFrames, CSV and Parquet files.

Converts tabular bar data into the ``PricePoint`` series the analytics
consume, and back.

Usage:
    series = load_series_csv("data/AAPL.csv")
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from volumelab.core.models import PricePoint
from volumelab.core.series import normalize_series

logger = logging.getLogger("volumelab.data")

_DATE_COLUMNS = ("date", "time", "timestamp")
_COLUMNS = ["date", "close", "volume", "high", "low"]


def _date_column(df: pd.DataFrame) -> str:
    for name in _DATE_COLUMNS:
        if name in df.columns:
            return name
    raise ValueError(
        f"DataFrame needs one of the date columns {', '.join(_DATE_COLUMNS)}; "
        f"got {', '.join(map(str, df.columns))}"
    )


def _format_date(value) -> str:
    if isinstance(value, pd.Timestamp):
        if value == value.normalize() and value.tz is None:
            return value.strftime("%Y-%m-%d")
        return value.isoformat()
    return str(value)


def series_from_frame(df: pd.DataFrame) -> list[PricePoint]:
    """Convert a bar DataFrame into an ascending ``PricePoint`` series.

    Column names are matched case-insensitively.  Requires a date column
    (``date``, ``time`` or ``timestamp``) and ``close``; ``volume``,
    ``high`` and ``low`` are optional.  Rows with a missing close are
    dropped; missing volume counts as zero.
    """
    if df.empty:
        return []

    df = df.rename(columns={c: str(c).lower() for c in df.columns})
    date_col = _date_column(df)
    if "close" not in df.columns:
        raise ValueError("DataFrame is missing the 'close' column")

    df = df.dropna(subset=["close"])
    dropped = 0
    points: list[PricePoint] = []
    for row in df.itertuples(index=False):
        record = row._asdict()
        close = float(record["close"])
        if close <= 0:
            dropped += 1
            continue
        volume = record.get("volume")
        high = record.get("high")
        low = record.get("low")
        points.append(PricePoint(
            date=_format_date(record[date_col]),
            close=close,
            volume=float(volume) if volume is not None and not pd.isna(volume) else 0.0,
            high=float(high) if high is not None and not pd.isna(high) else None,
            low=float(low) if low is not None and not pd.isna(low) else None,
        ))

    if dropped:
        logger.warning("Dropped %d row(s) with non-positive close", dropped)
    return normalize_series(points)


def series_to_frame(series: list[PricePoint]) -> pd.DataFrame:
    """Inverse of ``series_from_frame``: one row per bar, ascending by date."""
    points = normalize_series(series)
    return pd.DataFrame(
        [[p.date, p.close, p.volume, p.high, p.low] for p in points],
        columns=_COLUMNS,
    )


def load_series_csv(path: str | Path) -> list[PricePoint]:
    """Read a CSV of bars into a price series."""
    df = pd.read_csv(path)
    series = series_from_frame(df)
    logger.info("Loaded %d bars from %s", len(series), path)
    return series


def load_series_parquet(path: str | Path) -> list[PricePoint]:
    """Read a Parquet file of bars into a price series."""
    df = pd.read_parquet(path, engine="pyarrow")
    series = series_from_frame(df)
    logger.info("Loaded %d bars from %s", len(series), path)
    return series

"""
OHLCV series helpers.

Accepts price history either as a list of bar records (the shape returned by
the price-volume source) or as a DataFrame, and normalizes it to a DataFrame
sorted by date with float price columns.
"""
import logging
from typing import Dict, List, Union

import pandas as pd

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]

# Alternative column names seen in upstream payloads
_DATE_ALIASES = ("date", "time", "trade_date", "timestamp")

SeriesInput = Union[pd.DataFrame, List[Dict]]


def to_frame(series: SeriesInput) -> pd.DataFrame:
    """
    Normalize an OHLCV series into a fresh DataFrame.

    The caller's object is never modified; a copy is always returned.
    Missing bars are not filled in.
    """
    if series is None:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    if isinstance(series, pd.DataFrame):
        df = series.copy()
    else:
        df = pd.DataFrame(list(series))

    if df.empty:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    df.columns = [str(c).strip().lower() for c in df.columns]

    if "date" not in df.columns:
        for alias in _DATE_ALIASES:
            if alias in df.columns:
                df = df.rename(columns={alias: "date"})
                break
        else:
            # Use the index (e.g. a DatetimeIndex from yfinance-style frames)
            df = df.reset_index().rename(columns={df.index.name or "index": "date"})

    for col in ("open", "high", "low", "close"):
        if col not in df.columns:
            df[col] = df["close"] if col != "close" and "close" in df.columns else 0.0
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)

    if "volume" not in df.columns:
        df["volume"] = 0.0
    df["volume"] = pd.to_numeric(df["volume"], errors="coerce").fillna(0.0).astype(float)

    before = len(df)
    df = df.dropna(subset=["close"])
    if len(df) < before:
        logger.warning(f"Dropped {before - len(df)} bars without a close price")

    df = df.sort_values("date", kind="mergesort").reset_index(drop=True)
    return df[OHLCV_COLUMNS]


def closes(series: SeriesInput) -> List[float]:
    """Closing prices as a plain list, oldest first."""
    return to_frame(series)["close"].tolist()


def format_date(value) -> str:
    """Render a bar date for trade logs and reports."""
    if value is None:
        return ""
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d")
    return str(value)

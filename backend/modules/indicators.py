"""
Indicator Engine

Computes classical technical indicators for the most recent bar of an OHLCV
series:
- Trend: SMA 20/50/200, EMA 12/26, MACD (12, 26, 9)
- Momentum: RSI (Wilder, 14), Stochastic (14, 3)
- Volatility: Bollinger Bands (20, 2σ), ATR (14)
- Volume: OBV, VWAP

Every indicator returns None when the series is shorter than its lookback.
Nothing is cached here; callers decide whether to memoize.
"""
import logging
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

import config
from modules.ohlcv import SeriesInput, to_frame

logger = logging.getLogger(__name__)

Numbers = Union[Sequence[float], np.ndarray, pd.Series]


def _as_array(values: Numbers) -> np.ndarray:
    return np.asarray(values, dtype=float)


def _ema_path(values: Numbers, period: int) -> Optional[pd.Series]:
    """
    EMA path seeded with the SMA of the first `period` values.

    Element 0 of the returned series is the seed (aligned with input index
    period - 1); each following element applies the 2/(period+1) recurrence.
    """
    arr = _as_array(values)
    if period <= 0 or len(arr) < period:
        return None
    seed = arr[:period].mean()
    path = pd.Series(np.concatenate(([seed], arr[period:])))
    return path.ewm(alpha=2.0 / (period + 1), adjust=False).mean()


def calculate_sma(values: Numbers, period: int) -> Optional[float]:
    """Arithmetic mean of the last `period` values."""
    arr = _as_array(values)
    if period <= 0 or len(arr) < period:
        return None
    return float(arr[-period:].mean())


def calculate_ema(values: Numbers, period: int) -> Optional[float]:
    """Exponential moving average over the whole input, SMA-seeded."""
    path = _ema_path(values, period)
    if path is None:
        return None
    return float(path.iloc[-1])


def calculate_rsi(closes: Numbers, period: int = config.RSI_PERIOD) -> Optional[float]:
    """
    Wilder's RSI.

    Seeds average gain/loss over the first `period` deltas, then smooths each
    later delta with weight 1/period. Returns 100 when average loss is 0.
    """
    arr = _as_array(closes)
    if len(arr) < period + 1:
        return None

    changes = np.diff(arr)
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes > 0, 0.0, -changes)

    avg_gain = gains[:period].sum() / period
    avg_loss = losses[:period].sum() / period

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100 - (100 / (1 + rs)))


def calculate_macd(closes: Numbers,
                   fast: int = config.MACD_FAST,
                   slow: int = config.MACD_SLOW,
                   signal_period: int = config.MACD_SIGNAL) -> Optional[Dict[str, float]]:
    """
    MACD line, signal line and histogram for the latest bar.

    The MACD history used for the signal line seeds both EMAs with the SMA of
    their first `fast` / `slow` closes and steps them together from bar
    `slow` onward, so the fast EMA skips bars fast..slow-1.
    """
    arr = _as_array(closes)
    fast_ema = calculate_ema(arr, fast)
    slow_ema = calculate_ema(arr, slow)
    if fast_ema is None or slow_ema is None:
        return None

    macd_line = fast_ema - slow_ema

    k_fast = 2.0 / (fast + 1)
    k_slow = 2.0 / (slow + 1)
    running_fast = arr[:fast].mean()
    running_slow = arr[:slow].mean()
    history: List[float] = []
    for price in arr[slow:]:
        running_fast = (price - running_fast) * k_fast + running_fast
        running_slow = (price - running_slow) * k_slow + running_slow
        history.append(running_fast - running_slow)

    signal = calculate_ema(history, signal_period)
    if signal is None:
        signal = macd_line

    return {
        "macd": macd_line,
        "signal": float(signal),
        "histogram": float(macd_line - signal),
    }


def calculate_bollinger_bands(closes: Numbers,
                              period: int = config.BB_PERIOD,
                              std_dev: float = config.BB_STD_DEV) -> Optional[Dict[str, float]]:
    """Bollinger Bands using the population standard deviation."""
    arr = _as_array(closes)
    if len(arr) < period:
        return None

    window = arr[-period:]
    middle = window.mean()
    sigma = window.std(ddof=0)

    return {
        "upper": float(middle + std_dev * sigma),
        "middle": float(middle),
        "lower": float(middle - std_dev * sigma),
    }


def calculate_atr(df: pd.DataFrame, period: int = config.ATR_PERIOD) -> Optional[float]:
    """
    Average True Range as a simple mean of the last `period` true ranges.
    """
    if len(df) < period + 1:
        return None

    high = df['high']
    low = df['low']
    close = df['close']

    tr1 = high - low
    tr2 = (high - close.shift()).abs()
    tr3 = (low - close.shift()).abs()

    # First bar has no previous close, so it carries no true range
    tr = pd.concat([tr1, tr2, tr3], axis=1).max(axis=1).iloc[1:]

    return calculate_sma(tr.values, period)


def calculate_stochastic(df: pd.DataFrame,
                         k_period: int = config.STOCH_K_PERIOD,
                         d_period: int = config.STOCH_D_PERIOD) -> Optional[Dict[str, float]]:
    """Latest %K and %D (SMA of %K) of the slow stochastic oscillator."""
    if len(df) < k_period:
        return None

    highest_high = df['high'].rolling(window=k_period).max()
    lowest_low = df['low'].rolling(window=k_period).min()
    span = highest_high - lowest_low

    k_values = ((df['close'] - lowest_low) / span.replace(0, np.nan)) * 100
    # A flat window has no range; park %K in the middle instead of NaN
    k_values = k_values.where(span != 0, 50.0).iloc[k_period - 1:]

    current_k = float(k_values.iloc[-1])
    d = calculate_sma(k_values.values, d_period)

    return {"k": current_k, "d": d if d is not None else current_k}


def calculate_obv(df: pd.DataFrame) -> Optional[float]:
    """On-balance volume accumulated from zero over the whole series."""
    if len(df) < 2:
        return None

    direction = np.sign(df['close'].diff().fillna(0.0))
    return float((direction * df['volume']).sum())


def calculate_vwap(df: pd.DataFrame) -> Optional[float]:
    """Volume-weighted average of the typical price over the whole series."""
    if df.empty:
        return None

    total_volume = df['volume'].sum()
    if total_volume <= 0:
        return None

    typical_price = (df['high'] + df['low'] + df['close']) / 3
    return float((typical_price * df['volume']).sum() / total_volume)


def calculate_indicators(series: SeriesInput) -> Dict:
    """
    Compute the full indicator snapshot for the latest bar.

    Args:
        series: OHLCV bars (list of dicts or DataFrame), any order

    Returns:
        Dict with rsi, macd, bollinger_bands, sma20, sma50, sma200, ema12,
        ema26, atr, stochastic, obv and vwap (None where data is short)
    """
    df = to_frame(series)
    closes: List[float] = df['close'].tolist()

    indicators = {
        "rsi": calculate_rsi(closes),
        "macd": calculate_macd(closes),
        "bollinger_bands": calculate_bollinger_bands(closes),
        "sma20": calculate_sma(closes, 20),
        "sma50": calculate_sma(closes, 50),
        "sma200": calculate_sma(closes, 200),
        "ema12": calculate_ema(closes, config.MACD_FAST),
        "ema26": calculate_ema(closes, config.MACD_SLOW),
        "atr": calculate_atr(df),
        "stochastic": calculate_stochastic(df),
        "obv": calculate_obv(df),
        "vwap": calculate_vwap(df),
    }

    missing = [name for name, value in indicators.items() if value is None]
    if missing:
        logger.debug(f"Indicators unavailable for {len(df)} bars: {', '.join(missing)}")

    return indicators

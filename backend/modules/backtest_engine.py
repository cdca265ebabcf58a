"""
Backtest Engine

Replays a strategy bar by bar over an OHLCV series:
- after a warm-up of `lookback_period` bars the strategy sees the trailing
  window ending at the current bar and answers buy/sell/hold
- buy (when flat) spends all capital on whole lots at the close
- sell (when long) liquidates the whole position at the close
Tracks the trade log, running drawdown and daily portfolio returns for the
performance statistics.
"""
import logging
import math
from typing import Callable, Dict, List, Protocol

import numpy as np
import pandas as pd

import config
from modules.ohlcv import SeriesInput, format_date, to_frame
from modules.technical_analyst import calculate_technical_summary

logger = logging.getLogger(__name__)

ACTION_BUY = "buy"
ACTION_SELL = "sell"
ACTION_HOLD = "hold"

STRATEGY_SCORE_MAP = {
    "strong_buy": 90,
    "buy": 70,
    "neutral": 50,
    "sell": 30,
    "strong_sell": 10,
}


class Strategy(Protocol):
    """Per-bar decision function: trailing window in, 'buy'/'sell'/'hold' out."""

    def __call__(self, window: pd.DataFrame) -> str:
        ...


def _empty_result(df: pd.DataFrame, start_capital: float) -> Dict:
    return {
        "final_capital": start_capital,
        "total_return": 0.0,
        "win_rate": 0.0,
        "max_drawdown": 0.0,
        "sharpe_ratio": 0.0,
        "trades": [],
        "total_trades": 0,
        "winning_trades": 0,
        "losing_trades": 0,
        "annualized_return": 0.0,
        "period": _period(df),
    }


def _period(df: pd.DataFrame) -> Dict:
    if df.empty:
        return {"start": None, "end": None}
    return {"start": format_date(df['date'].iloc[0]), "end": format_date(df['date'].iloc[-1])}


def _sharpe_ratio(daily_returns: List[float]) -> float:
    if not daily_returns:
        return 0.0
    returns = np.asarray(daily_returns, dtype=float)
    std = returns.std(ddof=0)
    if std <= 0:
        return 0.0
    days = config.TRADING_DAYS_YEAR
    return float(returns.mean() * days / (std * math.sqrt(days)))


def run_backtest(series: SeriesInput,
                 strategy: Callable[[pd.DataFrame], str],
                 lookback_period: int = config.BACKTEST_LOOKBACK,
                 start_capital: float = config.BACKTEST_START_CAPITAL,
                 lot_size: int = 1) -> Dict:
    """
    Run a long-only, all-in backtest.

    Args:
        series: OHLCV bars
        strategy: Callable receiving the window of bars [i - lookback, i]
        lookback_period: Warm-up bars before the first decision
        start_capital: Starting cash
        lot_size: Shares per lot (100 for IDX board lots)

    Returns:
        BacktestResult dict
    """
    df = to_frame(series)
    lot_size = max(1, int(lot_size))

    if len(df) < lookback_period + config.BACKTEST_MIN_EXTRA_BARS:
        logger.debug(
            f"Backtest skipped: {len(df)} bars < lookback {lookback_period} + {config.BACKTEST_MIN_EXTRA_BARS}"
        )
        return _empty_result(df, start_capital)

    capital = float(start_capital)
    position = 0
    entry_price = 0.0
    peak_value = float(start_capital)
    max_drawdown = 0.0
    previous_value = float(start_capital)

    trades: List[Dict] = []
    daily_returns: List[float] = []

    closes = df['close'].tolist()
    dates = df['date'].tolist()

    for i in range(lookback_period, len(df)):
        window = df.iloc[i - lookback_period:i + 1].reset_index(drop=True)
        action = strategy(window)
        price = closes[i]

        if action == ACTION_BUY and position == 0 and price > 0:
            quantity = int(capital // price // lot_size) * lot_size
            if quantity > 0:
                position = quantity
                entry_price = price
                capital -= quantity * price
                trades.append({
                    "date": format_date(dates[i]),
                    "action": "BUY",
                    "price": price,
                    "quantity": quantity,
                    "pnl": 0.0,
                })
        elif action == ACTION_SELL and position > 0:
            proceeds = position * price
            pnl = proceeds - position * entry_price
            capital += proceeds
            trades.append({
                "date": format_date(dates[i]),
                "action": "SELL",
                "price": price,
                "quantity": position,
                "pnl": pnl,
            })
            position = 0
            entry_price = 0.0

        total_value = capital + position * price
        daily_returns.append((total_value - previous_value) / previous_value if previous_value else 0.0)
        previous_value = total_value

        if total_value > peak_value:
            peak_value = total_value
        drawdown = (peak_value - total_value) / peak_value if peak_value > 0 else 0.0
        max_drawdown = max(max_drawdown, drawdown)

    final_capital = capital + position * closes[-1]
    total_return = (final_capital - start_capital) / start_capital * 100 if start_capital else 0.0

    sells = [t for t in trades if t["action"] == "SELL"]
    winning_trades = sum(1 for t in sells if t["pnl"] > 0)
    losing_trades = sum(1 for t in sells if t["pnl"] < 0)
    win_rate = winning_trades / len(sells) * 100 if sells else 0.0

    logger.debug(
        f"Backtest done: {len(trades)} trades, return {total_return:.2f}%, "
        f"max drawdown {max_drawdown * 100:.2f}%"
    )

    return {
        "final_capital": final_capital,
        "total_return": total_return,
        "win_rate": win_rate,
        "max_drawdown": max_drawdown * 100,
        "sharpe_ratio": _sharpe_ratio(daily_returns),
        "trades": trades,
        "total_trades": len(trades),
        "winning_trades": winning_trades,
        "losing_trades": losing_trades,
        "annualized_return": total_return * config.TRADING_DAYS_YEAR / len(df),
        "period": _period(df),
    }


def create_simple_strategy(buy_threshold: float = 60, sell_threshold: float = 40) -> Strategy:
    """
    Strategy scoring the window's technical summary (strong_buy 90 ... strong_sell 10).

    Buys at or above `buy_threshold`, sells at or below `sell_threshold`.
    """
    def strategy(window: pd.DataFrame) -> str:
        technical = calculate_technical_summary(window)
        score = STRATEGY_SCORE_MAP.get(technical["overall_signal"], 50)

        if score >= buy_threshold:
            return ACTION_BUY
        if score <= sell_threshold:
            return ACTION_SELL
        return ACTION_HOLD

    return strategy

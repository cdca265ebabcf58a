"""
Quant Analysis Module

Blends the technical, fundamental and bandarmology summaries with raw price
statistics (momentum, volatility, trend, support/resistance) into:
- a trading signal with target, stop loss, risk/reward and reasoning
- a probabilistic up/down/sideways price forecast

Any of the three summaries may be None; missing inputs count as neutral.
"""
import logging
import math
from typing import Dict, List, Optional, Tuple

import numpy as np

import config
from modules.ohlcv import SeriesInput, closes, to_frame
from modules.technical_analyst import TechnicalAnalyst

logger = logging.getLogger(__name__)

TECHNICAL_SCORE_MAP = {
    "strong_buy": 90,
    "buy": 70,
    "neutral": 50,
    "sell": 30,
    "strong_sell": 10,
}

BANDARMOLOGY_SCORE_MAP = {
    "strong_accumulation": 90,
    "accumulation": 70,
    "neutral": 50,
    "distribution": 30,
    "strong_distribution": 10,
}

# Up-probability nudges used by the price forecast
TECHNICAL_PROBABILITY_MAP = {
    "strong_buy": 0.2,
    "buy": 0.1,
    "sell": -0.1,
    "strong_sell": -0.2,
}

BANDARMOLOGY_PROBABILITY_MAP = {
    "strong_accumulation": 0.15,
    "accumulation": 0.08,
    "distribution": -0.08,
    "strong_distribution": -0.15,
}

TREND_PROBABILITY_MAP = {
    "uptrend": 0.1,
    "downtrend": -0.1,
}

FACTOR_WEIGHTS = {
    "Technical Analysis": 0.35,
    "Fundamental Analysis": 0.25,
    "Bandarmology": 0.25,
    "Trend Analysis": 0.15,
}


def calculate_momentum(series: SeriesInput, period: int = config.MOMENTUM_PERIOD) -> float:
    """Percent change between the latest close and the close `period` bars back (inclusive)."""
    prices = closes(series)
    if period <= 0 or len(prices) < period:
        return 0.0

    base = prices[-period]
    if base == 0:
        return 0.0
    return (prices[-1] - base) / base * 100


def calculate_volatility(series: SeriesInput, period: int = config.VOLATILITY_PERIOD) -> float:
    """Annualized volatility (%) of daily returns over the trailing `period` closes."""
    prices = to_frame(series)['close']
    if period < 2 or len(prices) < period:
        return 0.0

    returns = prices.iloc[-period:].pct_change().iloc[1:]
    returns = returns.replace([np.inf, -np.inf], np.nan).dropna()
    if returns.empty:
        return 0.0

    return float(returns.std(ddof=0) * math.sqrt(config.TRADING_DAYS_YEAR) * 100)


def detect_trend(series: SeriesInput, period: int = config.TREND_PERIOD) -> str:
    """
    Classify the trailing `period` closes as uptrend, downtrend or sideways.

    Uses the least-squares slope (index vs close) normalized by the mean
    close; +-0.1% per bar is the sideways band.
    """
    prices = to_frame(series)['close']
    if period < 2 or len(prices) < period:
        return "sideways"

    window = prices.iloc[-period:].to_numpy()
    avg_price = window.mean()
    if avg_price == 0:
        return "sideways"

    slope = np.polyfit(np.arange(period), window, 1)[0]
    normalized_slope = slope / avg_price * 100

    if normalized_slope > 0.1:
        return "uptrend"
    if normalized_slope < -0.1:
        return "downtrend"
    return "sideways"


def find_support_resistance(series: SeriesInput, levels: int = config.SR_LEVELS) -> Tuple[List[float], List[float]]:
    """Swing-based (supports, resistances); see TechnicalAnalyst.find_support_resistance."""
    return TechnicalAnalyst.find_support_resistance(series, levels=levels)


def _technical_score(technical: Optional[Dict]) -> float:
    if not technical:
        return 50.0
    base = TECHNICAL_SCORE_MAP.get(technical.get("overall_signal"), 50)
    return (base + technical.get("confidence", 0)) / 2


def _fundamental_score(fundamental: Optional[Dict]) -> float:
    if not fundamental:
        return 50.0
    return float(fundamental.get("score", 50))


def _bandarmology_score(bandarmology: Optional[Dict]) -> float:
    if not bandarmology:
        return 50.0
    base = BANDARMOLOGY_SCORE_MAP.get(bandarmology.get("overall_signal"), 50)
    return (base + bandarmology.get("confidence", 0)) / 2


def _action(composite_score: float) -> str:
    if composite_score >= 75:
        return "strong_buy"
    if composite_score >= 60:
        return "buy"
    if composite_score >= 40:
        return "hold"
    if composite_score >= 25:
        return "sell"
    return "strong_sell"


def _target_and_stop(action: str,
                     current_price: float,
                     supports: List[float],
                     resistances: List[float]) -> Tuple[Optional[float], Optional[float]]:
    # A zero level is treated as missing, same as no level at all
    nearest_support = supports[0] if supports and supports[0] else None
    nearest_resistance = resistances[0] if resistances and resistances[0] else None

    if action in ("buy", "strong_buy"):
        target = nearest_resistance or current_price * 1.1
        stop = nearest_support or current_price * 0.95
        return target, stop
    if action in ("sell", "strong_sell"):
        target = nearest_support or current_price * 0.9
        stop = nearest_resistance or current_price * 1.05
        return target, stop
    return None, None


def _timeframe(volatility: float, trend: str) -> str:
    if volatility > 40:
        return "short"
    if volatility < 20 and trend != "sideways":
        return "long"
    return "medium"


def _build_reasoning(technical: Optional[Dict],
                     fundamental: Optional[Dict],
                     bandarmology: Optional[Dict],
                     trend: str,
                     momentum: float,
                     volatility: float) -> List[str]:
    reasoning = []
    if technical:
        reasoning.append(
            f"Technical: {technical['overall_signal'].replace('_', ' ')} "
            f"({technical['confidence']:.0f}% confidence)"
        )
    if fundamental:
        reasoning.append(f"Fundamental: {fundamental['overall_rating']} (Score: {fundamental['score']})")
    if bandarmology:
        reasoning.append(
            f"Bandarmology: {bandarmology['overall_signal'].replace('_', ' ')} - "
            f"{bandarmology['smart_money_direction']} smart money"
        )
    reasoning.append(f"Trend: {trend}, Momentum: {momentum:.2f}%, Volatility: {volatility:.2f}%")
    return reasoning


def generate_quant_signal(series: SeriesInput,
                          technical: Optional[Dict] = None,
                          fundamental: Optional[Dict] = None,
                          bandarmology: Optional[Dict] = None) -> Dict:
    """
    Produce the composite trading recommendation.

    Args:
        series: OHLCV bars
        technical: TechnicalSummary or None
        fundamental: FundamentalSummary or None
        bandarmology: BandarmologySummary or None

    Returns:
        QuantAnalysis dict: {signal, technical_score, fundamental_score,
        bandarmology_score, composite_score, momentum, volatility, trend,
        support_levels, resistance_levels}
    """
    df = to_frame(series)
    current_price = float(df['close'].iloc[-1]) if not df.empty else 0.0

    momentum = calculate_momentum(df)
    volatility = calculate_volatility(df)
    trend = detect_trend(df)
    supports, resistances = find_support_resistance(df)

    technical_score = _technical_score(technical)
    fundamental_score = _fundamental_score(fundamental)
    bandarmology_score = _bandarmology_score(bandarmology)

    weights = config.SCORE_WEIGHTS
    composite_score = (
        technical_score * weights["technical"]
        + fundamental_score * weights["fundamental"]
        + bandarmology_score * weights["bandarmology"]
    )
    composite_score = min(100.0, max(0.0, composite_score))

    action = _action(composite_score)
    target_price, stop_loss = _target_and_stop(action, current_price, supports, resistances)

    potential_gain = abs(target_price - current_price) if target_price else 0.0
    potential_loss = abs(current_price - stop_loss) if stop_loss else 0.0
    risk_reward_ratio = potential_gain / potential_loss if potential_loss > 0 else None

    logger.debug(
        f"Quant signal: tech={technical_score:.1f} fund={fundamental_score:.1f} "
        f"band={bandarmology_score:.1f} -> {composite_score:.1f} ({action})"
    )

    return {
        "signal": {
            "action": action,
            "confidence": min(95.0, max(5.0, composite_score)),
            "target_price": target_price,
            "stop_loss": stop_loss,
            "risk_reward_ratio": risk_reward_ratio,
            "timeframe": _timeframe(volatility, trend),
            "reasoning": _build_reasoning(technical, fundamental, bandarmology, trend, momentum, volatility),
        },
        "technical_score": technical_score,
        "fundamental_score": fundamental_score,
        "bandarmology_score": bandarmology_score,
        "composite_score": composite_score,
        "momentum": momentum,
        "volatility": volatility,
        "trend": trend,
        "support_levels": supports,
        "resistance_levels": resistances,
    }


def _average_daily_return(prices: List[float], window: int = 20) -> float:
    """Mean daily return (%) across the trailing `window` closes; 0 unless more than `window` bars."""
    if len(prices) <= window:
        return 0.0

    tail = prices[-window:]
    total = 0.0
    for prev, curr in zip(tail[:-1], tail[1:]):
        if prev != 0:
            total += (curr - prev) / prev
    return total / (window - 1) * 100


def predict_price_movement(series: SeriesInput,
                           technical: Optional[Dict] = None,
                           fundamental: Optional[Dict] = None,
                           bandarmology: Optional[Dict] = None) -> Dict:
    """
    Forecast the next move as up/down/sideways with a probability.

    Starts from an even 0.5 up-probability and nudges it by each supplied
    summary and by the price trend, clamped to [0.05, 0.95].

    Returns:
        PredictionResult dict: {direction, probability, expected_return,
        confidence, factors}
    """
    df = to_frame(series)
    trend = detect_trend(df)

    factors = []
    up_probability = 0.5

    if technical:
        contribution = TECHNICAL_PROBABILITY_MAP.get(technical.get("overall_signal"), 0.0)
        up_probability += contribution * (technical.get("confidence", 0) / 100)
        factors.append({
            "name": "Technical Analysis",
            "weight": FACTOR_WEIGHTS["Technical Analysis"],
            "contribution": contribution * 100,
        })

    if fundamental:
        contribution = (fundamental.get("score", 50) - 50) / 200
        up_probability += contribution * 0.8
        factors.append({
            "name": "Fundamental Analysis",
            "weight": FACTOR_WEIGHTS["Fundamental Analysis"],
            "contribution": contribution * 100,
        })

    if bandarmology:
        contribution = BANDARMOLOGY_PROBABILITY_MAP.get(bandarmology.get("overall_signal"), 0.0)
        up_probability += contribution
        factors.append({
            "name": "Bandarmology",
            "weight": FACTOR_WEIGHTS["Bandarmology"],
            "contribution": contribution * 100,
        })

    trend_contribution = TREND_PROBABILITY_MAP.get(trend, 0.0)
    up_probability += trend_contribution
    factors.append({
        "name": "Trend Analysis",
        "weight": FACTOR_WEIGHTS["Trend Analysis"],
        "contribution": trend_contribution * 100,
    })

    up_probability = max(0.05, min(0.95, up_probability))

    if up_probability > 0.55:
        direction = "up"
        probability = up_probability
    elif up_probability < 0.45:
        direction = "down"
        probability = 1 - up_probability
    else:
        direction = "sideways"
        probability = 0.5

    avg_return = _average_daily_return(df['close'].tolist())
    if direction == "up":
        expected_return = abs(avg_return) * 1.5
    elif direction == "down":
        expected_return = -abs(avg_return) * 1.5
    else:
        expected_return = avg_return * 0.5

    confidence = abs(up_probability - 0.5) * 200

    return {
        "direction": direction,
        "probability": probability,
        "expected_return": expected_return,
        "confidence": min(90.0, max(10.0, confidence)),
        "factors": factors,
    }

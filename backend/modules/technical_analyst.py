"""
Technical Analyst Module
Turns indicator readings into directional signals.
- Evaluates RSI, MACD, Bollinger Bands, Moving Averages and Stochastic
- Blends the signals into an overall technical verdict
- Finds Support/Resistance from swing highs/lows
"""
import logging
from typing import Dict, List, Tuple

import config
from modules.indicators import calculate_indicators
from modules.ohlcv import SeriesInput, to_frame

logger = logging.getLogger(__name__)

BULLISH = "bullish"
BEARISH = "bearish"
NEUTRAL = "neutral"


def _signal(indicator: str, signal: str, strength: float, description: str) -> Dict:
    return {
        "indicator": indicator,
        "signal": signal,
        "strength": strength,
        "description": description,
    }


def _rsi_signal(rsi: float) -> Dict:
    if rsi < 30:
        return _signal("RSI", BULLISH, 0.8, f"RSI oversold ({rsi:.1f}) - potential reversal")
    if rsi > 70:
        return _signal("RSI", BEARISH, 0.8, f"RSI overbought ({rsi:.1f}) - potential pullback")
    if rsi < 45:
        return _signal("RSI", BULLISH, 0.6, f"RSI weak but recovering ({rsi:.1f})")
    if rsi > 55:
        return _signal("RSI", BEARISH, 0.6, f"RSI strong but may weaken ({rsi:.1f})")
    return _signal("RSI", NEUTRAL, 0.5, f"RSI neutral ({rsi:.1f})")


def _macd_signal(macd: Dict, price: float) -> Dict:
    histogram = macd["histogram"]
    strength = min(0.9, 0.6 + abs(histogram) / price * 1000) if price > 0 else 0.6

    if histogram > 0 and macd["macd"] > macd["signal"]:
        return _signal("MACD", BULLISH, strength, "MACD bullish crossover - uptrend momentum")
    if histogram < 0 and macd["macd"] < macd["signal"]:
        return _signal("MACD", BEARISH, strength, "MACD bearish crossover - downtrend momentum")
    return _signal("MACD", NEUTRAL, 0.5, "MACD neutral - no clear momentum")


def _bollinger_signal(bands: Dict, price: float) -> Dict:
    # No neutral band: a price sitting exactly on the middle band reads bearish
    if price < bands["lower"]:
        return _signal("Bollinger Bands", BULLISH, 0.75, "Price below lower Bollinger Band - oversold")
    if price > bands["upper"]:
        return _signal("Bollinger Bands", BEARISH, 0.75, "Price above upper Bollinger Band - overbought")
    if price < bands["middle"]:
        return _signal("Bollinger Bands", BULLISH, 0.55, "Price below middle band - potential support")
    return _signal("Bollinger Bands", BEARISH, 0.55, "Price above middle band - potential resistance")


def _moving_average_signal(sma20: float, sma50: float, price: float) -> Dict:
    if sma20 > sma50 and price > sma20:
        return _signal("Moving Averages", BULLISH, 0.7, "Golden cross pattern - SMA20 above SMA50")
    if sma20 < sma50 and price < sma20:
        return _signal("Moving Averages", BEARISH, 0.7, "Death cross pattern - SMA20 below SMA50")
    if price > sma20:
        return _signal("Moving Averages", BULLISH, 0.6, "Price above SMA20 - short-term bullish")
    return _signal("Moving Averages", BEARISH, 0.6, "Price below SMA20 - short-term bearish")


def _stochastic_signal(stochastic: Dict) -> Dict:
    k, d = stochastic["k"], stochastic["d"]
    if k < 20 and d < 20:
        return _signal("Stochastic", BULLISH, 0.75, f"Stochastic oversold (K: {k:.1f}, D: {d:.1f})")
    if k > 80 and d > 80:
        return _signal("Stochastic", BEARISH, 0.75, f"Stochastic overbought (K: {k:.1f}, D: {d:.1f})")
    if k > d:
        return _signal("Stochastic", BULLISH, 0.6, "Stochastic %K above %D - bullish momentum")
    return _signal("Stochastic", BEARISH, 0.6, "Stochastic %K below %D - bearish momentum")


def generate_signals(series: SeriesInput, indicators: Dict) -> List[Dict]:
    """
    Map indicator readings to directional signals.

    Indicators that are None are skipped entirely, so a short series yields
    fewer signals rather than neutral placeholders.
    """
    df = to_frame(series)
    current_price = float(df['close'].iloc[-1]) if not df.empty else 0.0

    signals = []

    if indicators.get("rsi") is not None:
        signals.append(_rsi_signal(indicators["rsi"]))

    if indicators.get("macd") is not None:
        signals.append(_macd_signal(indicators["macd"], current_price))

    if indicators.get("bollinger_bands") is not None:
        signals.append(_bollinger_signal(indicators["bollinger_bands"], current_price))

    if indicators.get("sma20") is not None and indicators.get("sma50") is not None:
        signals.append(_moving_average_signal(indicators["sma20"], indicators["sma50"], current_price))

    if indicators.get("stochastic") is not None:
        signals.append(_stochastic_signal(indicators["stochastic"]))

    return signals


def _overall_signal(net_score: float) -> str:
    if net_score > 0.5:
        return "strong_buy"
    if net_score > 0.2:
        return "buy"
    if net_score < -0.5:
        return "strong_sell"
    if net_score < -0.2:
        return "sell"
    return "neutral"


def calculate_technical_summary(series: SeriesInput) -> Dict:
    """
    Compute indicators, derive signals and blend them into one verdict.

    Returns:
        {overall_signal, confidence (5-95), signals, indicators}
    """
    df = to_frame(series)
    indicators = calculate_indicators(df)
    signals = generate_signals(df, indicators)

    bullish_score = 0.0
    bearish_score = 0.0
    total_weight = 0.0

    for signal in signals:
        weight = signal["strength"]
        total_weight += weight
        if signal["signal"] == BULLISH:
            bullish_score += weight
        elif signal["signal"] == BEARISH:
            bearish_score += weight
        else:
            bullish_score += weight * 0.5
            bearish_score += weight * 0.5

    net_score = (bullish_score - bearish_score) / total_weight if total_weight > 0 else 0.0
    confidence = min(95.0, max(5.0, abs(net_score) * 100))

    return {
        "overall_signal": _overall_signal(net_score),
        "confidence": confidence,
        "signals": signals,
        "indicators": indicators,
    }


class TechnicalAnalyst:

    @staticmethod
    def find_pivots(series: SeriesInput, window: int = config.SR_PIVOT_WINDOW) -> List[Dict]:
        """
        Identify swing highs/lows and label them against the current price.

        A bar is a swing high when its high is strictly above the highs of the
        `window` bars on each side (swing low symmetric on lows). Highs above
        the current price are resistance, otherwise support; lows below the
        current price are support, otherwise resistance.
        """
        df = to_frame(series)
        if len(df) < window * 2 + 1:
            return []

        highs = df['high'].tolist()
        lows = df['low'].tolist()
        current_price = float(df['close'].iloc[-1])

        pivots = []
        for i in range(window, len(df) - window):
            neighbours = [j for j in range(i - window, i + window + 1) if j != i]

            if all(highs[i] > highs[j] for j in neighbours):
                pivots.append({
                    "price": highs[i],
                    "strength": 1,
                    "type": "resistance" if highs[i] > current_price else "support",
                })

            if all(lows[i] < lows[j] for j in neighbours):
                pivots.append({
                    "price": lows[i],
                    "strength": 1,
                    "type": "support" if lows[i] < current_price else "resistance",
                })

        return pivots

    @staticmethod
    def consolidate_pivots(pivots: List[Dict], tolerance: float) -> List[Dict]:
        """
        Merge same-type pivots closer than `tolerance` (absolute price).

        Each merge averages the running level with the new pivot and bumps its
        strength by one.
        """
        consolidated: List[Dict] = []
        for pivot in pivots:
            existing = next(
                (p for p in consolidated
                 if p["type"] == pivot["type"] and abs(p["price"] - pivot["price"]) < tolerance),
                None
            )
            if existing:
                existing["strength"] += 1
                existing["price"] = (existing["price"] + pivot["price"]) / 2
            else:
                consolidated.append(dict(pivot))
        return consolidated

    @staticmethod
    def find_support_resistance(series: SeriesInput,
                                levels: int = config.SR_LEVELS) -> Tuple[List[float], List[float]]:
        """
        Identify Reference Levels (Support & Resistance) using Swing Highs/Lows.

        Args:
            series: OHLCV bars
            levels: Maximum number of levels of each type

        Returns:
            (supports, resistances) - supports descending (closest below price
            first), resistances ascending (closest above price first)
        """
        df = to_frame(series)
        if len(df) < config.SR_MIN_BARS:
            return [], []

        current_price = float(df['close'].iloc[-1])
        pivots = TechnicalAnalyst.find_pivots(df)
        consolidated = TechnicalAnalyst.consolidate_pivots(pivots, current_price * config.SR_TOLERANCE_PCT)

        # sorted() is stable, so ties keep their chronological order
        by_strength = sorted(consolidated, key=lambda p: p["strength"], reverse=True)

        supports = [p["price"] for p in by_strength if p["type"] == "support"][:levels]
        resistances = [p["price"] for p in by_strength if p["type"] == "resistance"][:levels]

        return sorted(supports, reverse=True), sorted(resistances)

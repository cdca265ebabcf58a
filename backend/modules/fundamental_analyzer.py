"""
Fundamental Analyzer Module

Scores a sparse set of financial ratios. Each supplied ratio is mapped to a
bullish/bearish/neutral signal and a 0-1 score through fixed bands; the
weighted average of the scores becomes the 0-100 fundamental score and its
rating (excellent, good, fair, poor, weak). Ratios that are not supplied are
not scored.
"""
import logging
import math
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

METRIC_FIELDS = [
    "per", "pbv", "roe", "roa", "eps", "dps", "dividend_yield",
    "debt_to_equity", "current_ratio", "gross_margin", "net_margin",
    "revenue_growth", "earnings_growth", "market_cap",
]

# camelCase keys as sent by the upstream key-stats payload
_METRIC_ALIASES = {
    "dividendYield": "dividend_yield",
    "debtToEquity": "debt_to_equity",
    "currentRatio": "current_ratio",
    "grossMargin": "gross_margin",
    "netMargin": "net_margin",
    "revenueGrowth": "revenue_growth",
    "earningsGrowth": "earnings_growth",
    "marketCap": "market_cap",
}

# (upper bound exclusive, signal, score) checked top-down; last row is the fallback
Band = Tuple[Optional[float], str, float]

_PER_BANDS: List[Band] = [
    (0, "bearish", 0.1), (10, "bullish", 0.9), (15, "bullish", 0.75),
    (20, "neutral", 0.5), (30, "bearish", 0.35), (None, "bearish", 0.2),
]
_PBV_BANDS: List[Band] = [
    (0, "bearish", 0.1), (1, "bullish", 0.85), (2, "bullish", 0.7),
    (3, "neutral", 0.5), (5, "bearish", 0.35), (None, "bearish", 0.2),
]
_DER_BANDS: List[Band] = [
    (0.3, "bullish", 0.85), (0.5, "bullish", 0.7), (1, "neutral", 0.55),
    (1.5, "bearish", 0.35), (None, "bearish", 0.2),
]

# (lower bound exclusive, signal, score) checked top-down for higher-is-better ratios
_ROE_BANDS: List[Band] = [
    (20, "bullish", 0.9), (15, "bullish", 0.75), (10, "neutral", 0.55),
    (5, "bearish", 0.35), (None, "bearish", 0.2),
]
_DIVIDEND_BANDS: List[Band] = [
    (5, "bullish", 0.85), (3, "bullish", 0.7), (1, "neutral", 0.55),
    (0, "neutral", 0.4), (None, "bearish", 0.3),
]
_NET_MARGIN_BANDS: List[Band] = [
    (20, "bullish", 0.9), (10, "bullish", 0.7), (5, "neutral", 0.55),
    (0, "bearish", 0.35), (None, "bearish", 0.15),
]
_EARNINGS_GROWTH_BANDS: List[Band] = [
    (25, "bullish", 0.9), (10, "bullish", 0.75), (0, "neutral", 0.55),
    (-10, "bearish", 0.35), (None, "bearish", 0.15),
]


def _lower_is_better(value: float, bands: List[Band]) -> Tuple[str, float]:
    for bound, signal, score in bands:
        if bound is None or value < bound:
            return signal, score
    return "neutral", 0.5


def _higher_is_better(value: float, bands: List[Band]) -> Tuple[str, float]:
    for bound, signal, score in bands:
        if bound is None or value > bound:
            return signal, score
    return "neutral", 0.5


def _per_description(per: float) -> str:
    if per < 0:
        return "Negative P/E indicates losses - high risk"
    if per < 10:
        return "Very low valuation - potential value opportunity"
    if per < 15:
        return "Reasonably valued - attractive entry point"
    if per < 20:
        return "Fair valuation - average market pricing"
    if per < 30:
        return "Premium valuation - growth expectations priced in"
    return "Very expensive - requires high growth to justify"


def _pbv_description(pbv: float) -> str:
    if pbv < 0:
        return "Negative book value - balance sheet concerns"
    if pbv < 1:
        return "Trading below book value - potential undervaluation"
    if pbv < 2:
        return "Fair price to book - reasonable valuation"
    if pbv < 3:
        return "Above average PBV - quality premium"
    return "High PBV - significant premium over assets"


def _roe_description(roe: float) -> str:
    if roe > 20:
        return "Excellent profitability - strong competitive advantage"
    if roe > 15:
        return "Good profitability - efficient capital utilization"
    if roe > 10:
        return "Average profitability - meets market expectations"
    if roe > 5:
        return "Below average - improvement needed"
    return "Poor profitability - significant concerns"


def _der_description(der: float) -> str:
    if der < 0.3:
        return "Very low leverage - conservative financing"
    if der < 0.5:
        return "Low leverage - strong balance sheet"
    if der < 1:
        return "Moderate leverage - balanced approach"
    if der < 1.5:
        return "High leverage - elevated risk"
    return "Very high leverage - significant debt burden"


def _dividend_description(dividend_yield: float) -> str:
    if dividend_yield > 5:
        return "High yield - income investor favorite"
    if dividend_yield > 3:
        return "Attractive yield - good passive income"
    if dividend_yield > 1:
        return "Moderate yield - some income benefit"
    if dividend_yield > 0:
        return "Low yield - focused on growth"
    return "No dividend - growth or turnaround phase"


def _margin_description(margin: float) -> str:
    if margin > 20:
        return "Excellent margins - strong pricing power"
    if margin > 10:
        return "Healthy margins - good profitability"
    if margin > 5:
        return "Moderate margins - competitive industry"
    if margin > 0:
        return "Thin margins - cost pressure"
    return "Negative margins - operational issues"


def _growth_description(growth: float) -> str:
    if growth > 25:
        return "Exceptional growth - high-growth company"
    if growth > 10:
        return "Strong growth - outperforming market"
    if growth > 0:
        return "Positive growth - steady business"
    if growth > -10:
        return "Slight decline - temporary headwinds"
    return "Significant decline - turnaround needed"


# metric key -> (label, weight, banding, bands, benchmark, percent?, describer)
_SCORED_METRICS = [
    ("per", "P/E Ratio", 1.5, _lower_is_better, _PER_BANDS, "< 15 is attractive", False, _per_description),
    ("pbv", "P/B Value", 1.2, _lower_is_better, _PBV_BANDS, "< 1.5 is attractive", False, _pbv_description),
    ("roe", "ROE", 1.5, _higher_is_better, _ROE_BANDS, "> 15% is good", True, _roe_description),
    ("debt_to_equity", "Debt/Equity", 1.0, _lower_is_better, _DER_BANDS, "< 0.5 is healthy", False, _der_description),
    ("dividend_yield", "Dividend Yield", 0.8, _higher_is_better, _DIVIDEND_BANDS, "> 3% is attractive", True,
     _dividend_description),
    ("net_margin", "Net Margin", 1.0, _higher_is_better, _NET_MARGIN_BANDS, "> 10% is healthy", True,
     _margin_description),
    ("earnings_growth", "Earnings Growth", 1.3, _higher_is_better, _EARNINGS_GROWTH_BANDS, "> 10% YoY is strong",
     True, _growth_description),
]


def normalize_metrics(metrics: Optional[Dict]) -> Dict[str, Optional[float]]:
    """
    Fill every metric key, mapping camelCase aliases and non-numeric values
    to None.
    """
    full = {field: None for field in METRIC_FIELDS}
    for key, value in (metrics or {}).items():
        field = _METRIC_ALIASES.get(key, key)
        if field not in full or value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric {field}: {value!r}")
            continue
        if math.isfinite(number):
            full[field] = number
    return full


def _rating(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 65:
        return "good"
    if score >= 50:
        return "fair"
    if score >= 35:
        return "poor"
    return "weak"


def analyze_fundamentals(metrics: Optional[Dict]) -> Dict:
    """
    Score the supplied financial ratios.

    Args:
        metrics: Partial FundamentalMetrics (any subset of keys)

    Returns:
        {overall_rating, score (0-100 int), signals, metrics}
    """
    full = normalize_metrics(metrics)

    signals = []
    total_score = 0.0
    total_weight = 0.0

    for key, label, weight, banding, bands, benchmark, is_percent, describe in _SCORED_METRICS:
        value = full[key]
        if value is None:
            continue

        signal, score = banding(value, bands)
        total_score += score * weight
        total_weight += weight

        signals.append({
            "metric": label,
            "signal": signal,
            "value": f"{value:.2f}%" if is_percent else f"{value:.2f}",
            "benchmark": benchmark,
            "description": describe(value),
        })

    final_score = (total_score / total_weight) * 100 if total_weight > 0 else 50.0

    return {
        "overall_rating": _rating(final_score),
        "score": int(math.floor(final_score + 0.5)),
        "signals": signals,
        "metrics": full,
    }


def calculate_intrinsic_value(eps: float,
                              growth_rate: float,
                              discount_rate: float = 0.1,
                              terminal_growth: float = 0.03,
                              years: int = 10,
                              current_price: Optional[float] = None) -> Dict:
    """
    Discounted-earnings intrinsic value per share.

    Projects EPS for `years` at `growth_rate`, discounts each year at
    `discount_rate`, and adds a Gordon-growth terminal value.

    Returns:
        {intrinsic_value, margin_of_safety, current_price}
    """
    if discount_rate <= terminal_growth:
        logger.debug("Discount rate must exceed terminal growth; intrinsic value undefined")
        return {"intrinsic_value": None, "margin_of_safety": None, "current_price": current_price}

    future_eps = eps
    total_pv = 0.0
    for year in range(1, years + 1):
        future_eps *= (1 + growth_rate)
        total_pv += future_eps / (1 + discount_rate) ** year

    terminal_value = (future_eps * (1 + terminal_growth)) / (discount_rate - terminal_growth)
    intrinsic_value = total_pv + terminal_value / (1 + discount_rate) ** years

    if current_price is not None and intrinsic_value > 0:
        margin_of_safety = (intrinsic_value - current_price) / intrinsic_value
    else:
        margin_of_safety = 0.25

    return {
        "intrinsic_value": intrinsic_value,
        "margin_of_safety": margin_of_safety,
        "current_price": current_price,
    }

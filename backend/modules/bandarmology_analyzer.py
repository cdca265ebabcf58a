"""
Bandarmology Analyzer Module

Reads broker summary rows (one per broker for a symbol/period) and infers
whether large players are accumulating or distributing:
- Foreign flow (brokers flagged 'Asing')
- Smart money flow (reference institutional codes plus foreign brokers)
- Buyer/seller concentration among the top 10 net buyers/sellers
The signals are blended into an accumulation/distribution verdict with a
confidence score.
"""
import logging
import math
from typing import Dict, Iterable, List, Optional

from modules.broker_utils import (
    SMART_MONEY_BROKER_CODES,
    format_rupiah,
    is_foreign,
    is_institutional,
    is_smart_money,
    normalize_code,
)

logger = logging.getLogger(__name__)

TOP_BROKER_LIMIT = 10
CONCENTRATION_THRESHOLD = 0.05
SMART_MONEY_STRENGTH = 0.7

_NUMERIC_FIELDS = (
    "buy_value", "sell_value", "net_value",
    "buy_volume", "sell_volume", "net_volume",
)


def _parse_numeric(val) -> float:
    """Parse a numeric value from various string formats."""
    if val is None:
        return 0.0
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) else 0.0
    s = str(val).strip()
    if not s or s.lower() in ('', 'nan', 'none', '-', 'x'):
        return 0.0
    # Remove commas, pipes, tooltip parts
    s = s.split('|')[0].strip()
    s = s.replace(',', '')
    try:
        return float(s)
    except (ValueError, TypeError):
        logger.warning(f"Unparseable broker value {val!r}, using 0")
        return 0.0


def _safe_float(val) -> Optional[float]:
    """Optional numeric field: None stays None, junk becomes None."""
    if val is None:
        return None
    try:
        return float(val)
    except (ValueError, TypeError):
        return None


def normalize_broker(row: Dict) -> Dict:
    """
    Coerce one broker summary row into numeric fields.

    net_value / net_volume are derived from buy - sell when missing.
    """
    broker = {
        "broker_code": normalize_code(row.get("broker_code")),
        "broker_name": row.get("broker_name") or "",
        "broker_type": row.get("broker_type"),
    }
    for field in _NUMERIC_FIELDS:
        broker[field] = _parse_numeric(row.get(field))

    if row.get("net_value") is None:
        broker["net_value"] = broker["buy_value"] - broker["sell_value"]
    if row.get("net_volume") is None:
        broker["net_volume"] = broker["buy_volume"] - broker["sell_volume"]

    broker["buy_avg_price"] = _safe_float(row.get("buy_avg_price"))
    broker["sell_avg_price"] = _safe_float(row.get("sell_avg_price"))
    return broker


def _intensity(net_value: float, total_value: float) -> float:
    if total_value == 0:
        return 0.0
    return min(1.0, abs(net_value) / total_value)


def _to_flow(broker: Dict, flow: str) -> Dict:
    return {
        "broker_code": broker["broker_code"],
        "broker_name": broker["broker_name"],
        "broker_type": broker["broker_type"],
        "net_value": broker["net_value"],
        "net_volume": broker["net_volume"],
        "buy_value": broker["buy_value"],
        "sell_value": broker["sell_value"],
        "flow": flow,
        "intensity": _intensity(broker["net_value"], broker["buy_value"] + broker["sell_value"]),
    }


def _signal(signal_type: str, strength: float, description: str) -> Dict:
    return {"type": signal_type, "strength": strength, "description": description}


class BandarmologyAnalyzer:
    """
    Broker flow accumulation/distribution classifier.

    The smart money reference set defaults to
    broker_utils.SMART_MONEY_BROKER_CODES and can be replaced per instance.
    """

    def __init__(self, smart_money_codes: Optional[Iterable[str]] = None):
        codes = SMART_MONEY_BROKER_CODES if smart_money_codes is None else smart_money_codes
        self.smart_money_codes = frozenset(normalize_code(c) for c in codes)

    def analyze_broker_summary(self, brokers: List[Dict]) -> Dict:
        """
        Run the full bandarmology read on one broker summary.

        Args:
            brokers: Broker summary rows for one symbol/period

        Returns:
            {overall_signal, confidence, signals, top_buyers, top_sellers,
             foreign_flow, smart_money_direction}
        """
        rows = [normalize_broker(b) for b in (brokers or [])]
        signals: List[Dict] = []

        # 1. Rank brokers by net value
        ranked = sorted(rows, key=lambda b: b["net_value"], reverse=True)
        top_buyers = [b for b in ranked if b["net_value"] > 0][:TOP_BROKER_LIMIT]
        sellers = [b for b in ranked if b["net_value"] < 0]
        top_sellers = list(reversed(sellers[-TOP_BROKER_LIMIT:]))

        # 2. Foreign flow
        foreign_flow = self._foreign_flow(rows, signals)

        # 3. Smart money
        smart_money_direction = self._smart_money(rows, signals)

        # 4. Concentration of the top net buyers / sellers
        total_traded = sum(b["buy_value"] + b["sell_value"] for b in rows)
        if total_traded > 0:
            buyer_concentration = sum(b["net_value"] for b in top_buyers) / total_traded
            seller_concentration = abs(sum(b["net_value"] for b in top_sellers)) / total_traded
        else:
            buyer_concentration = seller_concentration = 0.0

        if buyer_concentration > CONCENTRATION_THRESHOLD:
            signals.append(_signal(
                "accumulation",
                min(0.85, buyer_concentration * 10),
                f"High buyer concentration: {buyer_concentration * 100:.1f}%"
            ))

        if seller_concentration > CONCENTRATION_THRESHOLD:
            signals.append(_signal(
                "distribution",
                min(0.85, seller_concentration * 10),
                f"High seller concentration: {seller_concentration * 100:.1f}%"
            ))

        # 5. Blend
        accumulation_score = sum(s["strength"] for s in signals if s["type"] == "accumulation")
        distribution_score = sum(s["strength"] for s in signals if s["type"] == "distribution")
        net_score = accumulation_score - distribution_score
        max_score = max(accumulation_score, distribution_score, 1.0)
        confidence = min(95.0, abs(net_score) / max_score * 100)

        overall_signal = self._overall_signal(net_score)
        logger.debug(
            f"Bandarmology: {len(rows)} brokers, acc={accumulation_score:.2f} "
            f"dist={distribution_score:.2f} -> {overall_signal}"
        )

        return {
            "overall_signal": overall_signal,
            "confidence": confidence,
            "signals": signals,
            "top_buyers": [_to_flow(b, "buy") for b in top_buyers],
            "top_sellers": [_to_flow(b, "sell") for b in top_sellers],
            "foreign_flow": foreign_flow,
            "smart_money_direction": smart_money_direction,
        }

    def _foreign_flow(self, rows: List[Dict], signals: List[Dict]) -> Optional[Dict]:
        foreign = [b for b in rows if is_foreign(b)]
        if not foreign:
            return None

        net_buy = sum(b["net_value"] for b in foreign if b["net_value"] > 0)
        net_sell = sum(abs(b["net_value"]) for b in foreign if b["net_value"] < 0)
        net_value = sum(b["net_value"] for b in foreign)
        total_value = sum(b["buy_value"] + b["sell_value"] for b in foreign)
        intensity = abs(net_value) / total_value if total_value > 0 else 0.0

        if net_value > 0:
            trend = "inflow"
            signals.append(_signal(
                "accumulation", min(0.9, 0.5 + intensity), f"Foreign net buy: {format_rupiah(net_value)}"
            ))
        elif net_value < 0:
            trend = "outflow"
            signals.append(_signal(
                "distribution", min(0.9, 0.5 + intensity), f"Foreign net sell: {format_rupiah(abs(net_value))}"
            ))
        else:
            trend = "neutral"

        return {
            "net_buy": net_buy,
            "net_sell": net_sell,
            "net_value": net_value,
            "trend": trend,
            "intensity": intensity,
        }

    def _smart_money(self, rows: List[Dict], signals: List[Dict]) -> str:
        smart_net = sum(b["net_value"] for b in rows if is_smart_money(b, self.smart_money_codes))

        if smart_net > 0:
            signals.append(_signal(
                "accumulation", SMART_MONEY_STRENGTH, f"Smart money accumulation: {format_rupiah(smart_net)}"
            ))
            return "bullish"
        if smart_net < 0:
            signals.append(_signal(
                "distribution", SMART_MONEY_STRENGTH, f"Smart money distribution: {format_rupiah(abs(smart_net))}"
            ))
            return "bearish"
        return "neutral"

    @staticmethod
    def _overall_signal(net_score: float) -> str:
        if net_score > 1.5:
            return "strong_accumulation"
        if net_score > 0.5:
            return "accumulation"
        if net_score < -1.5:
            return "strong_distribution"
        if net_score < -0.5:
            return "distribution"
        return "neutral"

    def detect_accumulation_pattern(self, broker_history: List[List[Dict]], days: int = 5) -> Dict:
        """
        Check how consistently the whole market of brokers net-bought over
        the last `days` daily summaries.

        Returns:
            {is_accumulating, confidence, pattern, buy_days, total_net_buy}
        """
        if days <= 0 or len(broker_history or []) < days:
            return {
                "is_accumulating": False,
                "confidence": 0.0,
                "pattern": "Insufficient data",
                "buy_days": 0,
                "total_net_buy": 0.0,
            }

        buy_days = 0
        total_net_buy = 0.0
        for day_brokers in broker_history[-days:]:
            day_net = sum(normalize_broker(b)["net_value"] for b in day_brokers)
            if day_net > 0:
                buy_days += 1
                total_net_buy += day_net

        if buy_days == days:
            pattern = "Strong accumulation - all days positive"
        elif buy_days >= days * 0.8:
            pattern = "Consistent accumulation pattern"
        elif buy_days >= days * 0.6:
            pattern = "Moderate accumulation tendency"
        elif buy_days <= days * 0.2:
            pattern = "Distribution pattern detected"
        else:
            pattern = "Neutral"

        return {
            "is_accumulating": buy_days >= math.ceil(days * 0.6),
            "confidence": buy_days / days * 100,
            "pattern": pattern,
            "buy_days": buy_days,
            "total_net_buy": total_net_buy,
        }

    def analyze_institutional_flow(self, brokers: List[Dict]) -> Dict:
        """
        Split the broker summary into institutional and retail cohorts.

        Returns:
            {institutional: {net_value, trend}, retail: {net_value, trend}, ratio}
            where ratio is the institutional share of absolute net flow.
        """
        rows = [normalize_broker(b) for b in (brokers or [])]

        institutional_net = sum(
            b["net_value"] for b in rows if is_institutional(b, self.smart_money_codes)
        )
        retail_net = sum(
            b["net_value"] for b in rows if not is_institutional(b, self.smart_money_codes)
        )

        total_abs = abs(institutional_net) + abs(retail_net)
        ratio = abs(institutional_net) / total_abs if total_abs > 0 else 0.5

        return {
            "institutional": {"net_value": institutional_net, "trend": self._flow_trend(institutional_net)},
            "retail": {"net_value": retail_net, "trend": self._flow_trend(retail_net)},
            "ratio": ratio,
        }

    @staticmethod
    def _flow_trend(net_value: float) -> str:
        if net_value > 0:
            return "Buying"
        if net_value < 0:
            return "Selling"
        return "Neutral"


def analyze_broker_summary(brokers: List[Dict]) -> Dict:
    """Analyze a broker summary with the default smart money reference set."""
    return BandarmologyAnalyzer().analyze_broker_summary(brokers)

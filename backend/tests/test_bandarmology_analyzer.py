import pytest

from modules.bandarmology_analyzer import (
    BandarmologyAnalyzer,
    analyze_broker_summary,
    normalize_broker,
)
from modules.broker_utils import SMART_MONEY_BROKER_CODES, classify_broker, format_rupiah


def _broker(code, buy, sell, broker_type="Lokal", **extra):
    row = {
        "broker_code": code,
        "broker_name": f"Broker {code}",
        "broker_type": broker_type,
        "buy_value": buy,
        "sell_value": sell,
        "net_value": buy - sell,
    }
    row.update(extra)
    return row


def test_all_foreign_net_buy_is_accumulation():
    brokers = [
        _broker("AK", 1e9, 2e8, "Asing"),
        _broker("RX", 1e9, 2e8, "Asing"),
        _broker("CS", 1e9, 2e8, "Asing"),
    ]
    result = analyze_broker_summary(brokers)

    assert result["foreign_flow"]["trend"] == "inflow"
    assert result["foreign_flow"]["net_value"] == pytest.approx(2.4e9)
    assert result["foreign_flow"]["net_sell"] == 0
    assert result["smart_money_direction"] == "bullish"
    assert result["overall_signal"] in {"accumulation", "strong_accumulation"}
    assert result["confidence"] == 95.0
    assert result["top_sellers"] == []
    assert [b["flow"] for b in result["top_buyers"]] == ["buy"] * 3
    assert result["top_buyers"][0]["intensity"] == pytest.approx(8e8 / 1.2e9)


def test_all_foreign_net_sell_is_distribution():
    brokers = [_broker(code, 1e8, 9e8, "Asing") for code in ("AK", "RX", "CS")]
    result = analyze_broker_summary(brokers)

    assert result["foreign_flow"]["trend"] == "outflow"
    assert result["smart_money_direction"] == "bearish"
    assert result["overall_signal"] == "strong_distribution"
    assert result["signals"][0]["description"] == "Foreign net sell: Rp 2.40B"


def test_balanced_local_flow_is_neutral():
    result = analyze_broker_summary([_broker("YP", 100, 0), _broker("PD", 0, 100)])

    # Buyer and seller concentration cancel out
    assert [s["strength"] for s in result["signals"]] == [0.85, 0.85]
    assert result["overall_signal"] == "neutral"
    assert result["confidence"] == 0
    assert result["foreign_flow"] is None
    assert result["smart_money_direction"] == "neutral"


def test_local_smart_money_tilts_to_accumulation():
    result = analyze_broker_summary([_broker("BB", 1e9, 0), _broker("YP", 0, 1e9)])

    assert result["smart_money_direction"] == "bullish"
    assert result["overall_signal"] == "accumulation"
    assert result["confidence"] == pytest.approx(0.7 / 1.55 * 100)


def test_top_sellers_are_largest_magnitude_first():
    brokers = [_broker(f"L{k:02d}", 0, k * 1e6) for k in range(1, 13)]
    result = analyze_broker_summary(brokers)

    sellers = result["top_sellers"]
    assert len(sellers) == 10
    assert sellers[0]["net_value"] == -12e6
    assert sellers[-1]["net_value"] == -3e6
    assert all(s["flow"] == "sell" for s in sellers)


def test_empty_summary():
    result = analyze_broker_summary([])
    assert result["overall_signal"] == "neutral"
    assert result["confidence"] == 0
    assert result["signals"] == []
    assert result["top_buyers"] == [] and result["top_sellers"] == []


def test_custom_smart_money_codes():
    analyzer = BandarmologyAnalyzer(smart_money_codes=["yp"])
    result = analyzer.analyze_broker_summary([_broker("YP", 500, 100)])
    assert result["smart_money_direction"] == "bullish"

    default_result = analyze_broker_summary([_broker("YP", 500, 100)])
    assert default_result["smart_money_direction"] == "neutral"


def test_normalize_broker_parses_numeric_strings():
    broker = normalize_broker({"broker_code": " zp ", "buy_value": "1,250,000", "sell_value": "250,000"})

    assert broker["broker_code"] == "ZP"
    assert broker["buy_value"] == 1_250_000
    assert broker["net_value"] == 1_000_000
    assert broker["net_volume"] == 0
    assert normalize_broker({"broker_code": "YP", "buy_value": "abc"})["buy_value"] == 0


class TestAccumulationPattern:

    @staticmethod
    def _history(nets):
        return [[{"broker_code": "YP", "net_value": net}] for net in nets]

    def test_all_days_positive(self):
        result = BandarmologyAnalyzer().detect_accumulation_pattern(self._history([1, 2, 3, 4, 5]))
        assert result["is_accumulating"] is True
        assert result["confidence"] == 100
        assert result["pattern"] == "Strong accumulation - all days positive"
        assert result["total_net_buy"] == 15

    @pytest.mark.parametrize("nets, accumulating, pattern", [
        ([1, 1, 1, 1, -1], True, "Consistent accumulation pattern"),
        ([1, 1, 1, -1, -1], True, "Moderate accumulation tendency"),
        ([1, 1, -1, -1, -1], False, "Neutral"),
        ([1, -1, -1, -1, -1], False, "Distribution pattern detected"),
    ])
    def test_pattern_labels(self, nets, accumulating, pattern):
        result = BandarmologyAnalyzer().detect_accumulation_pattern(self._history(nets))
        assert result["is_accumulating"] is accumulating
        assert result["pattern"] == pattern

    def test_only_last_days_count(self):
        history = self._history([-1, -1, -1, 1, 1, 1, 1, 1])
        assert BandarmologyAnalyzer().detect_accumulation_pattern(history)["buy_days"] == 5

    def test_insufficient_history(self):
        result = BandarmologyAnalyzer().detect_accumulation_pattern(self._history([1, 1]))
        assert result["pattern"] == "Insufficient data"
        assert result["confidence"] == 0


class TestInstitutionalFlow:

    def test_splits_institutional_and_retail(self):
        result = BandarmologyAnalyzer().analyze_institutional_flow([
            _broker("ZP", 700, 200, "Asing"),
            _broker("MS", 100, 0),
            _broker("YP", 0, 200),
        ])
        assert result["institutional"] == {"net_value": 600, "trend": "Buying"}
        assert result["retail"] == {"net_value": -200, "trend": "Selling"}
        assert result["ratio"] == pytest.approx(0.75)

    def test_no_flow_is_even(self):
        result = BandarmologyAnalyzer().analyze_institutional_flow([])
        assert result["ratio"] == 0.5
        assert result["institutional"]["trend"] == "Neutral"


def test_broker_utils_helpers():
    assert "ZP" in SMART_MONEY_BROKER_CODES
    assert classify_broker({"broker_code": "MS"}) == "foreign"
    assert classify_broker({"broker_code": "BB", "broker_type": "Lokal"}) == "institutional"
    assert classify_broker({"broker_code": "YP"}) == "retail"
    assert format_rupiah(1.5e12) == "Rp 1.50T"
    assert format_rupiah(2.5e6) == "Rp 2.50M"
    assert format_rupiah(12500) == "Rp 12,500"

"""Integration tests for the analysis API endpoints."""
import pytest
from fastapi.testclient import TestClient

from main import app
from modules.analysis_cache import analysis_cache
from routes import analysis as analysis_routes


@pytest.fixture
def client():
    """Create a test client with an empty analysis cache."""
    analysis_cache.clear()
    return TestClient(app)


def _foreign_buyers():
    return [
        {"broker_code": code, "broker_type": "Asing", "buy_value": 1e9, "sell_value": "200,000,000"}
        for code in ("AK", "RX", "CS")
    ]


class TestAnalysisAPI:
    """Test suite for the analysis endpoints."""

    def test_health_check_lists_features(self, client):
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "online"
        assert {"technical", "fundamental", "bandarmology", "quant", "backtest"} <= set(data["features"])

    def test_technical(self, client, rising_bars):
        response = client.post("/api/analysis/technical", json={"bars": rising_bars})
        assert response.status_code == 200

        data = response.json()
        assert data["overall_signal"] in {"strong_buy", "buy", "neutral", "sell", "strong_sell"}
        assert data["indicators"]["sma200"] is None
        assert data["indicators"]["sma50"] is not None

    def test_fundamental(self, client):
        response = client.post("/api/analysis/fundamental", json={"per": 8})
        assert response.status_code == 200
        assert response.json()["score"] == 90

    def test_bandarmology_accepts_numeric_strings(self, client):
        response = client.post("/api/analysis/bandarmology", json={"brokers": _foreign_buyers()})
        assert response.status_code == 200

        data = response.json()
        assert data["foreign_flow"]["trend"] == "inflow"
        assert data["smart_money_direction"] == "bullish"
        assert data["top_buyers"][0]["net_value"] == pytest.approx(8e8)

    def test_quant_pipeline_is_cached(self, client, rising_bars):
        payload = {"bars": rising_bars, "brokers": _foreign_buyers(), "fundamentals": {"per": 8, "roe": 22}}

        first = client.post("/api/analysis/quant", json=payload)
        assert first.status_code == 200
        data = first.json()
        assert set(data) == {"quant", "prediction", "technical", "fundamental", "bandarmology"}
        assert data["fundamental"]["overall_rating"] == "excellent"
        assert data["bandarmology"]["overall_signal"] == "strong_accumulation"
        assert len(analysis_cache) == 1

        second = client.post("/api/analysis/quant", json=payload)
        assert second.json() == data
        assert len(analysis_cache) == 1

    def test_quant_without_optional_inputs(self, client, rising_bars):
        response = client.post("/api/analysis/quant", json={"bars": rising_bars})
        assert response.status_code == 200

        data = response.json()
        assert data["fundamental"] is None
        assert data["bandarmology"] is None
        assert data["quant"]["fundamental_score"] == 50

    def test_backtest_on_flat_series(self, client, flat_bars):
        response = client.post("/api/analysis/backtest", json={"bars": flat_bars, "lot_size": 100})
        assert response.status_code == 200

        data = response.json()
        assert data["total_return"] == 0
        assert data["trades"] == []
        assert data["max_drawdown"] == 0

    def test_missing_bars_is_validation_error(self, client):
        response = client.post("/api/analysis/technical", json={})
        assert response.status_code == 422

    def test_unexpected_error_returns_500(self, client, monkeypatch, rising_bars):
        def boom(series):
            raise RuntimeError("indicator failure")

        monkeypatch.setattr(analysis_routes, "calculate_technical_summary", boom)
        response = client.post("/api/analysis/technical", json={"bars": rising_bars})

        assert response.status_code == 500
        assert response.json() == {"error": "indicator failure"}


def test_sanitize_data_replaces_nan_and_inf():
    data = {"a": float("nan"), "b": [1.0, float("inf")], "c": {"d": 2}}
    assert analysis_routes.sanitize_data(data) == {"a": None, "b": [1.0, None], "c": {"d": 2}}

import pytest

from modules import backtest_engine
from modules.backtest_engine import create_simple_strategy, run_backtest


def _always(action):
    return lambda window: action


def _buy_below(level):
    """Buy while the latest close is under `level`, sell once it is above."""
    return lambda window: "buy" if window["close"].iloc[-1] < level else "sell"


def test_flat_series_with_holding_strategy(flat_bars):
    result = run_backtest(flat_bars, _always("hold"))

    assert result["total_return"] == 0
    assert result["trades"] == []
    assert result["max_drawdown"] == 0
    assert result["sharpe_ratio"] == 0
    assert result["final_capital"] == 100_000_000
    assert result["period"] == {"start": "2024-01-01", "end": flat_bars[-1]["date"]}


def test_series_shorter_than_warmup_is_not_traded(make_bars):
    calls = []
    result = run_backtest(make_bars([100.0] * 59), lambda w: calls.append(w) or "buy")

    assert calls == []
    assert result["trades"] == []
    assert result["total_trades"] == 0
    assert result["final_capital"] == 100_000_000


def test_round_trip_profit(make_bars):
    bars = make_bars([100.0] * 60 + [110.0] * 10)
    result = run_backtest(bars, _buy_below(105))

    buy, sell = result["trades"]
    assert buy == {"date": bars[50]["date"], "action": "BUY", "price": 100.0, "quantity": 1_000_000, "pnl": 0.0}
    assert sell["action"] == "SELL"
    assert sell["date"] == bars[60]["date"]
    assert sell["pnl"] == pytest.approx(10_000_000)

    assert result["final_capital"] == pytest.approx(110_000_000)
    assert result["total_return"] == pytest.approx(10.0)
    assert result["win_rate"] == 100.0
    assert result["winning_trades"] == 1
    assert result["losing_trades"] == 0
    assert result["total_trades"] == 2
    assert result["max_drawdown"] == 0
    assert result["sharpe_ratio"] > 0
    assert result["annualized_return"] == pytest.approx(10.0 * 252 / 70)


def test_drawdown_of_open_position(make_bars):
    bars = make_bars([100.0] * 60 + [80.0] * 10)
    result = run_backtest(bars, _always("buy"))

    assert len(result["trades"]) == 1
    assert result["max_drawdown"] == pytest.approx(20.0)
    assert result["total_return"] == pytest.approx(-20.0)
    # Open positions are marked to market, not counted as closed trades
    assert result["win_rate"] == 0


def test_lot_size_rounds_down_to_whole_lots(make_bars):
    bars = make_bars([130.0] * 70)

    shares = run_backtest(bars, _always("buy"), start_capital=150_000)
    lots = run_backtest(bars, _always("buy"), start_capital=150_000, lot_size=100)

    assert shares["trades"][0]["quantity"] == 1153
    assert lots["trades"][0]["quantity"] == 1100


def test_window_covers_lookback_plus_current_bar(make_bars):
    sizes = []

    def strategy(window):
        sizes.append(len(window))
        return "hold"

    run_backtest(make_bars([100.0] * 40), strategy, lookback_period=20)
    assert sizes == [21] * 20


def test_strategy_errors_propagate(flat_bars):
    def broken(window):
        raise ValueError("bad strategy")

    with pytest.raises(ValueError):
        run_backtest(flat_bars, broken)


@pytest.mark.parametrize("overall_signal, expected", [
    ("strong_buy", "buy"),
    ("buy", "buy"),
    ("neutral", "hold"),
    ("sell", "sell"),
    ("strong_sell", "sell"),
])
def test_simple_strategy_thresholds(monkeypatch, flat_bars, overall_signal, expected):
    monkeypatch.setattr(
        backtest_engine, "calculate_technical_summary",
        lambda window: {"overall_signal": overall_signal},
    )
    strategy = create_simple_strategy()
    assert strategy(flat_bars) == expected


def test_simple_strategy_on_flat_series_never_trades(flat_bars):
    result = run_backtest(flat_bars, create_simple_strategy())
    assert result["trades"] == []
    assert result["total_return"] == 0

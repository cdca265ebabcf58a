"""Shared fixtures for the analysis test-suite."""
from datetime import date, timedelta

import pytest


def build_bars(closes, spread=1.0, volume=1_000_000, start=date(2024, 1, 1)):
    """Daily bars around the given closes (high/low = close +- spread)."""
    bars = []
    for i, close in enumerate(closes):
        bars.append({
            "date": (start + timedelta(days=i)).isoformat(),
            "open": close,
            "high": close + spread,
            "low": close - spread,
            "close": close,
            "volume": volume,
        })
    return bars


@pytest.fixture
def make_bars():
    return build_bars


@pytest.fixture
def rising_bars():
    return build_bars([100 + i for i in range(60)])


@pytest.fixture
def flat_bars():
    return build_bars([100.0] * 70)

"""Shared fixtures for scan runner tests."""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def ohlcv_factory():
    """Factory for synthetic daily OHLCV frames.

    Args (of the returned callable):
        n_bars: Number of bars
        start: Starting price
        drift: Total drift over the series
        seed: Random seed
    """

    def _create(n_bars: int = 120, start: float = 100.0, drift: float = 10.0, seed: int = 42) -> pd.DataFrame:
        rng = np.random.RandomState(seed)
        index = pd.date_range(start="2024-01-01", periods=n_bars, freq="B")

        close = np.linspace(start, start + drift, n_bars) + rng.randn(n_bars) * 0.5
        open_prices = np.roll(close, 1) + rng.randn(n_bars) * 0.1
        if n_bars:
            open_prices[0] = close[0] - 0.1
        high = np.maximum(open_prices, close) + np.abs(rng.randn(n_bars)) * 0.3
        low = np.minimum(open_prices, close) - np.abs(rng.randn(n_bars)) * 0.3
        volume = np.maximum(100_000 + rng.randn(n_bars) * 20_000, 1000)

        return pd.DataFrame(
            {"open": open_prices, "high": high, "low": low, "close": close, "volume": volume},
            index=index,
        )

    return _create


@pytest.fixture
def fixed_closes():
    """Bars with exact closes for query matching."""

    def _create(closes) -> pd.DataFrame:
        closes = np.asarray(closes, dtype=float)
        return pd.DataFrame(
            {
                "open": closes,
                "high": closes + 1,
                "low": closes - 1,
                "close": closes,
                "volume": np.full(len(closes), 5000.0),
            },
            index=pd.date_range("2024-01-01", periods=len(closes), freq="B"),
        )

    return _create

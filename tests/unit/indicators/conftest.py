"""Shared fixtures for indicator tests."""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def ohlcv_df() -> pd.DataFrame:
    """Create sample daily OHLCV data for testing.

    Returns 300 bars with realistic properties:
    - Trending close prices with noise
    - High >= max(open, close), Low <= min(open, close)
    - Positive volume with variation

    Returns:
        DataFrame with datetime index and columns: open, high, low, close, volume
    """
    np.random.seed(42)
    n_bars = 300

    index = pd.date_range(start="2023-01-02", periods=n_bars, freq="B")

    trend = np.linspace(100, 130, n_bars)
    noise = np.random.randn(n_bars) * 1.5
    close = trend + noise

    open_prices = np.roll(close, 1) + np.random.randn(n_bars) * 0.3
    open_prices[0] = close[0] - 0.2

    high = np.maximum(open_prices, close) + np.abs(np.random.randn(n_bars)) * 0.8
    low = np.minimum(open_prices, close) - np.abs(np.random.randn(n_bars)) * 0.8

    volume = (1_000_000 + np.random.randn(n_bars) * 200_000).astype(int)
    volume = np.maximum(volume, 1000)

    return pd.DataFrame(
        {
            "open": open_prices,
            "high": high,
            "low": low,
            "close": close,
            "volume": volume.astype(float),
        },
        index=index,
    )


@pytest.fixture
def small_ohlcv_df() -> pd.DataFrame:
    """Create a small OHLCV dataset with hand-checkable values.

    Returns:
        DataFrame with 10 bars
    """
    index = pd.date_range(start="2024-01-01", periods=10, freq="B")

    close = np.array([100.0, 100.5, 101.0, 100.8, 101.2, 101.5, 101.3, 101.8, 102.0, 102.2])
    open_prices = np.array([99.9, 100.0, 100.5, 101.0, 100.7, 101.2, 101.6, 101.2, 101.8, 102.0])
    high = np.maximum(open_prices, close) + 0.2
    low = np.minimum(open_prices, close) - 0.2
    volume = np.array([10000, 12000, 8000, 15000, 11000, 9000, 13000, 10000, 14000, 11000], dtype=float)

    return pd.DataFrame(
        {
            "open": open_prices,
            "high": high,
            "low": low,
            "close": close,
            "volume": volume,
        },
        index=index,
    )


def make_bars(closes, opens=None, highs=None, lows=None, volumes=None) -> pd.DataFrame:
    """Build a bar frame from close prices, deriving the other columns."""
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    opens = closes if opens is None else np.asarray(opens, dtype=float)
    highs = np.maximum(opens, closes) + 0.5 if highs is None else np.asarray(highs, dtype=float)
    lows = np.minimum(opens, closes) - 0.5 if lows is None else np.asarray(lows, dtype=float)
    volumes = np.full(n, 1000.0) if volumes is None else np.asarray(volumes, dtype=float)
    return pd.DataFrame(
        {"open": opens, "high": highs, "low": lows, "close": closes, "volume": volumes},
        index=pd.date_range(start="2024-01-01", periods=n, freq="B"),
    )


@pytest.fixture
def bars_factory():
    """Factory building bar frames from close prices."""
    return make_bars

"""Shared fixtures for consolidation-breakout tests.

The base scenario is 60 daily bars followed by a configurable latest bar:

- 25 flat bars around 100
- a 20-bar advance from 101.1 to 122.0 (about +22% high/low span)
- a 15-bar base between 120.0 and 123.6 (3% range) on 55% of the prior volume
"""

import numpy as np
import pandas as pd
import pytest

FLAT_BARS = 25
ADVANCE_BARS = 20
BASE_BARS = 15

WINDOW_HIGH = 123.6
WINDOW_LOW = 120.0


def _history() -> list[dict]:
    rows = []
    for _ in range(FLAT_BARS):
        rows.append({"open": 100.0, "high": 100.5, "low": 99.5, "close": 100.0, "volume": 1_000_000.0})

    for j in range(ADVANCE_BARS):
        close = 100.0 + 1.1 * (j + 1)
        rows.append({
            "open": close - 0.3, "high": close + 0.5, "low": close - 0.5,
            "close": close, "volume": 1_000_000.0,
        })

    for k in range(BASE_BARS):
        if k == 0:
            low = WINDOW_LOW
        elif k >= 13:
            low = 120.2
        else:
            low = 121.0
        high = WINDOW_HIGH if k in (3, 9) else 123.0
        rows.append({"open": 121.5, "high": high, "low": low, "close": 122.5, "volume": 550_000.0})
    return rows


def build_bars(latest: dict | None = None, history: list[dict] | None = None) -> pd.DataFrame:
    """Base scenario plus an optional latest bar."""
    rows = list(history if history is not None else _history())
    if latest is not None:
        rows.append(latest)
    return pd.DataFrame(rows, index=pd.date_range("2024-01-01", periods=len(rows), freq="B"))


# Close 1% above the window high on roughly 2.3x average volume
CONFIRMED_BAR = {"open": 123.7, "high": 125.0, "low": 123.5, "close": 124.836, "volume": 2_000_000.0}

# Close 1.5% below the window high
IMMINENT_BAR = {"open": 121.6, "high": 122.5, "low": 121.5, "close": 121.746, "volume": 1_000_000.0}


@pytest.fixture
def bars_factory():
    """Build the base scenario with a chosen latest bar."""
    return build_bars


@pytest.fixture
def history_rows() -> list[dict]:
    """The 60 bars before the latest bar, as editable row dicts."""
    return _history()


@pytest.fixture
def breakout_bars() -> pd.DataFrame:
    """Base scenario with a confirmed breakout on the latest bar."""
    return build_bars(CONFIRMED_BAR)


@pytest.fixture
def imminent_bars() -> pd.DataFrame:
    """Base scenario with the latest close just below the window high."""
    return build_bars(IMMINENT_BAR)


@pytest.fixture
def confirmed_bar() -> dict:
    return dict(CONFIRMED_BAR)


@pytest.fixture
def downtrend_bars() -> pd.DataFrame:
    """Steady decline with no base."""
    n = 80
    close = np.linspace(200, 120, n)
    return pd.DataFrame(
        {
            "open": close + 1.0,
            "high": close + 1.5,
            "low": close - 0.5,
            "close": close,
            "volume": np.full(n, 1_000_000.0),
        },
        index=pd.date_range("2024-01-01", periods=n, freq="B"),
    )

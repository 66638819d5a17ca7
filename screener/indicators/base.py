"""Base classes and numeric primitives for indicator computation."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Numerical stability constant
EPS = 1e-9

Params = dict[str, Any]
IndicatorFn = Callable[[pd.DataFrame, Params], np.ndarray]


@dataclass(frozen=True)
class IndicatorSpec:
    """Specification for a registered indicator.

    Attributes:
        indicator_id: Registry key referenced by query conditions
        name: Human-readable name
        category: Catalog group (e.g., 'price', 'oscillators')
        defaults: Parameter defaults; also the set of accepted parameter keys
        output_type: 'numeric' for value series, 'pattern' for 1/0 flags
    """

    indicator_id: str
    name: str
    category: str
    defaults: dict[str, Any] = field(default_factory=dict)
    output_type: str = "numeric"


class IndicatorSource(Protocol):
    """The two calls the evaluators make against an indicator registry."""

    def exists(self, indicator_id: str) -> bool:
        ...

    def compute(self, indicator_id: str, params: Params, bars: pd.DataFrame) -> np.ndarray:
        ...


def sma(values: pd.Series, period: int) -> pd.Series:
    """Simple moving average; NaN until ``period`` values are available."""
    return values.rolling(window=period, min_periods=period).mean()


def ema(values: pd.Series, period: int) -> pd.Series:
    """Exponential moving average seeded with the SMA of the first ``period`` values.

    Leading NaNs in the input (e.g., when smoothing another indicator)
    shift the seed to the first ``period`` valid values.
    """
    out = pd.Series(np.nan, index=values.index, dtype=float)
    valid = values.dropna()
    if period < 1 or len(valid) < period:
        return out

    k = 2.0 / (period + 1)
    arr = valid.to_numpy(dtype=float)
    result = np.full(len(arr), np.nan)
    prev = arr[:period].mean()
    result[period - 1] = prev
    for i in range(period, len(arr)):
        prev = arr[i] * k + prev * (1 - k)
        result[i] = prev

    out.loc[valid.index] = result
    return out


def wma(values: pd.Series, period: int) -> pd.Series:
    """Linearly weighted moving average."""
    weights = np.arange(1, period + 1, dtype=float)
    denom = weights.sum()
    return values.rolling(window=period, min_periods=period).apply(
        lambda w: float(np.dot(w, weights) / denom), raw=True
    )


def wilder(values: pd.Series, period: int) -> pd.Series:
    """Wilder smoothing seeded with the mean of the first ``period`` values."""
    out = pd.Series(np.nan, index=values.index, dtype=float)
    arr = values.to_numpy(dtype=float)
    first = np.flatnonzero(~np.isnan(arr))
    if len(first) == 0 or len(arr) - first[0] < period:
        return out

    start = first[0]
    result = np.full(len(arr), np.nan)
    prev = arr[start:start + period].mean()
    result[start + period - 1] = prev
    for i in range(start + period, len(arr)):
        prev = (prev * (period - 1) + arr[i]) / period
        result[i] = prev

    return pd.Series(result, index=values.index)


def true_range(df: pd.DataFrame) -> pd.Series:
    """True range; the first bar uses high - low."""
    prev_close = df["close"].shift(1)
    tr = pd.concat(
        [
            df["high"] - df["low"],
            (df["high"] - prev_close).abs(),
            (df["low"] - prev_close).abs(),
        ],
        axis=1,
    ).max(axis=1)
    tr.iloc[0] = df["high"].iloc[0] - df["low"].iloc[0] if len(df) else np.nan
    return tr


def pct_change_over(values: pd.Series, periods: int) -> pd.Series:
    """Percent change over ``periods`` bars; NaN where the base is zero or missing."""
    base = values.shift(periods)
    return ((values - base) / base.where(base != 0)) * 100


def cross_flags(fast: pd.Series, slow: pd.Series, bullish: bool) -> pd.Series:
    """1 where ``fast`` crosses ``slow`` at that bar, else 0."""
    prev_fast = fast.shift(1)
    prev_slow = slow.shift(1)
    if bullish:
        crossed = (prev_fast <= prev_slow) & (fast > slow)
    else:
        crossed = (prev_fast >= prev_slow) & (fast < slow)
    valid = fast.notna() & slow.notna() & prev_fast.notna() & prev_slow.notna()
    return (crossed & valid).astype(float)

"""Bar data contracts.

Bars flow through the screener as pandas DataFrames with columns
open, high, low, close, volume and either a DatetimeIndex or a
``date`` column, ordered oldest first. ``OhlcvRow`` is the row-level
contract used by loaders and tests that build bars by hand.
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Iterable

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

OHLCV_COLUMNS = ("open", "high", "low", "close", "volume")


class BarDataError(ValueError):
    """Raised when a bar frame does not satisfy the OHLCV contract."""


@dataclass(frozen=True)
class OhlcvRow:
    """One trading bar."""

    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float


def bars_from_rows(rows: Iterable[OhlcvRow | dict]) -> pd.DataFrame:
    """Build a bar DataFrame from OhlcvRow objects or plain dicts.

    Args:
        rows: Bars ordered oldest first

    Returns:
        DataFrame with a ``date`` column and OHLCV float columns
    """
    records = [asdict(r) if isinstance(r, OhlcvRow) else dict(r) for r in rows]
    if not records:
        return pd.DataFrame(columns=["date", *OHLCV_COLUMNS])
    return normalize_bars(pd.DataFrame.from_records(records))


def normalize_bars(df: pd.DataFrame) -> pd.DataFrame:
    """Validate a bar frame and coerce OHLCV columns to float.

    Args:
        df: Candidate bar DataFrame

    Returns:
        A new DataFrame; the input is not modified

    Raises:
        BarDataError: If an OHLCV column is missing or dates are duplicated
    """
    missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
    if missing:
        raise BarDataError(f"Bar data missing columns: {missing}")

    out = df.copy()
    for col in OHLCV_COLUMNS:
        out[col] = pd.to_numeric(out[col], errors="coerce").astype(float)

    dates = out["date"] if "date" in out.columns else out.index.to_series()
    if len(dates) and dates.duplicated().any():
        raise BarDataError("Bar data contains duplicate dates")

    return out


def bar_dates(df: pd.DataFrame) -> list[str]:
    """Return bar dates as ISO strings, oldest first."""
    if "date" in df.columns:
        values = df["date"]
    else:
        values = df.index
    result = []
    for v in values:
        if isinstance(v, pd.Timestamp):
            result.append(v.date().isoformat() if v == v.normalize() else v.isoformat())
        else:
            result.append(str(v))
    return result


def ohlcv_arrays(df: pd.DataFrame) -> dict[str, np.ndarray]:
    """Extract OHLCV columns as float numpy arrays."""
    return {col: df[col].to_numpy(dtype=float) for col in OHLCV_COLUMNS}


def resolve_index(length: int, as_of: int | None) -> int | None:
    """Resolve an ``as_of`` bar index against a series length.

    None means the most recent bar; negative values count from the end.
    Returns None when the index falls outside the series.
    """
    if length == 0:
        return None
    if as_of is None:
        return length - 1
    idx = as_of + length if as_of < 0 else as_of
    if idx < 0 or idx >= length:
        return None
    return idx


def round2(value: float) -> float:
    """Round half up to two decimals for reporting; inf and NaN pass through."""
    if not math.isfinite(value):
        return float(value)
    return math.floor(float(value) * 100 + 0.5) / 100


def safe_ratio(numerator: float, denominator: float) -> float:
    """Divide, giving +/-inf for a zero denominator and NaN for 0/0."""
    numerator = float(numerator)
    denominator = float(denominator)
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator

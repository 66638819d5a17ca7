"""Consolidation window search and the measurements shared by both classifiers.

A window of ``d`` bars ends the bar before the most recent one, so the
latest bar is always the candidate breakout bar and never part of the
base.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd

from screener.breakout.thresholds import ThresholdsConfig
from screener.domain import bar_dates, round2, safe_ratio

logger = logging.getLogger(__name__)

# Fraction of the window range counted as the support/resistance zone
TOUCH_ZONE = 0.3
# Tolerance below the first three lows before a later low counts as lower
LOWER_LOW_TOLERANCE = 0.998
# Tolerance for the last-third low versus the first-third low
HIGHER_LOW_TOLERANCE = 0.99
EMA_TREND_SPAN = 50
EMA_SLOPE_LOOKBACK = 10
AVG_VOLUME_BARS = 50


@dataclass
class ConsolidationWindow:
    """Best-scoring base found before the latest bar.

    Attributes:
        duration: Window length in bars
        start_idx: Index of the window's first bar in the full series
        bars: The window's rows
        high: Highest high in the window
        low: Lowest low in the window
        range_pct: (high - low) / low * 100
        support_touches: Bars with a low in the lower zone
        resistance_touches: Bars with a high in the upper zone
        has_lower_lows_after_day3: A later low undercut the first three bars
        has_large_red_candles: A red bar's body exceeded the threshold
        quality_score: 0-100 ranking score
        start_date: First bar date
        end_date: Last bar date
    """

    duration: int
    start_idx: int
    bars: pd.DataFrame = field(repr=False)
    high: float
    low: float
    range_pct: float
    support_touches: int
    resistance_touches: int
    has_lower_lows_after_day3: bool
    has_large_red_candles: bool
    quality_score: float
    start_date: str = ""
    end_date: str = ""

    def to_analysis(self) -> dict[str, Any]:
        """Summary reported as ``consolidation_analysis``."""
        return {
            "best_window_found": True,
            "window_duration": self.duration,
            "window_start_date": self.start_date,
            "window_end_date": self.end_date,
            "consolidation_high": round2(self.high),
            "consolidation_low": round2(self.low),
            "range_pct": round2(self.range_pct),
            "quality_score": round2(self.quality_score),
            "start_idx": self.start_idx,
        }


def has_lower_lows_after_day3(lows: np.ndarray) -> bool:
    """True if any low after the first three bars undercuts them by more than 0.2%."""
    if len(lows) < 4:
        return False
    floor = lows[:3].min() * LOWER_LOW_TOLERANCE
    return bool((lows[3:] < floor).any())


def count_touches(highs: np.ndarray, lows: np.ndarray, high: float, low: float) -> tuple[int, int]:
    """Count bars reaching the support and resistance zones.

    Returns:
        (support_touches, resistance_touches)
    """
    span = high - low
    support_zone = low + span * TOUCH_ZONE
    resistance_zone = high - span * TOUCH_ZONE
    return int((lows <= support_zone).sum()), int((highs >= resistance_zone).sum())


def has_large_red_candles(opens: np.ndarray, closes: np.ndarray, threshold: float) -> bool:
    """True if any red bar's body is more than ``threshold`` of its open."""
    red = opens > closes
    if not red.any():
        return False
    body_pct = (opens[red] - closes[red]) / opens[red]
    return bool((body_pct > threshold).any())


def has_higher_lows(lows: np.ndarray) -> bool:
    """True if the last third's lowest low holds above the first third's (1% tolerance)."""
    if len(lows) < 6:
        return False
    third = len(lows) // 3
    return bool(lows[-third:].min() > lows[:third].min() * HIGHER_LOW_TOLERANCE)


def window_quality_score(
    range_pct: float,
    support_touches: int,
    resistance_touches: int,
    has_lower_lows: bool,
    has_large_red: bool,
) -> float:
    """Score a candidate window out of 100."""
    if range_pct <= 10:
        range_score = 25.0
    elif range_pct <= 15:
        range_score = 12.5
    else:
        range_score = 0.0
    support_score = min(support_touches, 3) / 3 * 25
    resistance_score = min(resistance_touches, 3) / 3 * 25
    lower_lows_score = 0.0 if has_lower_lows else 15.0
    large_red_score = 0.0 if has_large_red else 10.0
    return range_score + support_score + resistance_score + lower_lows_score + large_red_score


def find_best_consolidation_window(
    bars: pd.DataFrame,
    thresholds: ThresholdsConfig,
) -> Optional[ConsolidationWindow]:
    """Search window lengths in ascending order for the highest quality score.

    Ties keep the shorter window. Returns None when no window length fits
    in the available history.

    Args:
        bars: OHLCV DataFrame, oldest first
        thresholds: Context thresholds

    Returns:
        The best window, or None
    """
    n = len(bars)
    opens = bars["open"].to_numpy(dtype=float)
    highs = bars["high"].to_numpy(dtype=float)
    lows = bars["low"].to_numpy(dtype=float)
    closes = bars["close"].to_numpy(dtype=float)
    dates = bar_dates(bars)

    best: Optional[ConsolidationWindow] = None
    best_score = -1.0

    for duration in range(thresholds.consolidation_min_days, thresholds.consolidation_max_days + 1):
        start = n - duration - 1
        if start < 0:
            continue
        end = n - 1
        w_high = float(highs[start:end].max())
        w_low = float(lows[start:end].min())
        range_pct = safe_ratio(w_high - w_low, w_low) * 100

        support, resistance = count_touches(highs[start:end], lows[start:end], w_high, w_low)
        lower_lows = has_lower_lows_after_day3(lows[start:end])
        large_red = has_large_red_candles(
            opens[start:end], closes[start:end], thresholds.large_red_candle_threshold
        )
        score = window_quality_score(range_pct, support, resistance, lower_lows, large_red)

        if score > best_score:
            best_score = score
            best = ConsolidationWindow(
                duration=duration,
                start_idx=start,
                bars=bars.iloc[start:end],
                high=w_high,
                low=w_low,
                range_pct=range_pct,
                support_touches=support,
                resistance_touches=resistance,
                has_lower_lows_after_day3=lower_lows,
                has_large_red_candles=large_red,
                quality_score=score,
                start_date=dates[start],
                end_date=dates[end - 1],
            )

    if best is not None:
        logger.debug(
            "Best window: %d bars from idx %d, range %.2f%%, score %.1f",
            best.duration, best.start_idx, best.range_pct, best.quality_score,
        )
    return best


def prior_bars(bars: pd.DataFrame, window: ConsolidationWindow, lookback: int) -> pd.DataFrame:
    """Rows in the ``lookback`` bars immediately before the window."""
    return bars.iloc[max(0, window.start_idx - lookback):window.start_idx]


def prior_move_pct(prior: pd.DataFrame) -> float:
    """High/low span of the prior bars as a percentage of the low; 0 if empty."""
    if prior.empty:
        return 0.0
    prior_low = float(prior["low"].min())
    prior_high = float(prior["high"].max())
    return safe_ratio(prior_high - prior_low, prior_low) * 100


def volume_contraction(prior: pd.DataFrame, window: ConsolidationWindow) -> tuple[float, float, float]:
    """Average window volume relative to the prior bars.

    Returns:
        (ratio, avg_prior_volume, avg_window_volume); the prior average is 1
        when there are no prior bars
    """
    avg_prior = float(prior["volume"].mean()) if not prior.empty else 1.0
    avg_window = float(window.bars["volume"].mean())
    return safe_ratio(avg_window, avg_prior), avg_prior, avg_window


def ema_trend(closes: pd.Series) -> tuple[float, float]:
    """Latest 50-span EMA of closes and its value 10 bars earlier.

    The EMA is seeded with the first close.
    """
    series = closes.ewm(span=EMA_TREND_SPAN, adjust=False).mean().to_numpy(dtype=float)
    latest = float(series[-1])
    if len(series) > EMA_SLOPE_LOOKBACK:
        earlier = float(series[-1 - EMA_SLOPE_LOOKBACK])
    else:
        earlier = latest
    return latest, earlier


def average_volume(bars: pd.DataFrame, count: int = AVG_VOLUME_BARS) -> float:
    """Mean volume of the last ``count`` bars, including the latest."""
    return float(bars["volume"].iloc[-count:].mean())

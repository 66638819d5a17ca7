"""Diagnostic consolidation-breakout scorer.

Unlike the tiered classifier, every criterion is evaluated for every
instrument, so a near miss reports exactly which thresholds it missed
and by how much. Relaxed thresholds only flag near misses; they never
change ``match``.
"""

import logging
from typing import Any, Iterable, Union

import pandas as pd

from screener.breakout.results import CriterionResult, DiagnosticResult
from screener.breakout.thresholds import ScanContext, ThresholdsConfig, get_thresholds
from screener.breakout.window import (
    ConsolidationWindow,
    average_volume,
    ema_trend,
    find_best_consolidation_window,
    prior_bars,
    prior_move_pct,
    volume_contraction,
)
from screener.domain import bar_dates, round2, safe_ratio

logger = logging.getLogger(__name__)

NEAR_MISS_LIMIT = 20

# Criteria that have no relaxed threshold
FIXED_CRITERIA = (
    "C1_consolidation_found",
    "C5_no_lower_lows_after_day3",
    "C6_no_large_red_candles",
    "C8_prior_move_direction",
    "C10_breakout_candle_quality",
)

SCORE_BUCKETS = (
    ("90_to_100", 90),
    ("80_to_89", 80),
    ("70_to_79", 70),
    ("60_to_69", 60),
    ("below_60", 0),
)


def _initial_criteria(t: ThresholdsConfig) -> dict[str, CriterionResult]:
    return {
        "C1_consolidation_found": CriterionResult(False, False, required=True),
        "C2_range_pct": CriterionResult(False, 0, required_max=t.max_range_pct),
        "C3_support_touches": CriterionResult(False, 0, required_min=t.min_support_touches),
        "C4_resistance_touches": CriterionResult(False, 0, required_min=t.min_resistance_touches),
        "C5_no_lower_lows_after_day3": CriterionResult(False, True, required=False),
        "C6_no_large_red_candles": CriterionResult(False, True, required=False),
        "C7_prior_move_pct": CriterionResult(False, 0, required_min=t.min_prior_move_pct),
        "C8_prior_move_direction": CriterionResult(False, "down", required="up"),
        "C9_volume_contraction": CriterionResult(False, 0, required_max=t.max_volume_contraction_ratio),
        "C10_breakout_candle_quality": CriterionResult(False, 0, required_min=t.min_close_position),
    }


def _near_miss(near: bool, threshold: Any) -> str | None:
    return f"NEAR MISS - would pass with threshold of {threshold}" if near else None


def _breakout_candle_quality(
    bars: pd.DataFrame,
    window: ConsolidationWindow,
    t: ThresholdsConfig,
) -> CriterionResult:
    """Grade the latest bar as a breakout candle (C10).

    Passes only when the close clears the breakout level with a strong
    close position and volume, no oversized opening gap, a close at or
    above the 50 EMA, and a 50 EMA that is not falling.
    """
    today = bars.iloc[-1]
    close = float(today["close"])
    prev_close = float(bars["close"].iloc[-2]) if len(bars) > 1 else 0.0

    ema50, ema50_earlier = ema_trend(bars["close"])
    avg_volume_50d = average_volume(bars)
    breakout_level = window.high * t.breakout_buffer
    candle_range = float(today["high"]) - float(today["low"])
    close_position = (close - float(today["low"])) / candle_range if candle_range > 0 else 0.0
    volume_ratio = float(today["volume"]) / avg_volume_50d if avg_volume_50d > 0 else 0.0
    gap_pct = (float(today["open"]) - prev_close) / prev_close if prev_close else 0.0

    is_breakout = close > breakout_level
    close_position_ok = close_position >= t.min_close_position
    volume_ok = volume_ratio >= t.min_breakout_volume_ratio
    gap_ok = gap_pct <= t.max_gap_pct
    above_ema50 = close >= ema50
    ema50_rising = ema50 >= ema50_earlier

    issues = []
    if not is_breakout:
        issues.append(f"No breakout: close {close:.2f} <= level {breakout_level:.2f}")
    if not close_position_ok:
        issues.append(
            f"Weak close position: {close_position * 100:.0f}% < {t.min_close_position * 100:.0f}%"
        )
    if not volume_ok:
        issues.append(f"Low volume: {volume_ratio:.2f}x < {t.min_breakout_volume_ratio}x")
    if not gap_ok:
        issues.append(f"Gap too large: {gap_pct * 100:.1f}% > {t.max_gap_pct * 100:.0f}%")
    if not above_ema50:
        issues.append(f"Price below EMA50: {close:.2f} < {ema50:.2f}")
    if not ema50_rising:
        issues.append(f"EMA50 falling: {ema50:.2f} < {ema50_earlier:.2f}")

    details: dict[str, Any] = {
        "is_breakout": is_breakout,
        "today_close": round2(close),
        "breakout_level": round2(breakout_level),
        "close_position_in_range": round2(close_position),
        "breakout_volume_ratio": round2(volume_ratio),
        "required_min_volume_ratio": t.min_breakout_volume_ratio,
        "gap_pct": round2(gap_pct * 100),
        "price_above_ema50": above_ema50,
        "ema50_rising": ema50_rising,
        "ema50": round2(ema50),
        "ema50_10d_ago": round2(ema50_earlier),
    }
    if issues:
        details["issues"] = issues

    passed = is_breakout and close_position_ok and volume_ok and gap_ok and above_ema50 and ema50_rising
    return CriterionResult(
        passed, round2(close_position), required_min=t.min_close_position, details=details
    )


def diagnose_breakout(
    bars: pd.DataFrame,
    context: Union[ScanContext, str] = ScanContext.SWING,
    symbol: str = "",
) -> DiagnosticResult:
    """Score one instrument against every breakout criterion.

    Args:
        bars: OHLCV DataFrame, oldest first; the last row is today
        context: 'swing' or 'positional'
        symbol: Instrument symbol for reporting

    Returns:
        DiagnosticResult with per-criterion actual vs required values
    """
    t = get_thresholds(context)
    dates = bar_dates(bars)
    result = DiagnosticResult(
        symbol=symbol,
        scan_date=dates[-1] if dates else "",
        criteria=_initial_criteria(t),
    )
    relaxed = {
        "would_pass_with_relaxed_range": False,
        "would_pass_with_relaxed_support_touches": False,
        "would_pass_with_relaxed_resistance_touches": False,
        "would_pass_with_relaxed_prior_move": False,
        "would_pass_with_relaxed_volume_contraction": False,
        "would_pass_if_all_relaxed": False,
    }
    result.relaxed_analysis = relaxed

    if len(bars) < t.min_bars:
        result.failure_reasons.append(f"Insufficient data: {len(bars)} rows, need {t.min_bars}")
        return result

    criteria = result.criteria
    window = find_best_consolidation_window(bars, t)
    if window is None:
        result.failure_reasons.append(
            f"No consolidation window found "
            f"({t.consolidation_min_days}-{t.consolidation_max_days} days)"
        )
    else:
        result.consolidation_analysis = window.to_analysis()
        criteria["C1_consolidation_found"] = CriterionResult(True, True, required=True)

        range_ok = window.range_pct <= t.max_range_pct
        relaxed["would_pass_with_relaxed_range"] = window.range_pct <= t.max_range_pct_relaxed
        criteria["C2_range_pct"] = CriterionResult(
            range_ok, round2(window.range_pct), required_max=t.max_range_pct,
            note=_near_miss(not range_ok and relaxed["would_pass_with_relaxed_range"],
                            f"{t.max_range_pct_relaxed:g}%"),
        )

        support_ok = window.support_touches >= t.min_support_touches
        relaxed["would_pass_with_relaxed_support_touches"] = window.support_touches >= t.min_touches_relaxed
        criteria["C3_support_touches"] = CriterionResult(
            support_ok, window.support_touches, required_min=t.min_support_touches,
            note=_near_miss(not support_ok and relaxed["would_pass_with_relaxed_support_touches"],
                            t.min_touches_relaxed),
        )

        resistance_ok = window.resistance_touches >= t.min_resistance_touches
        relaxed["would_pass_with_relaxed_resistance_touches"] = (
            window.resistance_touches >= t.min_touches_relaxed
        )
        criteria["C4_resistance_touches"] = CriterionResult(
            resistance_ok, window.resistance_touches, required_min=t.min_resistance_touches,
            note=_near_miss(not resistance_ok and relaxed["would_pass_with_relaxed_resistance_touches"],
                            t.min_touches_relaxed),
        )

        criteria["C5_no_lower_lows_after_day3"] = CriterionResult(
            not window.has_lower_lows_after_day3, window.has_lower_lows_after_day3, required=False
        )
        criteria["C6_no_large_red_candles"] = CriterionResult(
            not window.has_large_red_candles, window.has_large_red_candles, required=False
        )

        prior = prior_bars(bars, window, t.prior_move_window)
        move_pct = prior_move_pct(prior)
        move_ok = move_pct >= t.min_prior_move_pct
        relaxed["would_pass_with_relaxed_prior_move"] = move_pct >= t.min_prior_move_pct_relaxed
        criteria["C7_prior_move_pct"] = CriterionResult(
            move_ok, round2(move_pct), required_min=t.min_prior_move_pct,
            note=_near_miss(not move_ok and relaxed["would_pass_with_relaxed_prior_move"],
                            f"{t.min_prior_move_pct_relaxed:g}%"),
            details={
                "prior_low": round2(prior["low"].min()) if not prior.empty else 0,
                "prior_high": round2(prior["high"].max()) if not prior.empty else 0,
            },
        )

        start_close = end_close = direction_pct = 0.0
        direction_ok = False
        if not prior.empty:
            start_close = float(prior["close"].iloc[0])
            end_close = float(prior["close"].iloc[-1])
            direction_pct = safe_ratio(end_close - start_close, start_close) * 100
            direction_ok = end_close >= start_close * (1 + t.prior_move_direction_pct / 100)
        criteria["C8_prior_move_direction"] = CriterionResult(
            direction_ok, "up" if direction_pct > 0 else "down", required="up",
            note=(f"NEAR MISS - upward but less than {t.prior_move_direction_pct:g}%"
                  if not direction_ok and direction_pct > 0 else None),
            details={
                "start_close": round2(start_close),
                "end_close": round2(end_close),
                "direction_pct": round2(direction_pct),
            },
        )

        ratio, avg_prior, avg_window = volume_contraction(prior, window)
        volume_ok = ratio <= t.max_volume_contraction_ratio
        relaxed["would_pass_with_relaxed_volume_contraction"] = (
            ratio <= t.max_volume_contraction_ratio_relaxed
        )
        criteria["C9_volume_contraction"] = CriterionResult(
            volume_ok, round2(ratio), required_max=t.max_volume_contraction_ratio,
            note=_near_miss(not volume_ok and relaxed["would_pass_with_relaxed_volume_contraction"],
                            t.max_volume_contraction_ratio_relaxed),
            details={"avg_vol_prior": round(avg_prior), "avg_vol_consolidation": round(avg_window)},
        )

        criteria["C10_breakout_candle_quality"] = _breakout_candle_quality(bars, window, t)

    result.criteria_passed = sum(1 for c in criteria.values() if c.is_pass)
    result.match = result.criteria_passed == len(criteria)
    result.failure_reasons.extend(
        c.failure_reason(key) for key, c in criteria.items() if not c.is_pass
    )

    relaxed["would_pass_if_all_relaxed"] = (
        all(criteria[key].is_pass for key in FIXED_CRITERIA)
        and (criteria["C2_range_pct"].is_pass or relaxed["would_pass_with_relaxed_range"])
        and (criteria["C3_support_touches"].is_pass or relaxed["would_pass_with_relaxed_support_touches"])
        and (criteria["C4_resistance_touches"].is_pass
             or relaxed["would_pass_with_relaxed_resistance_touches"])
        and (criteria["C7_prior_move_pct"].is_pass or relaxed["would_pass_with_relaxed_prior_move"])
        and (criteria["C9_volume_contraction"].is_pass
             or relaxed["would_pass_with_relaxed_volume_contraction"])
    )

    logger.debug("%s diagnostic score %d/%d", symbol, result.criteria_passed, len(criteria))
    return result


def generate_scan_summary(
    results: Iterable[DiagnosticResult],
    near_miss_limit: int = NEAR_MISS_LIMIT,
) -> dict[str, Any]:
    """Aggregate diagnostic results across a universe.

    Args:
        results: Per-instrument DiagnosticResults
        near_miss_limit: Number of highest-scoring non-matches to list

    Returns:
        Dict with score buckets, per-criterion failure counts and top near misses
    """
    results = list(results)
    by_score = {name: 0 for name, _ in SCORE_BUCKETS}
    failures = {key: 0 for key in _initial_criteria(get_thresholds()).keys()}

    for r in results:
        for name, floor in SCORE_BUCKETS:
            if r.score_pct >= floor:
                by_score[name] += 1
                break
        for key in r.failed_criteria:
            failures[key] = failures.get(key, 0) + 1

    near_misses = sorted((r for r in results if not r.match), key=lambda r: -r.score_pct)
    return {
        "total_stocks_scanned": len(results),
        "total_matches": sum(1 for r in results if r.match),
        "stocks_by_score": by_score,
        "criteria_failure_frequency": failures,
        "top_near_misses": [
            {
                "symbol": r.symbol,
                "score_pct": r.score_pct,
                "failed_criteria": [key.split("_", 1)[0] for key in r.failed_criteria],
            }
            for r in near_misses[:near_miss_limit]
        ],
    }

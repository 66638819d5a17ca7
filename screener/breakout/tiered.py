"""Tiered consolidation-breakout classifier.

Finds the best consolidation window before the latest bar, evaluates the
ten breakout criteria, and buckets the instrument into:

- Tier 1 "Ready to Trade": clean base, confirmed breakout
- Tier 2A "Imminent Breakout": clean base, close just below the window high
- Tier 2B "Watchlist": acceptable base, further below the window high
"""

import logging
import math
from datetime import date
from typing import Any, Iterable, Union

import pandas as pd

from screener.breakout.results import (
    CriterionResult,
    PARTIAL,
    BreakoutStatus,
    Tier,
    TierResult,
    TrendContext,
)
from screener.breakout.thresholds import ScanContext, ThresholdsConfig, get_thresholds
from screener.breakout.window import (
    ConsolidationWindow,
    average_volume,
    ema_trend,
    find_best_consolidation_window,
    has_higher_lows,
    prior_bars,
    prior_move_pct,
    volume_contraction,
)
from screener.domain import bar_dates, round2, safe_ratio

logger = logging.getLogger(__name__)

# Breakout volume ratio below which a close above the level is "no volume"
WEAK_VOLUME_RATIO = 1.0
SUGGESTED_STOP_FACTOR = 0.99
VOLUME_TRIGGER_FACTOR = 1.5


def _initial_criteria(t: ThresholdsConfig) -> dict[str, CriterionResult]:
    """Criteria as reported when no window could be evaluated."""
    return {
        "C1_consolidation_found": CriterionResult(False, False, required=True),
        "C2_range_pct": CriterionResult(False, 0, required_max=t.max_range_pct),
        "C3_support_touches": CriterionResult(False, 0, required_min=t.min_support_touches),
        "C4_resistance_touches": CriterionResult(False, 0, required_min=t.min_resistance_touches),
        "C5_no_lower_lows_after_day3": CriterionResult(False, True, required=False),
        "C6_no_large_red_candles": CriterionResult(False, True, required=False),
        "C7_prior_move_pct": CriterionResult(False, 0, required_min=t.min_prior_move_pct),
        "C8_prior_move_direction": CriterionResult(
            False, TrendContext.DOWNTREND, required="up",
            details={"type": TrendContext.DOWNTREND, "confidence": "none",
                     "direction_20d": 0, "direction_40d": 0},
        ),
        "C9_volume_contraction": CriterionResult(
            False, 0, required_max=t.max_volume_contraction_ratio,
            details={"passed_relaxed": False,
                     "threshold_strict": t.max_volume_contraction_ratio,
                     "threshold_relaxed": t.max_volume_contraction_ratio_relaxed,
                     "avg_vol_prior": 0, "avg_vol_consolidation": 0},
        ),
        "C10_breakout_status": CriterionResult(
            False, 100, required_max=0,
            details={"status": BreakoutStatus.TOO_FAR, "is_breakout": False,
                     "distance_pct": 100.0, "breakout_level": 0, "current_price": 0,
                     "volume_ratio": 0, "close_position": 0, "avg_volume_50d": 0,
                     "price_above_ema50": False, "ema50_rising": False,
                     "ema50": 0, "ema50_10d_ago": 0},
        ),
    }


def evaluate_prior_direction(
    bars: pd.DataFrame,
    window: ConsolidationWindow,
    t: ThresholdsConfig,
) -> CriterionResult:
    """Classify the trend leading into the base (C8).

    Full pass for a continuation (up over the prior window) or a pullback
    in an uptrend (up 5%+ over the extended window). Partial pass for a
    recovery base (higher lows, down less than 15%) or a neutral base
    (extended window down less than 10%). Anything else is a downtrend.
    """
    closes = bars["close"].to_numpy(dtype=float)
    start = window.start_idx
    end_close = closes[start - 1] if start > 0 else closes[start]
    start_close = closes[max(0, start - t.prior_move_window)]
    start_close_ext = closes[max(0, start - t.prior_move_window_extended)]
    direction_20d = safe_ratio(end_close - start_close, start_close) * 100
    direction_40d = safe_ratio(end_close - start_close_ext, start_close_ext) * 100
    higher_lows = has_higher_lows(window.bars["low"].to_numpy(dtype=float))

    note = None
    if direction_20d > 0:
        passed, trend, confidence = True, TrendContext.CONTINUATION, "high"
    elif direction_40d >= 5:
        passed, trend, confidence = True, TrendContext.PULLBACK_IN_UPTREND, "high"
    elif higher_lows and direction_20d > -15:
        passed, trend, confidence = PARTIAL, TrendContext.RECOVERY_BASE, "medium"
        note = "Recovery base - forming higher lows despite prior weakness"
    elif direction_40d > -10:
        passed, trend, confidence = PARTIAL, TrendContext.NEUTRAL_BASE, "low"
        note = "Neutral trend context - not a classic continuation setup"
    else:
        passed, trend, confidence = False, TrendContext.DOWNTREND, "none"

    details: dict[str, Any] = {
        "type": trend,
        "confidence": confidence,
        "direction_20d": round2(direction_20d),
        "direction_40d": round2(direction_40d),
    }
    if trend == TrendContext.RECOVERY_BASE:
        details["higher_lows"] = True
    actual = "up" if trend == TrendContext.CONTINUATION else trend
    return CriterionResult(passed, actual, required="up", note=note, details=details)


def evaluate_volume_contraction(
    bars: pd.DataFrame,
    window: ConsolidationWindow,
    t: ThresholdsConfig,
) -> CriterionResult:
    """Window volume relative to the prior move, strict and relaxed (C9)."""
    ratio, avg_prior, avg_window = volume_contraction(
        prior_bars(bars, window, t.prior_move_window), window
    )
    return CriterionResult(
        passed=ratio <= t.max_volume_contraction_ratio,
        actual=round2(ratio),
        required_max=t.max_volume_contraction_ratio,
        details={
            "passed_relaxed": ratio <= t.max_volume_contraction_ratio_relaxed,
            "threshold_strict": t.max_volume_contraction_ratio,
            "threshold_relaxed": t.max_volume_contraction_ratio_relaxed,
            "avg_vol_prior": round(avg_prior),
            "avg_vol_consolidation": round(avg_window),
        },
    )


def evaluate_breakout_status(
    bars: pd.DataFrame,
    window: ConsolidationWindow,
    t: ThresholdsConfig,
) -> CriterionResult:
    """Locate the latest close relative to the breakout level (C10).

    A close above ``window.high * breakout_buffer`` is a breakout,
    graded by volume and close position. Otherwise the distance below
    the window high decides between IMMINENT, WATCHLIST and TOO_FAR.
    """
    today = bars.iloc[-1]
    close = float(today["close"])
    day_high = float(today["high"])
    day_low = float(today["low"])

    ema50, ema50_earlier = ema_trend(bars["close"])
    avg_volume_50d = average_volume(bars)
    breakout_level = window.high * t.breakout_buffer
    distance_pct = safe_ratio(window.high - close, window.high) * 100
    volume_ratio = float(today["volume"]) / avg_volume_50d if avg_volume_50d > 0 else 0.0
    close_position = (close - day_low) / (day_high - day_low) if day_high != day_low else 0.5

    is_breakout = close > breakout_level
    caveat = None
    if is_breakout and volume_ratio >= t.min_breakout_volume_ratio and close_position >= t.min_close_position:
        status, passed = BreakoutStatus.BREAKOUT_CONFIRMED, True
    elif is_breakout and volume_ratio >= WEAK_VOLUME_RATIO:
        status, passed = BreakoutStatus.BREAKOUT_WEAK_VOLUME, True
        caveat = f"Breakout confirmed but volume below ideal (< {t.min_breakout_volume_ratio}x)"
    elif is_breakout:
        status, passed = BreakoutStatus.BREAKOUT_NO_VOLUME, PARTIAL
        caveat = "Price broke out but volume not confirming"
    elif distance_pct <= t.tier_2a_distance_pct:
        status, passed = BreakoutStatus.IMMINENT, False
    elif distance_pct <= t.tier_2b_distance_pct:
        status, passed = BreakoutStatus.WATCHLIST, False
    else:
        status, passed = BreakoutStatus.TOO_FAR, False

    if status in (BreakoutStatus.BREAKOUT_CONFIRMED, BreakoutStatus.BREAKOUT_WEAK_VOLUME):
        tier_eligible = 1
    elif status == BreakoutStatus.TOO_FAR:
        tier_eligible = None
    else:
        tier_eligible = 2

    details: dict[str, Any] = {
        "status": status,
        "is_breakout": is_breakout,
        "distance_pct": round2(distance_pct),
        "breakout_level": round2(breakout_level),
        "current_price": round2(close),
        "volume_ratio": round2(volume_ratio),
        "close_position": round2(close_position),
        "avg_volume_50d": round(avg_volume_50d),
        "tier_eligible": tier_eligible,
        "price_above_ema50": close >= ema50,
        "ema50_rising": ema50 >= ema50_earlier,
        "ema50": round2(ema50),
        "ema50_10d_ago": round2(ema50_earlier),
    }
    if caveat:
        details["caveat"] = caveat
    return CriterionResult(passed, round2(distance_pct), required_max=0, details=details)


def _classify(criteria: dict[str, CriterionResult], t: ThresholdsConfig) -> tuple[Tier | None, str, str | None]:
    """Assign a tier from the criteria.

    Returns:
        (tier, confidence, action)
    """
    c1, c2, c3, c4, c5, c6 = (
        criteria[key].is_pass for key in (
            "C1_consolidation_found", "C2_range_pct", "C3_support_touches",
            "C4_resistance_touches", "C5_no_lower_lows_after_day3", "C6_no_large_red_candles",
        )
    )
    c7 = criteria["C7_prior_move_pct"]
    c7_ok = c7.is_pass or c7.actual >= t.min_prior_move_pct_relaxed
    c8 = criteria["C8_prior_move_direction"]
    c8_ok = c8.is_pass or c8.is_partial
    c9 = criteria["C9_volume_contraction"]
    c9_ok = c9.is_pass or c9.details["passed_relaxed"]
    c10 = criteria["C10_breakout_status"]
    status = c10.details["status"]
    distance = c10.details["distance_pct"]
    level = c10.details["breakout_level"]

    base_strict = c1 and c2 and c3 and c4 and c5 and c6
    base_relaxed = c1 and c2 and c3 and c4 and (c5 or c6)

    if (base_strict and c7.is_pass and c8.is_pass and c9.is_pass
            and status in (BreakoutStatus.BREAKOUT_CONFIRMED, BreakoutStatus.BREAKOUT_WEAK_VOLUME)):
        return Tier.READY, "high", "Enter now with stop below consolidation low"

    if base_strict and c7_ok and c8_ok and c9_ok and distance <= t.tier_2a_distance_pct:
        return Tier.IMMINENT, "high", f"Enter on break above {level} with volume surge"

    if base_relaxed and c7_ok and c8_ok and c9_ok and distance <= t.tier_2b_distance_pct:
        return Tier.WATCHLIST, "medium", f"Watch for break above {level}"

    if base_relaxed and c8_ok and status == BreakoutStatus.BREAKOUT_NO_VOLUME:
        return Tier.WATCHLIST, "low", "Broke out but needs volume confirmation. Watch for follow-through."

    return None, "none", None


def _caveats(criteria: dict[str, CriterionResult], t: ThresholdsConfig) -> list[str]:
    caveats = []
    c8 = criteria["C8_prior_move_direction"]
    c9 = criteria["C9_volume_contraction"]
    c10 = criteria["C10_breakout_status"].details

    if c8.is_partial:
        if c8.details["type"] == TrendContext.RECOVERY_BASE:
            caveats.append("Recovery base - prior trend was down, higher risk")
        elif c8.details["type"] == TrendContext.NEUTRAL_BASE:
            caveats.append("Neutral trend context - not a classic continuation setup")
    if c8.details["direction_20d"] < -10:
        caveats.append(f"Prior {t.prior_move_window}-day trend down {c8.details['direction_20d']}%")

    if not c9.is_pass and c9.details["passed_relaxed"]:
        caveats.append(
            f"Volume contraction {c9.actual}x slightly high (ideal < {t.max_volume_contraction_ratio}x)"
        )

    if c10["status"] == BreakoutStatus.BREAKOUT_WEAK_VOLUME:
        caveats.append("Breakout on below-average volume - watch for follow-through")
    if c10["status"] == BreakoutStatus.BREAKOUT_NO_VOLUME:
        caveats.append("Breakout with very low volume - high risk of false breakout")
    if not c10["price_above_ema50"]:
        caveats.append("Price below 50 EMA - trend not fully confirmed")
    if not c10["ema50_rising"]:
        caveats.append("50 EMA still falling - wait for trend confirmation")
    return caveats


def classify_breakout(
    bars: pd.DataFrame,
    context: Union[ScanContext, str] = ScanContext.SWING,
    symbol: str = "",
) -> TierResult:
    """Classify one instrument's consolidation-breakout setup.

    Insufficient history yields an untiered result with a caveat rather
    than an error.

    Args:
        bars: OHLCV DataFrame, oldest first; the last row is today
        context: 'swing' or 'positional'
        symbol: Instrument symbol for reporting

    Returns:
        TierResult with criteria detail
    """
    t = get_thresholds(context)
    dates = bar_dates(bars)
    result = TierResult(
        symbol=symbol,
        scan_date=dates[-1] if dates else "",
        criteria=_initial_criteria(t),
    )

    if len(bars) < t.min_bars:
        result.caveats.append(f"Insufficient data: {len(bars)} rows, need {t.min_bars}")
        return result

    window = find_best_consolidation_window(bars, t)
    if window is None:
        result.caveats.append("No valid consolidation window found")
        return result

    result.consolidation_analysis = window.to_analysis()
    prior = prior_bars(bars, window, t.prior_move_window)
    move_pct = prior_move_pct(prior)

    criteria = result.criteria
    criteria["C1_consolidation_found"] = CriterionResult(True, True, required=True)
    criteria["C2_range_pct"] = CriterionResult(
        window.range_pct <= t.max_range_pct, round2(window.range_pct), required_max=t.max_range_pct
    )
    criteria["C3_support_touches"] = CriterionResult(
        window.support_touches >= t.min_support_touches, window.support_touches,
        required_min=t.min_support_touches,
    )
    criteria["C4_resistance_touches"] = CriterionResult(
        window.resistance_touches >= t.min_resistance_touches, window.resistance_touches,
        required_min=t.min_resistance_touches,
    )
    criteria["C5_no_lower_lows_after_day3"] = CriterionResult(
        not window.has_lower_lows_after_day3, window.has_lower_lows_after_day3, required=False
    )
    criteria["C6_no_large_red_candles"] = CriterionResult(
        not window.has_large_red_candles, window.has_large_red_candles, required=False
    )
    criteria["C7_prior_move_pct"] = CriterionResult(
        move_pct >= t.min_prior_move_pct, round2(move_pct), required_min=t.min_prior_move_pct
    )
    criteria["C8_prior_move_direction"] = evaluate_prior_direction(bars, window, t)
    criteria["C9_volume_contraction"] = evaluate_volume_contraction(bars, window, t)
    criteria["C10_breakout_status"] = evaluate_breakout_status(bars, window, t)

    passed = sum(1.0 if c.is_pass else 0.5 if c.is_partial else 0.0 for c in criteria.values())
    result.criteria_passed = math.floor(passed + 0.5)
    result.score_pct = math.floor(passed * 10 + 0.5)

    result.tier, result.confidence, result.action = _classify(criteria, t)
    result.caveats = _caveats(criteria, t)

    if result.tier is not None:
        c10 = criteria["C10_breakout_status"].details
        low = result.consolidation_analysis["consolidation_low"]
        result.price_info = {
            "current_price": c10["current_price"],
            "breakout_level": c10["breakout_level"],
            "distance_to_breakout": f"{c10['distance_pct']:.2f}%",
            "consolidation_low": low,
            "suggested_stop": round2(low * SUGGESTED_STOP_FACTOR),
        }
        result.volume_info = {
            "avg_volume_50d": c10["avg_volume_50d"],
            "volume_trigger": f"{round(c10['avg_volume_50d'] * VOLUME_TRIGGER_FACTOR):,}",
            "today_volume_ratio": f"{c10['volume_ratio']:.2f}x",
        }

    logger.debug("%s classified as %s (score %d%%)", symbol, result.tier_name, result.score_pct)
    return result


def _market_note(tier_1_count: int, tier_2a_count: int) -> str:
    if tier_1_count >= 5:
        return "Healthy market - multiple confirmed breakouts"
    if tier_1_count >= 1:
        return "Selective opportunities - few confirmed breakouts"
    if tier_2a_count >= 10:
        return "Building momentum - multiple stocks near breakout"
    return "Correction phase - breakout setups require patience"


def generate_tiered_scan_output(results: Iterable[TierResult]) -> dict[str, Any]:
    """Bucket classified instruments by tier for reporting.

    Tier 2A and 2B names are sorted closest-to-breakout first.

    Args:
        results: Per-instrument TierResults

    Returns:
        Dict with scan summary and per-tier result lists
    """
    results = list(results)
    tier_1 = [r for r in results if r.tier == Tier.READY]
    tier_2a = sorted((r for r in results if r.tier == Tier.IMMINENT), key=lambda r: r.distance_pct)
    tier_2b = sorted((r for r in results if r.tier == Tier.WATCHLIST), key=lambda r: r.distance_pct)
    scan_date = results[0].scan_date if results else date.today().isoformat()

    return {
        "scan_date": scan_date,
        "scan_summary": {
            "total_scanned": len(results),
            "tier_1_count": len(tier_1),
            "tier_2a_count": len(tier_2a),
            "tier_2b_count": len(tier_2b),
            "market_note": _market_note(len(tier_1), len(tier_2a)),
        },
        "tier_1_ready_to_trade": [r.to_dict() for r in tier_1],
        "tier_2a_imminent_breakout": [r.to_dict() for r in tier_2a],
        "tier_2b_watchlist": [r.to_dict() for r in tier_2b],
    }

"""Tests for the tiered consolidation-breakout classifier."""

from dataclasses import replace

import pytest

from screener.breakout import (
    SWING_THRESHOLDS,
    BreakoutStatus,
    Tier,
    TrendContext,
    classify_breakout,
    generate_tiered_scan_output,
)


class TestClassifyBreakout:
    """Tier assignment for the base scenario with different latest bars."""

    def test_confirmed_breakout_is_tier_1(self, breakout_bars):
        """Clean 15-bar base, +22% prior move, 0.55 contraction, close 1% above on 2x volume."""
        result = classify_breakout(breakout_bars, "swing", symbol="TEST")

        assert result.tier == Tier.READY
        assert result.tier_name == "Ready to Trade"
        assert result.confidence == "high"
        assert result.criteria_passed == 10
        assert result.score_pct == 100
        assert all(c.is_pass for c in result.criteria.values())

        c10 = result.criteria["C10_breakout_status"]
        assert c10.details["status"] == BreakoutStatus.BREAKOUT_CONFIRMED
        assert c10.details["breakout_level"] == 124.22
        assert c10.details["volume_ratio"] == pytest.approx(2.26, abs=0.01)
        assert c10.details["tier_eligible"] == 1
        assert result.criteria["C9_volume_contraction"].actual == 0.55
        assert result.criteria["C8_prior_move_direction"].details["type"] == TrendContext.CONTINUATION
        assert result.criteria["C7_prior_move_pct"].actual > 15
        assert result.caveats == []

    def test_tier_1_price_and_volume_info(self, breakout_bars):
        result = classify_breakout(breakout_bars, "swing", symbol="TEST")

        assert result.price_info["breakout_level"] == 124.22
        assert result.price_info["consolidation_low"] == 120.0
        assert result.price_info["suggested_stop"] == 118.8
        assert result.volume_info["avg_volume_50d"] == 885_000
        assert result.volume_info["volume_trigger"] == "1,327,500"
        assert result.volume_info["today_volume_ratio"] == "2.26x"

    def test_close_just_below_high_is_tier_2a(self, imminent_bars):
        """Close 1.5% below the window high is within the 2A distance."""
        result = classify_breakout(imminent_bars, "swing", symbol="TEST")

        assert result.tier == Tier.IMMINENT
        assert result.confidence == "high"
        assert result.action == "Enter on break above 124.22 with volume surge"
        assert result.distance_pct == 1.5
        assert result.criteria["C10_breakout_status"].details["status"] == BreakoutStatus.IMMINENT
        assert result.criteria_passed == 9
        assert result.score_pct == 90

    def test_tighter_2a_distance_gives_tier_2b(self, imminent_bars, monkeypatch):
        """With a 2A distance below 1.5% the same setup lands on the watchlist."""
        tight = replace(SWING_THRESHOLDS, tier_2a_distance_pct=1.0)
        monkeypatch.setattr("screener.breakout.tiered.get_thresholds", lambda context: tight)

        result = classify_breakout(imminent_bars, "swing", symbol="TEST")

        assert result.tier == Tier.WATCHLIST
        assert result.confidence == "medium"
        assert result.criteria["C10_breakout_status"].details["status"] == BreakoutStatus.WATCHLIST

    def test_large_red_candle_in_base_caps_at_tier_2b(self, history_rows, bars_factory):
        """A base that only meets the relaxed structure stays off Tier 2A even within 2A distance."""
        # 3.07% red body on base day 14; the low stays inside the 0.2% lower-low tolerance
        history_rows[58] = {"open": 123.6, "high": 123.6, "low": 119.8, "close": 119.8, "volume": 550_000.0}
        imminent = {"open": 121.6, "high": 122.5, "low": 121.5, "close": 121.746, "volume": 1_000_000.0}

        result = classify_breakout(bars_factory(imminent, history=history_rows), "swing", symbol="TEST")

        assert result.consolidation_analysis["window_duration"] == 15
        assert result.criteria["C5_no_lower_lows_after_day3"].is_pass
        assert not result.criteria["C6_no_large_red_candles"].is_pass
        assert result.criteria["C9_volume_contraction"].is_pass
        assert result.distance_pct <= SWING_THRESHOLDS.tier_2a_distance_pct
        assert result.tier == Tier.WATCHLIST
        assert result.confidence == "medium"
        assert result.criteria_passed == 8

    def test_zero_prior_volume_fails_contraction(self, history_rows, bars_factory, confirmed_bar):
        """No volume before the base gives an infinite contraction ratio."""
        for row in history_rows[:45]:
            row["volume"] = 0.0

        result = classify_breakout(bars_factory(confirmed_bar, history=history_rows), "swing")

        c9 = result.criteria["C9_volume_contraction"]
        assert not c9.is_pass
        assert c9.actual == float("inf")
        assert c9.details["passed_relaxed"] is False
        assert c9.details["avg_vol_prior"] == 0
        assert result.criteria["C10_breakout_status"].details["status"] == BreakoutStatus.BREAKOUT_CONFIRMED
        assert result.tier is None

    def test_zero_prior_low_gives_infinite_move(self, history_rows, bars_factory, confirmed_bar):
        history_rows[30]["low"] = 0.0

        result = classify_breakout(bars_factory(confirmed_bar, history=history_rows), "swing")

        assert result.criteria["C7_prior_move_pct"].actual == float("inf")
        assert result.criteria["C7_prior_move_pct"].is_pass
        assert result.tier == Tier.READY

    def test_weak_volume_breakout_still_tier_1(self, bars_factory, confirmed_bar):
        confirmed_bar["volume"] = 1_200_000.0
        result = classify_breakout(bars_factory(confirmed_bar), "swing")

        assert result.criteria["C10_breakout_status"].details["status"] == BreakoutStatus.BREAKOUT_WEAK_VOLUME
        assert result.tier == Tier.READY
        assert "Breakout on below-average volume - watch for follow-through" in result.caveats

    def test_no_volume_breakout_is_partial(self, bars_factory, confirmed_bar):
        """A breakout without volume counts as half a criterion."""
        confirmed_bar["volume"] = 500_000.0
        result = classify_breakout(bars_factory(confirmed_bar), "swing")

        c10 = result.criteria["C10_breakout_status"]
        assert c10.details["status"] == BreakoutStatus.BREAKOUT_NO_VOLUME
        assert c10.is_partial
        assert result.tier != Tier.READY
        assert result.score_pct == 95
        assert "Breakout with very low volume - high risk of false breakout" in result.caveats

    def test_far_below_high_is_untiered(self, bars_factory):
        latest = {"open": 112.0, "high": 112.5, "low": 109.5, "close": 110.0, "volume": 1_000_000.0}
        result = classify_breakout(bars_factory(latest), "swing")

        assert result.criteria["C10_breakout_status"].details["status"] == BreakoutStatus.TOO_FAR
        assert result.tier is None
        assert result.tier_name == "No Pattern"
        assert result.price_info is None
        assert result.action is None

    def test_downtrend_is_untiered(self, downtrend_bars):
        result = classify_breakout(downtrend_bars, "swing")

        assert result.tier is None
        assert result.criteria["C8_prior_move_direction"].details["type"] == TrendContext.DOWNTREND
        assert "Price below 50 EMA - trend not fully confirmed" in result.caveats
        assert "50 EMA still falling - wait for trend confirmation" in result.caveats

    def test_insufficient_history(self, breakout_bars):
        result = classify_breakout(breakout_bars.iloc[:30], "swing")

        assert result.tier is None
        assert result.caveats == ["Insufficient data: 30 rows, need 60"]
        assert result.consolidation_analysis == {"best_window_found": False}
        assert not result.criteria["C1_consolidation_found"].is_pass
        assert len(result.criteria) == 10

    def test_positional_needs_more_history(self, breakout_bars):
        result = classify_breakout(breakout_bars, "positional")
        assert result.caveats == ["Insufficient data: 61 rows, need 120"]

    def test_unknown_context_raises(self, breakout_bars):
        with pytest.raises(ValueError):
            classify_breakout(breakout_bars, "intraday")

    def test_to_dict(self, breakout_bars):
        out = classify_breakout(breakout_bars, "swing", symbol="TEST").to_dict()

        assert out["symbol"] == "TEST"
        assert out["scan_date"] == breakout_bars.index[-1].date().isoformat()
        assert out["tier_classification"]["tier"] == "1"
        assert out["score"] == {"criteria_passed": 10, "criteria_total": 10, "score_pct": 100}
        c10 = out["criteria_results"]["C10_breakout_status"]
        assert c10["status"] == "BREAKOUT_CONFIRMED"
        assert c10["passed"] is True
        assert out["criteria_results"]["C2_range_pct"]["required_max"] == 10.0


class TestTieredScanOutput:
    """Bucketing results across a universe."""

    def test_buckets_and_sorting(self, breakout_bars, imminent_bars, bars_factory):
        closer = {"open": 121.8, "high": 122.8, "low": 121.7, "close": 122.5, "volume": 1_000_000.0}
        far = {"open": 112.0, "high": 112.5, "low": 109.5, "close": 110.0, "volume": 1_000_000.0}
        results = [
            classify_breakout(breakout_bars, symbol="AAA"),
            classify_breakout(imminent_bars, symbol="BBB"),
            classify_breakout(bars_factory(closer), symbol="CCC"),
            classify_breakout(bars_factory(far), symbol="DDD"),
        ]

        out = generate_tiered_scan_output(results)

        assert out["scan_summary"]["total_scanned"] == 4
        assert out["scan_summary"]["tier_1_count"] == 1
        assert out["scan_summary"]["tier_2a_count"] == 2
        assert out["scan_summary"]["tier_2b_count"] == 0
        assert out["scan_summary"]["market_note"] == "Selective opportunities - few confirmed breakouts"
        assert [r["symbol"] for r in out["tier_1_ready_to_trade"]] == ["AAA"]
        assert [r["symbol"] for r in out["tier_2a_imminent_breakout"]] == ["CCC", "BBB"]

    def test_empty(self):
        out = generate_tiered_scan_output([])
        assert out["scan_summary"]["total_scanned"] == 0
        assert out["scan_summary"]["market_note"] == "Correction phase - breakout setups require patience"
        assert out["tier_1_ready_to_trade"] == []

"""Tests for the diagnostic breakout scorer."""

from dataclasses import replace

import pytest

from screener.breakout import SWING_THRESHOLDS, diagnose_breakout, generate_scan_summary


class TestDiagnoseBreakout:
    """Criterion-by-criterion scoring."""

    def test_confirmed_breakout_matches(self, breakout_bars):
        result = diagnose_breakout(breakout_bars, "swing", symbol="TEST")

        assert result.match is True
        assert result.criteria_passed == 10
        assert result.score_pct == 100
        assert result.failure_reasons == []
        assert result.failed_criteria == []
        assert all(result.relaxed_analysis.values())

    def test_breakout_candle_details(self, breakout_bars):
        c10 = diagnose_breakout(breakout_bars, "swing").criteria["C10_breakout_candle_quality"]

        assert c10.is_pass
        assert c10.details["is_breakout"] is True
        assert c10.details["breakout_level"] == 124.22
        assert c10.details["gap_pct"] == pytest.approx(0.98, abs=0.01)
        assert c10.details["close_position_in_range"] == pytest.approx(0.89, abs=0.01)
        assert "issues" not in c10.details

    def test_prior_direction(self, breakout_bars):
        c8 = diagnose_breakout(breakout_bars, "swing").criteria["C8_prior_move_direction"]

        assert c8.is_pass
        assert c8.actual == "up"
        assert c8.details["start_close"] == 101.1
        assert c8.details["end_close"] == 122.0

    def test_no_breakout_lists_issues(self, imminent_bars):
        result = diagnose_breakout(imminent_bars, "swing", symbol="TEST")

        assert result.match is False
        assert result.criteria_passed == 9
        assert result.failed_criteria == ["C10_breakout_candle_quality"]
        assert len(result.failure_reasons) == 1
        assert result.failure_reasons[0].startswith("C10_breakout_candle_quality: actual 0.25")

        issues = result.criteria["C10_breakout_candle_quality"].details["issues"]
        assert issues[0] == "No breakout: close 121.75 <= level 124.22"
        assert "Weak close position: 25% < 60%" in issues
        assert any(issue.startswith("Low volume:") for issue in issues)

    def test_breakout_candle_has_no_relaxed_threshold(self, imminent_bars):
        result = diagnose_breakout(imminent_bars, "swing")
        assert result.relaxed_analysis["would_pass_with_relaxed_range"] is True
        assert result.relaxed_analysis["would_pass_if_all_relaxed"] is False

    def test_volume_contraction_near_miss(self, history_rows, confirmed_bar, bars_factory):
        """A 0.65 contraction fails strict 0.60 but passes relaxed 0.70."""
        for row in history_rows[-15:]:
            row["volume"] = 650_000.0
        result = diagnose_breakout(bars_factory(confirmed_bar, history=history_rows), "swing")

        c9 = result.criteria["C9_volume_contraction"]
        assert not c9.is_pass
        assert c9.actual == 0.65
        assert c9.note == "NEAR MISS - would pass with threshold of 0.7"
        assert result.relaxed_analysis["would_pass_with_relaxed_volume_contraction"] is True
        assert result.relaxed_analysis["would_pass_if_all_relaxed"] is True
        assert result.match is False
        assert result.criteria_passed == 9

    def test_large_gap_fails_candle_quality(self, bars_factory):
        gapped = {"open": 127.0, "high": 128.0, "low": 126.5, "close": 127.8, "volume": 2_000_000.0}
        c10 = diagnose_breakout(bars_factory(gapped), "swing").criteria["C10_breakout_candle_quality"]

        assert not c10.is_pass
        assert c10.details["is_breakout"] is True
        assert any(issue.startswith("Gap too large") for issue in c10.details["issues"])

    def test_failed_range_still_scores_later_criteria(self, breakout_bars, monkeypatch):
        """A failing early criterion does not stop the remaining criteria being measured."""
        tight = replace(SWING_THRESHOLDS, max_range_pct=2.0, max_range_pct_relaxed=2.5)
        monkeypatch.setattr("screener.breakout.diagnostic.get_thresholds", lambda context=None: tight)

        result = diagnose_breakout(breakout_bars, "swing", symbol="TEST")

        c2 = result.criteria["C2_range_pct"]
        assert not c2.is_pass
        assert c2.actual == 3.0
        assert result.failed_criteria == ["C2_range_pct"]
        assert result.criteria_passed == 9
        assert result.score_pct == 90
        assert result.criteria["C7_prior_move_pct"].actual > 15
        assert result.criteria["C9_volume_contraction"].actual == 0.55
        assert result.criteria["C10_breakout_candle_quality"].is_pass
        assert result.criteria["C10_breakout_candle_quality"].details["breakout_level"] == 124.22

    def test_zero_prior_volume_fails_contraction(self, history_rows, confirmed_bar, bars_factory):
        for row in history_rows[:45]:
            row["volume"] = 0.0

        result = diagnose_breakout(bars_factory(confirmed_bar, history=history_rows), "swing")

        c9 = result.criteria["C9_volume_contraction"]
        assert not c9.is_pass
        assert c9.actual == float("inf")
        assert result.relaxed_analysis["would_pass_with_relaxed_volume_contraction"] is False
        assert result.failed_criteria == ["C9_volume_contraction"]
        assert result.criteria_passed == 9

    def test_zero_prior_low_gives_infinite_move(self, history_rows, confirmed_bar, bars_factory):
        history_rows[30]["low"] = 0.0

        result = diagnose_breakout(bars_factory(confirmed_bar, history=history_rows), "swing")

        c7 = result.criteria["C7_prior_move_pct"]
        assert c7.is_pass
        assert c7.actual == float("inf")
        assert c7.details["prior_low"] == 0.0
        assert result.match is True

    def test_insufficient_history(self, breakout_bars):
        result = diagnose_breakout(breakout_bars.iloc[:30], "swing", symbol="THIN")

        assert result.match is False
        assert result.criteria_passed == 0
        assert result.failure_reasons == ["Insufficient data: 30 rows, need 60"]
        assert len(result.failed_criteria) == 10

    def test_to_dict(self, breakout_bars):
        out = diagnose_breakout(breakout_bars, "swing", symbol="TEST").to_dict()

        assert out["match"] is True
        assert out["score"]["score_pct"] == 100
        assert out["consolidation_analysis"]["window_duration"] == 15
        assert set(out["relaxed_thresholds_analysis"]) == {
            "would_pass_with_relaxed_range",
            "would_pass_with_relaxed_support_touches",
            "would_pass_with_relaxed_resistance_touches",
            "would_pass_with_relaxed_prior_move",
            "would_pass_with_relaxed_volume_contraction",
            "would_pass_if_all_relaxed",
        }


class TestScanSummary:
    """Aggregation across diagnostic results."""

    @pytest.fixture
    def results(self, breakout_bars, imminent_bars, history_rows, confirmed_bar, bars_factory):
        for row in history_rows[-15:]:
            row["volume"] = 650_000.0
        return [
            diagnose_breakout(breakout_bars, symbol="AAA"),
            diagnose_breakout(imminent_bars, symbol="BBB"),
            diagnose_breakout(bars_factory(confirmed_bar, history=history_rows), symbol="CCC"),
            diagnose_breakout(breakout_bars.iloc[:30], symbol="DDD"),
        ]

    def test_summary_counts(self, results):
        summary = generate_scan_summary(results)

        assert summary["total_stocks_scanned"] == 4
        assert summary["total_matches"] == 1
        assert summary["stocks_by_score"] == {
            "90_to_100": 3, "80_to_89": 0, "70_to_79": 0, "60_to_69": 0, "below_60": 1,
        }
        assert summary["criteria_failure_frequency"]["C10_breakout_candle_quality"] == 2
        assert summary["criteria_failure_frequency"]["C9_volume_contraction"] == 2
        assert summary["criteria_failure_frequency"]["C1_consolidation_found"] == 1

    def test_near_misses(self, results):
        near = generate_scan_summary(results)["top_near_misses"]

        assert [n["symbol"] for n in near] == ["BBB", "CCC", "DDD"]
        assert near[0] == {"symbol": "BBB", "score_pct": 90, "failed_criteria": ["C10"]}
        assert near[1]["failed_criteria"] == ["C9"]

    def test_near_miss_limit(self, results):
        assert len(generate_scan_summary(results, near_miss_limit=1)["top_near_misses"]) == 1

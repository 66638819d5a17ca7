"""Consolidation-breakout classifiers: tiered and diagnostic."""

from screener.breakout.diagnostic import diagnose_breakout, generate_scan_summary
from screener.breakout.results import (
    BreakoutStatus,
    CriterionResult,
    DiagnosticResult,
    Tier,
    TierResult,
    TrendContext,
)
from screener.breakout.thresholds import (
    POSITIONAL_THRESHOLDS,
    SWING_THRESHOLDS,
    ScanContext,
    ThresholdsConfig,
    get_thresholds,
)
from screener.breakout.tiered import classify_breakout, generate_tiered_scan_output
from screener.breakout.window import ConsolidationWindow, find_best_consolidation_window

__all__ = [
    "BreakoutStatus",
    "ConsolidationWindow",
    "CriterionResult",
    "DiagnosticResult",
    "POSITIONAL_THRESHOLDS",
    "SWING_THRESHOLDS",
    "ScanContext",
    "ThresholdsConfig",
    "Tier",
    "TierResult",
    "TrendContext",
    "classify_breakout",
    "diagnose_breakout",
    "find_best_consolidation_window",
    "generate_scan_summary",
    "generate_tiered_scan_output",
    "get_thresholds",
]

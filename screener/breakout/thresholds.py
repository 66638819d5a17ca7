"""Consolidation-breakout thresholds per scan context.

``swing`` looks for short bases (5-25 bars) after a 20-bar prior move;
``positional`` looks for longer bases (10-60 bars) after a 40-bar prior
move, with looser volume and range limits and a wider watchlist.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union


class ScanContext(str, Enum):
    """Which threshold set the breakout classifiers use."""

    SWING = "swing"
    POSITIONAL = "positional"


@dataclass(frozen=True)
class ThresholdsConfig:
    """Constants governing the consolidation-breakout criteria.

    Attributes:
        consolidation_min_days: Shortest window searched
        consolidation_max_days: Longest window searched
        max_range_pct: C2 ceiling on (high - low) / low * 100
        max_range_pct_relaxed: C2 near-miss ceiling
        min_support_touches: C3 minimum bars in the lower 30% of the range
        min_resistance_touches: C4 minimum bars in the upper 30% of the range
        min_touches_relaxed: C3/C4 near-miss minimum
        large_red_candle_threshold: C6 body/open fraction for a large red bar
        prior_move_window: Bars before the window measured for C7/C8/C9
        prior_move_window_extended: Longer lookback for C8 trend context
        min_prior_move_pct: C7 minimum prior high/low span
        min_prior_move_pct_relaxed: C7 relaxed minimum
        prior_move_direction_pct: C8 minimum close-to-close gain (diagnostic)
        max_volume_contraction_ratio: C9 ceiling on window/prior volume
        max_volume_contraction_ratio_relaxed: C9 relaxed ceiling
        min_close_position: Minimum close position in the breakout bar's range
        min_breakout_volume_ratio: Minimum breakout volume / 50-bar average
        breakout_buffer: Breakout level multiplier on the window high
        max_gap_pct: Largest opening gap accepted on a breakout bar (fraction)
        tier_2a_distance_pct: Tier 2A distance below the window high
        tier_2b_distance_pct: Tier 2B distance below the window high
        min_bars: History required before any classification
    """

    consolidation_min_days: int
    consolidation_max_days: int
    max_range_pct: float
    max_range_pct_relaxed: float
    min_support_touches: int
    min_resistance_touches: int
    min_touches_relaxed: int
    large_red_candle_threshold: float
    prior_move_window: int
    prior_move_window_extended: int
    min_prior_move_pct: float
    min_prior_move_pct_relaxed: float
    prior_move_direction_pct: float
    max_volume_contraction_ratio: float
    max_volume_contraction_ratio_relaxed: float
    min_close_position: float
    min_breakout_volume_ratio: float
    breakout_buffer: float
    max_gap_pct: float
    tier_2a_distance_pct: float
    tier_2b_distance_pct: float
    min_bars: int


SWING_THRESHOLDS = ThresholdsConfig(
    consolidation_min_days=5,
    consolidation_max_days=25,
    max_range_pct=10.0,
    max_range_pct_relaxed=15.0,
    min_support_touches=2,
    min_resistance_touches=2,
    min_touches_relaxed=1,
    large_red_candle_threshold=0.03,
    prior_move_window=20,
    prior_move_window_extended=40,
    min_prior_move_pct=15.0,
    min_prior_move_pct_relaxed=10.0,
    prior_move_direction_pct=10.0,
    max_volume_contraction_ratio=0.60,
    max_volume_contraction_ratio_relaxed=0.70,
    min_close_position=0.60,
    min_breakout_volume_ratio=1.5,
    breakout_buffer=1.005,
    max_gap_pct=0.03,
    tier_2a_distance_pct=2.0,
    tier_2b_distance_pct=5.0,
    min_bars=60,
)

POSITIONAL_THRESHOLDS = ThresholdsConfig(
    consolidation_min_days=10,
    consolidation_max_days=60,
    max_range_pct=12.0,
    max_range_pct_relaxed=18.0,
    min_support_touches=2,
    min_resistance_touches=2,
    min_touches_relaxed=1,
    large_red_candle_threshold=0.035,
    prior_move_window=40,
    prior_move_window_extended=60,
    min_prior_move_pct=12.0,
    min_prior_move_pct_relaxed=8.0,
    prior_move_direction_pct=10.0,
    max_volume_contraction_ratio=0.65,
    max_volume_contraction_ratio_relaxed=0.75,
    min_close_position=0.55,
    min_breakout_volume_ratio=1.3,
    breakout_buffer=1.005,
    max_gap_pct=0.03,
    tier_2a_distance_pct=2.5,
    tier_2b_distance_pct=8.0,
    min_bars=120,
)

_THRESHOLDS = {
    ScanContext.SWING: SWING_THRESHOLDS,
    ScanContext.POSITIONAL: POSITIONAL_THRESHOLDS,
}


def get_thresholds(context: Union[ScanContext, str] = ScanContext.SWING) -> ThresholdsConfig:
    """Get the threshold set for a scan context.

    Raises:
        ValueError: If ``context`` is not a known scan context
    """
    return _THRESHOLDS[ScanContext(context)]

"""Condition, group and query evaluation.

Takes a screening query plus OHLCV bars for one instrument (keyed by
timeframe), evaluates every condition and group, and returns a match
result with per-group and per-condition detail. Evaluation is a pure
function of its inputs and fails closed instead of raising.
"""

import logging
from typing import Mapping, Optional

import numpy as np
import pandas as pd

from screener.domain import resolve_index
from screener.indicators import get_default_registry
from screener.indicators.base import IndicatorSource, Params
from screener.indicators.registry import IndicatorRegistry
from screener.query.models import (
    DEFAULT_TIMEFRAME,
    ConditionEvalResult,
    ConditionState,
    EvalResult,
    GroupEvalResult,
    GroupState,
    IndicatorColumn,
    Logic,
    Operator,
    QueryState,
    ScalarOperand,
    SeriesOperand,
    TimeModifierMode,
    UNARY_OPERATORS,
)
from screener.query.operators import evaluate_operator

logger = logging.getLogger(__name__)

DEFAULT_TREND_BARS = 3
DEFAULT_WINDOW_BARS = 5


def _compute(
    registry: IndicatorSource,
    indicator_id: str,
    params: Params,
    bars: pd.DataFrame,
) -> Optional[np.ndarray]:
    """Compute an indicator series, or None if the parameters are unusable."""
    try:
        return registry.compute(indicator_id, params, bars)
    except (ValueError, TypeError, IndexError, ZeroDivisionError) as e:
        logger.debug("Indicator %s%s could not be computed: %s", indicator_id, params, e)
        return None


def _evaluate_trend(op: Operator, left: np.ndarray, last_idx: int, bars: int) -> bool:
    """Strict monotonicity over ``bars`` consecutive pairs ending at ``last_idx``."""
    for b in range(bars):
        idx = last_idx - b
        if idx <= 0:
            return False
        curr = left[idx]
        prev = left[idx - 1]
        if np.isnan(curr) or np.isnan(prev):
            return False
        if op == Operator.IS_INCREASING and curr <= prev:
            return False
        if op == Operator.IS_DECREASING and curr >= prev:
            return False
    return True


def evaluate_condition(
    condition: ConditionState,
    bars: pd.DataFrame,
    registry: Optional[IndicatorSource] = None,
    as_of: Optional[int] = None,
) -> bool:
    """Evaluate one condition against a bar series.

    ``is_increasing``/``is_decreasing`` always walk back over consecutive
    bar pairs (default 3) whatever the time-modifier settings say. Other
    operators are checked once at the anchor bar, or over a window
    (default 5 bars) when a time modifier is set.

    Args:
        condition: Condition to evaluate
        bars: OHLCV DataFrame, oldest first
        registry: Indicator source (defaults to the built-in registry)
        as_of: Anchor bar index (None = last bar, negative counts from end)

    Returns:
        True if the condition holds
    """
    if not condition.is_complete:
        return False

    registry = registry or get_default_registry()
    if not registry.exists(condition.left_indicator_id):
        logger.debug("Unknown left indicator: %s", condition.left_indicator_id)
        return False

    last_idx = resolve_index(len(bars), as_of)
    if last_idx is None:
        return False

    left = _compute(registry, condition.left_indicator_id, condition.left_params, bars)
    if left is None:
        return False

    op = condition.operator
    right_series = None
    right_scalar = None
    right_scalar2 = None
    multiplier = 1.0

    if op in UNARY_OPERATORS:
        pass
    elif isinstance(condition.right, SeriesOperand):
        right_series = _compute(registry, condition.right.indicator_id, condition.right.params, bars)
        if right_series is None:
            return False
        multiplier = condition.right.multiplier
    elif isinstance(condition.right, ScalarOperand):
        right_scalar = condition.right.value
        right_scalar2 = condition.right.value2

    if op in (Operator.IS_INCREASING, Operator.IS_DECREASING):
        return _evaluate_trend(op, left, last_idx, condition.time_modifier_bars or DEFAULT_TREND_BARS)

    def check(idx: int) -> bool:
        return evaluate_operator(op, left, right_series, right_scalar, right_scalar2, multiplier, idx)

    if not condition.has_time_modifier:
        return check(last_idx)

    window = condition.time_modifier_bars or DEFAULT_WINDOW_BARS
    mode = condition.time_modifier_mode

    if mode == TimeModifierMode.EXACTLY_AGO:
        idx = last_idx - window
        if idx < 0:
            return False
        return check(idx)

    if mode == TimeModifierMode.ALL_OF_LAST:
        for b in range(window):
            idx = last_idx - b
            if idx < 0 or not check(idx):
                return False
        return True

    # within_last: any bar in the window, most recent first
    for b in range(window):
        idx = last_idx - b
        if idx < 0:
            break
        if check(idx):
            return True
    return False


def evaluate_group(
    group: GroupState,
    bars: pd.DataFrame,
    registry: Optional[IndicatorSource] = None,
    as_of: Optional[int] = None,
) -> GroupEvalResult:
    """Evaluate a group's conditions and combine them with its logic.

    Only complete conditions take part in the AND/OR; a group with no
    complete conditions never matches. Detail is reported for every
    condition.
    """
    registry = registry or get_default_registry()
    condition_results = [
        ConditionEvalResult(
            condition_id=c.id,
            match=evaluate_condition(c, bars, registry=registry, as_of=as_of),
        )
        for c in group.conditions
    ]

    valid = [r.match for r, c in zip(condition_results, group.conditions) if c.is_complete]
    if not valid:
        match = False
    elif group.logic == Logic.AND:
        match = all(valid)
    else:
        match = any(valid)

    return GroupEvalResult(group_id=group.id, match=match, condition_results=condition_results)


def evaluate_query(
    query: QueryState,
    bars_by_timeframe: Mapping[str, pd.DataFrame],
    registry: Optional[IndicatorSource] = None,
    as_of: Optional[int] = None,
) -> EvalResult:
    """Evaluate a full query against bars keyed by timeframe.

    Each group is evaluated on its own timeframe's bars; a group whose
    bars are missing or empty does not match but the remaining groups
    are still evaluated. Group results are folded strictly left to right
    with each group's connector; the first group's connector is ignored.

    Args:
        query: Query to evaluate
        bars_by_timeframe: Timeframe label -> OHLCV DataFrame
        registry: Indicator source (defaults to the built-in registry)
        as_of: Anchor bar index applied to each group's series

    Returns:
        EvalResult with overall match and per-group detail
    """
    registry = registry or get_default_registry()
    details: list[GroupEvalResult] = []
    matched_groups = 0

    for group in query.groups:
        bars = bars_by_timeframe.get(group.timeframe or DEFAULT_TIMEFRAME)
        if bars is None or len(bars) == 0:
            logger.debug("No bars for timeframe %s in group %s", group.timeframe, group.id)
            details.append(GroupEvalResult(group_id=group.id, match=False))
            continue
        result = evaluate_group(group, bars, registry=registry, as_of=as_of)
        if result.match:
            matched_groups += 1
        details.append(result)

    overall = False
    if details:
        overall = details[0].match
        for group, result in zip(query.groups[1:], details[1:]):
            if group.connector == Logic.OR:
                overall = overall or result.match
            else:
                overall = overall and result.match

    return EvalResult(match=overall, matched_groups=matched_groups, details=details)


def required_timeframes(query: QueryState) -> list[str]:
    """Unique timeframes referenced by the query's groups, in first-use order."""
    seen: dict[str, None] = {}
    for group in query.groups:
        seen.setdefault(group.timeframe or DEFAULT_TIMEFRAME, None)
    return list(seen)


def extract_indicator_columns(
    query: QueryState,
    registry: Optional[IndicatorRegistry] = None,
) -> list[IndicatorColumn]:
    """Unique numeric indicators referenced by the query's operands.

    Pattern indicators and unknown ids are skipped. Both left operands
    and indicator right operands are collected, in query order.
    """
    registry = registry or get_default_registry()
    seen: set[str] = set()
    columns: list[IndicatorColumn] = []

    def add(indicator_id: str, params: Params) -> None:
        if not indicator_id or not registry.exists(indicator_id):
            return
        if registry.get(indicator_id).output_type != "numeric":
            return
        key = registry.indicator_key(indicator_id, params)
        if key in seen:
            return
        seen.add(key)
        columns.append(IndicatorColumn(
            key=key,
            label=registry.indicator_label(indicator_id, params),
            indicator_id=indicator_id,
            params=dict(params),
        ))

    for group in query.groups:
        for cond in group.conditions:
            add(cond.left_indicator_id, cond.left_params)
            if isinstance(cond.right, SeriesOperand):
                add(cond.right.indicator_id, cond.right.params)

    return columns

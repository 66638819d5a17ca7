"""Structural validator for screening queries.

Reports problems a query author would want to fix before running a
scan. Validation is advisory: the evaluator still accepts any query and
fails closed on the same problems.
"""

import logging
from typing import Any, Optional, Union

from screener.indicators import get_default_registry
from screener.indicators.base import IndicatorSource
from screener.query.models import (
    COMPARISON_OPERATORS,
    ConditionState,
    GroupState,
    Logic,
    Operator,
    QueryState,
    ScalarOperand,
    SeriesOperand,
    TimeModifierMode,
    UNARY_OPERATORS,
)

logger = logging.getLogger(__name__)


def validate_query(
    query: Union[QueryState, dict[str, Any]],
    registry: Optional[IndicatorSource] = None,
) -> list[str]:
    """Validate a query.

    Args:
        query: QueryState or the builder's raw JSON dict
        registry: Indicator source used to check ids

    Returns:
        List of error strings. Empty list means valid.
    """
    if isinstance(query, dict):
        try:
            query = QueryState.from_dict(query)
        except ValueError as e:
            return [str(e)]

    registry = registry or get_default_registry()
    errors: list[str] = []
    if not query.groups:
        errors.append("query: has no groups")

    for i, group in enumerate(query.groups):
        errors.extend(_validate_group(group, f"groups[{i}]", registry, is_first=i == 0))

    if errors:
        logger.debug("Query '%s' has %d validation errors", query.name, len(errors))
    return errors


def _validate_group(
    group: GroupState,
    path: str,
    registry: IndicatorSource,
    is_first: bool,
) -> list[str]:
    """Validate a group and its conditions."""
    errors: list[str] = []

    if not isinstance(group.logic, Logic):
        errors.append(f"{path}: unknown logic '{group.logic}'")
    if not is_first and not isinstance(group.connector, Logic):
        errors.append(f"{path}: unknown connector '{group.connector}'")

    if not any(c.is_complete for c in group.conditions):
        errors.append(f"{path}: has no complete conditions and can never match")

    for j, cond in enumerate(group.conditions):
        if cond.is_complete:
            errors.extend(_validate_condition(cond, f"{path}.conditions[{j}]", registry))

    return errors


def _validate_condition(cond: ConditionState, path: str, registry: IndicatorSource) -> list[str]:
    """Validate a single complete condition."""
    errors: list[str] = []
    op = cond.operator

    if not isinstance(op, Operator):
        return [f"{path}: unknown operator '{op}'"]

    if not registry.exists(cond.left_indicator_id):
        errors.append(f"{path}: unknown indicator '{cond.left_indicator_id}'")

    if op not in UNARY_OPERATORS:
        if isinstance(cond.right, SeriesOperand):
            if op == Operator.IS_BETWEEN:
                errors.append(f"{path}: 'is_between' requires value bounds, not an indicator")
            elif not registry.exists(cond.right.indicator_id):
                errors.append(f"{path}: unknown indicator '{cond.right.indicator_id}'")
        else:
            right = cond.right or ScalarOperand()
            if op == Operator.IS_BETWEEN:
                if right.value is None or right.value2 is None:
                    errors.append(f"{path}: 'is_between' requires both bounds")
                elif right.value > right.value2:
                    errors.append(
                        f"{path}: 'is_between' bounds must be ascending, "
                        f"got {right.value} > {right.value2}"
                    )
            elif op in COMPARISON_OPERATORS and right.value is None:
                errors.append(f"{path}: '{op.value}' requires a right operand")

    uses_bars = cond.has_time_modifier or op in (Operator.IS_INCREASING, Operator.IS_DECREASING)
    if uses_bars and cond.time_modifier_bars is not None and cond.time_modifier_bars < 0:
        errors.append(f"{path}: time modifier bars must not be negative, got {cond.time_modifier_bars}")

    if cond.has_time_modifier and not isinstance(cond.time_modifier_mode, TimeModifierMode):
        errors.append(f"{path}: unknown time modifier mode '{cond.time_modifier_mode}'")

    return errors

"""Operator evaluation at a single bar index.

Every operator fails closed: an undefined value, a missing prior bar or
an unrecognised operator yields False. Nothing in this module raises.
"""

import logging
from typing import Optional, Union

import numpy as np

from screener.query.models import Operator

logger = logging.getLogger(__name__)


def _at(values: np.ndarray, idx: int) -> float:
    """Value at ``idx``, or NaN when the index is outside the series."""
    if idx < 0 or idx >= len(values):
        return np.nan
    return float(values[idx])


def _defined(*values: float) -> bool:
    """Return False if any value is NaN."""
    return not any(np.isnan(v) for v in values)


def evaluate_operator(
    op: Union[Operator, str],
    left: np.ndarray,
    right_series: Optional[np.ndarray],
    right_scalar: Optional[float],
    right_scalar2: Optional[float],
    multiplier: float,
    index: int,
) -> bool:
    """Decide one predicate between a left series and a right operand.

    The right value at ``index`` is ``right_series[index] * multiplier``
    when a series is given, else ``right_scalar``, else 0.

    Args:
        op: Operator id
        left: Left numeric series
        right_series: Right numeric series, if the operand is an indicator
        right_scalar: Right literal (lower bound for ``is_between``)
        right_scalar2: Upper bound for ``is_between``
        multiplier: Scale applied to ``right_series``
        index: Bar index to evaluate at

    Returns:
        True if the predicate holds at ``index``
    """
    value = _at(left, index)
    if np.isnan(value):
        return False

    if right_series is not None:
        rv = _at(right_series, index)
        if np.isnan(rv):
            return False
        right = rv * multiplier
    elif right_scalar is not None:
        right = right_scalar
    else:
        right = 0.0

    if op == Operator.GREATER_THAN:
        return value > right
    if op == Operator.LESS_THAN:
        return value < right
    if op == Operator.GREATER_EQUAL:
        return value >= right
    if op == Operator.LESS_EQUAL:
        return value <= right

    if op == Operator.IS_BETWEEN:
        # Bounds are applied as given; a descending pair never matches
        if right_scalar is None or right_scalar2 is None:
            return False
        return right_scalar <= value <= right_scalar2

    if op in (Operator.CROSSED_ABOVE, Operator.CROSSED_BELOW):
        if index == 0:
            return False
        prev_value = _at(left, index - 1)
        if right_series is not None:
            prev_right = _at(right_series, index - 1) * multiplier
        else:
            prev_right = right
        if not _defined(prev_value, prev_right):
            return False
        if op == Operator.CROSSED_ABOVE:
            return prev_value <= prev_right and value > right
        return prev_value >= prev_right and value < right

    if op == Operator.DETECTED:
        return value == 1

    if op in (Operator.IS_INCREASING, Operator.IS_DECREASING):
        if index == 0:
            return False
        prev_value = _at(left, index - 1)
        if np.isnan(prev_value):
            return False
        if op == Operator.IS_INCREASING:
            return value > prev_value
        return value < prev_value

    logger.debug("Unknown operator '%s' evaluated as no match", op)
    return False

"""Tests for single-bar operator evaluation."""

import numpy as np
import pytest

from screener.query import Operator, evaluate_operator

NAN = np.nan


def op_at(op, left, index, right_series=None, value=None, value2=None, multiplier=1.0):
    return evaluate_operator(
        op, np.asarray(left, dtype=float),
        None if right_series is None else np.asarray(right_series, dtype=float),
        value, value2, multiplier, index,
    )


class TestComparisons:
    """greater/less comparisons against scalars and series."""

    def test_greater_than_scalar(self):
        assert op_at(Operator.GREATER_THAN, [105.0], 0, value=100.0)
        assert not op_at(Operator.GREATER_THAN, [100.0], 0, value=100.0)

    def test_less_equal_scalar(self):
        assert op_at(Operator.LESS_EQUAL, [100.0], 0, value=100.0)
        assert not op_at(Operator.LESS_THAN, [100.0], 0, value=100.0)

    def test_greater_equal_series_with_multiplier(self):
        """The right series is scaled by the multiplier."""
        assert op_at(Operator.GREATER_EQUAL, [150.0], 0, right_series=[100.0], multiplier=1.5)
        assert not op_at(Operator.GREATER_THAN, [150.0], 0, right_series=[100.0], multiplier=1.5)

    def test_missing_right_operand_compares_to_zero(self):
        assert op_at(Operator.GREATER_THAN, [0.5], 0)
        assert not op_at(Operator.LESS_THAN, [0.5], 0)

    def test_accepts_raw_operator_strings(self):
        assert op_at("greater_than", [2.0], 0, value=1.0)

    @pytest.mark.parametrize("op", list(Operator))
    def test_nan_left_is_false(self, op):
        """An undefined left value fails every operator."""
        assert not op_at(op, [1.0, NAN], 1, value=0.0, value2=10.0)

    def test_nan_right_series_is_false(self):
        assert not op_at(Operator.GREATER_THAN, [5.0], 0, right_series=[NAN])

    def test_index_out_of_range_is_false(self):
        assert not op_at(Operator.GREATER_THAN, [5.0], 3, value=1.0)

    def test_unknown_operator_is_false(self):
        assert not op_at("above_ish", [5.0], 0, value=1.0)


class TestIsBetween:
    """is_between uses the bounds as supplied."""

    def test_inclusive_bounds(self):
        assert op_at(Operator.IS_BETWEEN, [30.0], 0, value=30.0, value2=70.0)
        assert op_at(Operator.IS_BETWEEN, [70.0], 0, value=30.0, value2=70.0)
        assert not op_at(Operator.IS_BETWEEN, [70.1], 0, value=30.0, value2=70.0)

    def test_descending_bounds_never_match(self):
        """Bounds are not reordered."""
        assert not op_at(Operator.IS_BETWEEN, [50.0], 0, value=70.0, value2=30.0)

    def test_missing_bound_is_false(self):
        assert not op_at(Operator.IS_BETWEEN, [50.0], 0, value=30.0)
        assert not op_at(Operator.IS_BETWEEN, [50.0], 0, value2=70.0)


class TestCrosses:
    """crossed_above / crossed_below."""

    def test_crossed_above_series(self):
        """Prior bar at or below, current bar above."""
        ema9 = [9.8, 10.2]
        ema21 = [10.0, 10.0]
        assert op_at(Operator.CROSSED_ABOVE, ema9, 1, right_series=ema21)

    def test_crossed_above_requires_prior_below(self):
        assert not op_at(Operator.CROSSED_ABOVE, [10.1, 10.2], 1, right_series=[10.0, 10.0])

    def test_crossed_above_from_equal(self):
        assert op_at(Operator.CROSSED_ABOVE, [10.0, 10.2], 1, right_series=[10.0, 10.0])

    def test_crossed_below_scalar(self):
        """A scalar right operand is used for both bars."""
        assert op_at(Operator.CROSSED_BELOW, [31.0, 29.0], 1, value=30.0)
        assert not op_at(Operator.CROSSED_BELOW, [29.5, 29.0], 1, value=30.0)

    def test_cross_at_index_zero_is_false(self):
        assert not op_at(Operator.CROSSED_ABOVE, [11.0], 0, value=10.0)

    def test_cross_with_undefined_prior_is_false(self):
        assert not op_at(Operator.CROSSED_ABOVE, [NAN, 11.0], 1, value=10.0)
        assert not op_at(Operator.CROSSED_ABOVE, [9.0, 11.0], 1, right_series=[NAN, 10.0])


class TestUnaryOperators:
    """detected / is_increasing / is_decreasing at one bar."""

    def test_detected(self):
        assert op_at(Operator.DETECTED, [0.0, 1.0], 1)
        assert not op_at(Operator.DETECTED, [1.0, 0.0], 1)

    def test_increasing_decreasing(self):
        assert op_at(Operator.IS_INCREASING, [1.0, 2.0], 1)
        assert not op_at(Operator.IS_INCREASING, [2.0, 2.0], 1)
        assert op_at(Operator.IS_DECREASING, [2.0, 1.0], 1)
        assert not op_at(Operator.IS_DECREASING, [1.0, 2.0], 0)

"""Declarative screening queries: models, evaluation and validation."""

from screener.query.evaluator import (
    evaluate_condition,
    evaluate_group,
    evaluate_query,
    extract_indicator_columns,
    required_timeframes,
)
from screener.query.models import (
    ConditionEvalResult,
    ConditionState,
    EvalResult,
    GroupEvalResult,
    GroupState,
    IndicatorColumn,
    Logic,
    Operator,
    QueryState,
    RightType,
    ScalarOperand,
    SeriesOperand,
    TimeModifierMode,
)
from screener.query.operators import evaluate_operator
from screener.query.validator import validate_query

__all__ = [
    "ConditionEvalResult",
    "ConditionState",
    "EvalResult",
    "GroupEvalResult",
    "GroupState",
    "IndicatorColumn",
    "Logic",
    "Operator",
    "QueryState",
    "RightType",
    "ScalarOperand",
    "SeriesOperand",
    "TimeModifierMode",
    "evaluate_condition",
    "evaluate_group",
    "evaluate_operator",
    "evaluate_query",
    "extract_indicator_columns",
    "required_timeframes",
    "validate_query",
]

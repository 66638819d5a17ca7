"""Query domain objects.

Defines the condition/group/query contracts produced by the query
builder and the result objects returned by evaluation. ``from_dict``
parsers accept the builder's camelCase JSON.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_TIMEFRAME = "1d"


class Operator(str, Enum):
    """Predicate applied between a left series and a right operand."""

    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    IS_BETWEEN = "is_between"
    CROSSED_ABOVE = "crossed_above"
    CROSSED_BELOW = "crossed_below"
    DETECTED = "detected"
    IS_INCREASING = "is_increasing"
    IS_DECREASING = "is_decreasing"


# Operators that take no right operand
UNARY_OPERATORS = frozenset({Operator.DETECTED, Operator.IS_INCREASING, Operator.IS_DECREASING})

# Operators that compare against a single right value
COMPARISON_OPERATORS = frozenset({
    Operator.GREATER_THAN, Operator.LESS_THAN,
    Operator.GREATER_EQUAL, Operator.LESS_EQUAL,
    Operator.CROSSED_ABOVE, Operator.CROSSED_BELOW,
})


class TimeModifierMode(str, Enum):
    """How a condition is evaluated over a window of recent bars."""

    WITHIN_LAST = "within_last"
    EXACTLY_AGO = "exactly_ago"
    ALL_OF_LAST = "all_of_last"


class Logic(str, Enum):
    """Boolean combinator for conditions within a group and between groups."""

    AND = "AND"
    OR = "OR"


class RightType(str, Enum):
    """Kind of right operand selected in the query builder."""

    VALUE = "value"
    INDICATOR = "indicator"


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Convert a raw string to ``enum_cls`` when it names a member.

    Unrecognised values are kept as plain strings so that evaluation can
    fail closed on them and the validator can report them.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


def parse_number(value: Any) -> Optional[float]:
    """Parse a builder-supplied literal; blank or unparseable text yields None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def parse_flag(value: Any) -> bool:
    """Parse a builder-supplied boolean; text such as "false" or "0" is False."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class ScalarOperand:
    """Right operand given as literal value(s).

    Attributes:
        value: Comparison value, or lower bound for ``is_between``
        value2: Upper bound for ``is_between``
    """

    value: Optional[float] = None
    value2: Optional[float] = None


@dataclass(frozen=True)
class SeriesOperand:
    """Right operand given as another indicator series.

    Attributes:
        indicator_id: Registry key
        params: Indicator parameters
        multiplier: Scale applied to the right series (0 or missing means 1)
    """

    indicator_id: str
    params: dict[str, Any] = field(default_factory=dict)
    multiplier: float = 1.0

    def __post_init__(self):
        if not self.multiplier:
            object.__setattr__(self, "multiplier", 1.0)


RightOperand = Union[ScalarOperand, SeriesOperand]


@dataclass
class ConditionState:
    """A single predicate within a group.

    A condition with an empty left indicator id or an empty operator is
    incomplete: it is evaluated as False and never counts towards a
    group's result.

    Attributes:
        id: Condition identifier
        left_indicator_id: Registry key for the left series
        left_params: Left indicator parameters
        operator: Operator, or the raw string if not recognised
        right: Right operand (None for unary operators)
        has_time_modifier: Evaluate over a window of bars instead of one bar
        time_modifier_mode: Window policy when ``has_time_modifier`` is set
        time_modifier_bars: Window size (None or 0 uses the operator default)
    """

    id: str = ""
    left_indicator_id: str = ""
    left_params: dict[str, Any] = field(default_factory=dict)
    operator: Union[Operator, str] = ""
    right: Optional[RightOperand] = None
    has_time_modifier: bool = False
    time_modifier_mode: Union[TimeModifierMode, str] = TimeModifierMode.WITHIN_LAST
    time_modifier_bars: Optional[int] = None

    def __post_init__(self):
        if self.operator:
            self.operator = _coerce_enum(Operator, self.operator)
        self.time_modifier_mode = _coerce_enum(TimeModifierMode, self.time_modifier_mode)

    @property
    def is_complete(self) -> bool:
        """True when both the left indicator and the operator are set."""
        return bool(self.left_indicator_id) and bool(self.operator)

    @classmethod
    def from_dict(cls, data: dict) -> "ConditionState":
        """Create from the query builder's camelCase JSON."""
        right_type = data.get("rightType", RightType.VALUE.value)
        right_indicator_id = data.get("rightIndicatorId") or ""
        right: RightOperand
        if right_type == RightType.INDICATOR.value and right_indicator_id:
            right = SeriesOperand(
                indicator_id=right_indicator_id,
                params=dict(data.get("rightParams") or {}),
                multiplier=parse_number(data.get("rightMultiplier")) or 1.0,
            )
        else:
            right = ScalarOperand(
                value=parse_number(data.get("rightValue")),
                value2=parse_number(data.get("rightValue2")),
            )

        bars = parse_number(data.get("timeModifierBars"))
        return cls(
            id=str(data.get("id", "")),
            left_indicator_id=data.get("leftIndicatorId") or "",
            left_params=dict(data.get("leftParams") or {}),
            operator=data.get("operator") or "",
            right=right,
            has_time_modifier=parse_flag(data.get("hasTimeModifier", False)),
            time_modifier_mode=data.get("timeModifierMode") or TimeModifierMode.WITHIN_LAST,
            time_modifier_bars=int(bars) if bars is not None else None,
        )


@dataclass
class GroupState:
    """Conditions sharing one timeframe, combined with AND/OR.

    Attributes:
        id: Group identifier
        logic: Combinator for this group's conditions
        timeframe: Bar series label (e.g., '1d', '15m')
        connector: How this group folds into the previous groups' result
        conditions: Ordered conditions
    """

    id: str = ""
    logic: Union[Logic, str] = Logic.AND
    timeframe: str = DEFAULT_TIMEFRAME
    connector: Union[Logic, str] = Logic.AND
    conditions: list[ConditionState] = field(default_factory=list)

    def __post_init__(self):
        self.logic = _coerce_enum(Logic, self.logic)
        self.connector = _coerce_enum(Logic, self.connector)
        if not self.timeframe:
            self.timeframe = DEFAULT_TIMEFRAME

    @classmethod
    def from_dict(cls, data: dict) -> "GroupState":
        """Create from the query builder's JSON."""
        conditions = data.get("conditions") or []
        if not isinstance(conditions, list):
            raise ValueError(
                f"Group '{data.get('id', '')}': conditions must be a list, "
                f"got {type(conditions).__name__}"
            )
        for i, cond in enumerate(conditions):
            if not isinstance(cond, dict):
                raise ValueError(
                    f"Group '{data.get('id', '')}': conditions[{i}] must be a dict, "
                    f"got {type(cond).__name__}"
                )
        return cls(
            id=str(data.get("id", "")),
            logic=data.get("logic") or Logic.AND,
            timeframe=data.get("timeframe") or DEFAULT_TIMEFRAME,
            connector=data.get("connector") or Logic.AND,
            conditions=[ConditionState.from_dict(c) for c in conditions],
        )


@dataclass
class QueryState:
    """A named screening query made of ordered groups."""

    name: str = ""
    universe: str = ""
    groups: list[GroupState] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "QueryState":
        """Create from the query builder's JSON.

        Raises:
            ValueError: If ``groups`` is not a list
        """
        groups = data.get("groups") or []
        if not isinstance(groups, list):
            raise ValueError(f"Query groups must be a list, got {type(groups).__name__}")
        for i, group in enumerate(groups):
            if not isinstance(group, dict):
                raise ValueError(f"groups[{i}] must be a dict, got {type(group).__name__}")
        logger.debug("Parsing query '%s' with %d groups", data.get("name", ""), len(groups))
        return cls(
            name=data.get("name", ""),
            universe=data.get("universe", ""),
            groups=[GroupState.from_dict(g) for g in groups],
        )


@dataclass(frozen=True)
class ConditionEvalResult:
    """Outcome of one condition."""

    condition_id: str
    match: bool

    def to_dict(self) -> dict:
        return {"condition_id": self.condition_id, "match": self.match}


@dataclass(frozen=True)
class GroupEvalResult:
    """Outcome of one group with per-condition detail."""

    group_id: str
    match: bool
    condition_results: list[ConditionEvalResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "group_id": self.group_id,
            "match": self.match,
            "condition_results": [r.to_dict() for r in self.condition_results],
        }


@dataclass(frozen=True)
class EvalResult:
    """Outcome of a whole query.

    Attributes:
        match: Overall match after folding group results
        matched_groups: Number of groups that matched on their own
        details: Per-group results in query order
    """

    match: bool
    matched_groups: int
    details: list[GroupEvalResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "match": self.match,
            "matched_groups": self.matched_groups,
            "details": [d.to_dict() for d in self.details],
        }


@dataclass(frozen=True)
class IndicatorColumn:
    """A numeric indicator referenced by a query, reported in scan rows."""

    key: str
    label: str
    indicator_id: str
    params: dict[str, Any] = field(default_factory=dict)

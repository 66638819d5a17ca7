"""Shared fixtures for query evaluation tests."""

import numpy as np
import pandas as pd
import pytest

from screener.query import ConditionState, GroupState, QueryState, ScalarOperand, SeriesOperand


class StubRegistry:
    """Indicator source serving fixed series by id."""

    def __init__(self, series: dict[str, list[float]]):
        self.series = {k: np.asarray(v, dtype=float) for k, v in series.items()}
        self.calls: list[tuple[str, dict]] = []

    def exists(self, indicator_id: str) -> bool:
        return indicator_id in self.series

    def compute(self, indicator_id, params, bars):
        self.calls.append((indicator_id, dict(params or {})))
        values = self.series[indicator_id]
        assert len(values) == len(bars)
        return values


@pytest.fixture
def bars_factory():
    """Build bars with the given closes (other columns derived)."""

    def _create(closes) -> pd.DataFrame:
        closes = np.asarray(closes, dtype=float)
        return pd.DataFrame(
            {
                "open": closes,
                "high": closes + 1,
                "low": closes - 1,
                "close": closes,
                "volume": np.full(len(closes), 1000.0),
            },
            index=pd.date_range("2024-01-01", periods=len(closes), freq="B"),
        )

    return _create


@pytest.fixture
def stub_registry():
    """Factory for StubRegistry instances."""
    return StubRegistry


@pytest.fixture
def condition():
    """Factory for conditions with scalar or indicator right operands."""

    def _create(
        left: str = "close",
        operator: str = "greater_than",
        value: float | None = None,
        value2: float | None = None,
        right_indicator: str | None = None,
        multiplier: float = 1.0,
        cid: str = "c1",
        **kwargs,
    ) -> ConditionState:
        if right_indicator:
            right = SeriesOperand(indicator_id=right_indicator, multiplier=multiplier)
        else:
            right = ScalarOperand(value=value, value2=value2)
        return ConditionState(
            id=cid,
            left_indicator_id=left,
            operator=operator,
            right=right,
            **kwargs,
        )

    return _create


@pytest.fixture
def query_of():
    """Build a query from (logic, connector, timeframe, conditions) tuples."""

    def _create(*groups) -> QueryState:
        return QueryState(
            name="test",
            groups=[
                GroupState(id=f"g{i}", logic=logic, connector=connector, timeframe=tf, conditions=conds)
                for i, (logic, connector, tf, conds) in enumerate(groups)
            ],
        )

    return _create

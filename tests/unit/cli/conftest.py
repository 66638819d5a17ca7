"""Shared fixtures for CLI tests."""

import json
import logging

import numpy as np
import pandas as pd
import pytest

from config.settings import get_settings


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path, monkeypatch):
    """Run each CLI test from an empty directory with fresh settings and logging."""
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    get_settings.cache_clear()


def _bars(closes) -> pd.DataFrame:
    closes = np.asarray(closes, dtype=float)
    return pd.DataFrame(
        {
            "open": closes,
            "high": closes + 1,
            "low": closes - 1,
            "close": closes,
            "volume": np.full(len(closes), 10_000.0),
        },
        index=pd.date_range("2024-01-01", periods=len(closes), freq="B"),
    )


@pytest.fixture
def data_dir(tmp_path):
    """Bar directory with a rising (AAA) and a falling (BBB) daily series."""
    bars = tmp_path / "bars"
    bars.mkdir()
    _bars(np.linspace(90.0, 130.0, 80)).to_csv(bars / "AAA_1d.csv", index_label="date")
    _bars(np.linspace(130.0, 90.0, 80)).to_csv(bars / "BBB_1d.csv", index_label="date")
    return bars


@pytest.fixture
def query_file(tmp_path):
    """Write a query JSON file and return its path."""

    def _create(payload: dict, name: str = "query.json"):
        path = tmp_path / name
        path.write_text(json.dumps(payload))
        return path

    return _create


@pytest.fixture
def close_above_100():
    return {
        "name": "close above 100",
        "groups": [{
            "id": "g1",
            "timeframe": "1d",
            "conditions": [
                {"id": "c1", "leftIndicatorId": "close", "operator": "greater_than", "rightValue": 100},
            ],
        }],
    }

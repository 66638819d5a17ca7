"""Technical-analysis screening engine.

Evaluates declarative indicator queries against OHLCV bars and
classifies consolidation-breakout setups into confidence tiers.
"""

from screener.breakout import classify_breakout, diagnose_breakout
from screener.domain import BarDataError, OhlcvRow, bars_from_rows, normalize_bars
from screener.query import QueryState, evaluate_query, validate_query

__version__ = "0.1.0"

__all__ = [
    "BarDataError",
    "OhlcvRow",
    "QueryState",
    "bars_from_rows",
    "classify_breakout",
    "diagnose_breakout",
    "evaluate_query",
    "normalize_bars",
    "validate_query",
]

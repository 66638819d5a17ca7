"""Universe scan runner.

Fans a query or breakout classifier out over many instruments on a
thread pool. Each instrument is evaluated independently; one that
cannot be loaded or has malformed bars is logged and skipped without
aborting the scan.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, TypeVar, Union

import numpy as np
import pandas as pd

from config.settings import get_settings
from screener.breakout import (
    DiagnosticResult,
    ScanContext,
    TierResult,
    classify_breakout,
    diagnose_breakout,
)
from screener.domain import BarDataError, normalize_bars
from screener.indicators import get_default_registry
from screener.indicators.registry import IndicatorRegistry
from screener.query import (
    IndicatorColumn,
    QueryState,
    evaluate_query,
    extract_indicator_columns,
    required_timeframes,
)
from screener.utils.logging import get_scan_logger

logger = logging.getLogger(__name__)

# symbol -> timeframe -> bars
Universe = Mapping[str, Mapping[str, pd.DataFrame]]

# Errors that skip one instrument instead of aborting the scan
INSTRUMENT_ERRORS = (BarDataError, KeyError, ValueError, ArithmeticError, OSError)

T = TypeVar("T")


@dataclass
class ScanResultRow:
    """One matched instrument in a query scan.

    Attributes:
        symbol: Instrument symbol
        close: Latest close
        change_1d: Percent change from the previous close
        volume: Latest volume
        matched_groups: Number of query groups matched
        indicator_values: Latest value per query indicator column (NaN -> 0.0)
    """

    symbol: str
    close: float
    change_1d: float
    volume: float
    matched_groups: int
    indicator_values: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "close": self.close,
            "change_1d": self.change_1d,
            "volume": self.volume,
            "matched_groups": self.matched_groups,
            "indicator_values": dict(self.indicator_values),
        }


def _latest_values(
    columns: list[IndicatorColumn],
    bars: pd.DataFrame,
    registry: IndicatorRegistry,
) -> dict[str, float]:
    values = {}
    for col in columns:
        series = registry.compute(col.indicator_id, col.params, bars)
        last = float(series[-1]) if len(series) else np.nan
        values[col.key] = 0.0 if np.isnan(last) else last
    return values


class ScanRunner:
    """Run screens across a universe of instruments.

    Example:
        >>> runner = ScanRunner(max_workers=4)
        >>> rows = runner.scan_query(query, {"AAPL": {"1d": bars}})
    """

    def __init__(
        self,
        max_workers: Optional[int] = None,
        registry: Optional[IndicatorRegistry] = None,
        default_timeframe: Optional[str] = None,
    ):
        """Initialize the runner.

        Args:
            max_workers: Worker threads (defaults to settings)
            registry: Indicator registry (defaults to the built-in registry)
            default_timeframe: Timeframe used by the breakout scans (defaults to settings)
        """
        settings = get_settings().scanner
        self.max_workers = max_workers or settings.max_workers
        self.registry = registry or get_default_registry()
        self.default_timeframe = default_timeframe or settings.default_timeframe
        self._scan_logger = get_scan_logger(__name__)

    def _fan_out(
        self,
        scan: str,
        universe: Universe,
        evaluate: Callable[[str, Mapping[str, pd.DataFrame]], Optional[T]],
    ) -> list[T]:
        """Evaluate every symbol on the pool; results sorted by symbol."""
        symbols = list(universe.keys())
        self._scan_logger.scan_started(scan=scan, instruments=len(symbols))
        started = time.perf_counter()

        def run_one(symbol: str) -> Optional[T]:
            return evaluate(symbol, universe[symbol])

        results: dict[str, T] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_symbol = {executor.submit(run_one, s): s for s in symbols}

            for future in as_completed(future_to_symbol):
                symbol = future_to_symbol[future]
                try:
                    outcome = future.result()
                except INSTRUMENT_ERRORS as e:
                    self._scan_logger.instrument_skipped(scan=scan, symbol=symbol, reason=str(e))
                    continue
                if outcome is not None:
                    results[symbol] = outcome

        self._scan_logger.scan_completed(
            scan=scan,
            instruments=len(symbols),
            matched=len(results),
            elapsed_s=time.perf_counter() - started,
        )
        return [results[s] for s in sorted(results)]

    def scan_query(
        self,
        query: QueryState,
        universe: Universe,
        as_of: Optional[int] = None,
    ) -> list[ScanResultRow]:
        """Evaluate a query for every instrument and keep the matches.

        Args:
            query: Query to evaluate
            universe: symbol -> timeframe -> bars
            as_of: Anchor bar index passed to the evaluator

        Returns:
            Matched rows sorted by symbol
        """
        timeframes = required_timeframes(query)
        columns = extract_indicator_columns(query, self.registry)
        scan = f"query:{query.name}" if query.name else "query"

        def evaluate(symbol: str, bars_by_tf: Mapping[str, pd.DataFrame]) -> Optional[ScanResultRow]:
            frames = {tf: normalize_bars(df) for tf, df in bars_by_tf.items() if len(df) > 0}
            if not frames:
                logger.debug("No bars for %s", symbol)
                return None

            result = evaluate_query(query, frames, registry=self.registry, as_of=as_of)
            if not result.match:
                return None
            self._scan_logger.instrument_matched(scan=scan, symbol=symbol, matched_groups=result.matched_groups)

            price_bars = frames.get(self.default_timeframe)
            if price_bars is None:
                price_bars = next(iter(frames.values()))
            last = price_bars.iloc[-1]
            prev_close = float(price_bars["close"].iloc[-2]) if len(price_bars) >= 2 else 0.0
            change_1d = (float(last["close"]) - prev_close) / prev_close * 100 if prev_close > 0 else 0.0

            value_bars = frames.get(timeframes[0]) if timeframes else None
            if value_bars is None:
                value_bars = next(iter(frames.values()))

            return ScanResultRow(
                symbol=symbol,
                close=float(last["close"]),
                change_1d=change_1d,
                volume=float(last["volume"]),
                matched_groups=result.matched_groups,
                indicator_values=_latest_values(columns, value_bars, self.registry),
            )

        return self._fan_out(scan, universe, evaluate)

    def classify_universe(
        self,
        universe: Universe,
        context: Union[ScanContext, str] = ScanContext.SWING,
    ) -> list[TierResult]:
        """Run the tiered breakout classifier over every instrument.

        Returns:
            One TierResult per instrument with bars, sorted by symbol
        """
        scan = f"breakout:{ScanContext(context).value}"

        def evaluate(symbol: str, bars_by_tf: Mapping[str, pd.DataFrame]) -> Optional[TierResult]:
            bars = bars_by_tf.get(self.default_timeframe)
            if bars is None or len(bars) == 0:
                return None
            result = classify_breakout(normalize_bars(bars), context, symbol=symbol)
            if result.tier is not None:
                self._scan_logger.instrument_matched(scan=scan, symbol=symbol, tier=result.tier.value)
            return result

        return self._fan_out(scan, universe, evaluate)

    def diagnose_universe(
        self,
        universe: Universe,
        context: Union[ScanContext, str] = ScanContext.SWING,
    ) -> list[DiagnosticResult]:
        """Run the diagnostic breakout scorer over every instrument.

        Returns:
            One DiagnosticResult per instrument with bars, sorted by symbol
        """
        scan = f"diagnostic:{ScanContext(context).value}"

        def evaluate(symbol: str, bars_by_tf: Mapping[str, pd.DataFrame]) -> Optional[DiagnosticResult]:
            bars = bars_by_tf.get(self.default_timeframe)
            if bars is None or len(bars) == 0:
                return None
            result = diagnose_breakout(normalize_bars(bars), context, symbol=symbol)
            if result.match:
                self._scan_logger.instrument_matched(scan=scan, symbol=symbol, score_pct=result.score_pct)
            return result

        return self._fan_out(scan, universe, evaluate)

"""CSV data loader for OHLCV bars.

A universe directory holds one file per instrument and timeframe named
``<SYMBOL>_<timeframe>.csv`` (e.g. ``RELIANCE_1d.csv``).
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Iterator

import pandas as pd
from pandera.errors import SchemaError, SchemaErrors

from screener.data.schemas import validate_ohlcv
from screener.domain import OHLCV_COLUMNS, BarDataError

logger = logging.getLogger(__name__)


# Common timestamp column names to detect
TIMESTAMP_COLUMN_NAMES = [
    "timestamp",
    "date",
    "datetime",
    "time",
    "date_time",
    "ts",
]

# Common date formats to try when parsing (ordered by priority)
DATE_FORMATS = [
    "%Y-%m-%d",  # ISO 8601 date only
    "%Y-%m-%d %H:%M:%S",  # ISO 8601 with time
    "%Y-%m-%dT%H:%M:%S",  # ISO 8601 with T separator
    "%Y-%m-%d %H:%M",  # ISO 8601 without seconds
    "%d/%m/%Y",  # DD/MM/YYYY
    "%d/%m/%Y %H:%M",  # DD/MM/YYYY HH:MM
    "%d-%m-%Y",  # DD-MM-YYYY
]

# Standard OHLCV column name mappings
COLUMN_MAPPINGS = {
    "open": ["open", "o", "open_price"],
    "high": ["high", "h", "high_price"],
    "low": ["low", "l", "low_price"],
    "close": ["close", "c", "close_price", "adj_close", "adj close"],
    "volume": ["volume", "vol", "v"],
}


def bar_file_name(symbol: str, timeframe: str) -> str:
    """File name holding ``symbol``'s bars for ``timeframe``."""
    return f"{symbol}_{timeframe}.csv"


class CSVLoader:
    """Load OHLCV bars from local CSV files.

    Features:
    - Automatic timestamp column detection
    - Multiple date format support
    - Column name normalization
    - Missing value handling
    - Schema validation via pandera
    """

    def __init__(self, validate: bool = True, fill_missing: bool = True):
        """Initialize the CSV loader.

        Args:
            validate: Whether to validate data against the OHLCV schema
            fill_missing: Whether to fill missing values
        """
        self.validate = validate
        self.fill_missing = fill_missing

    def load(
        self,
        source: str | Path,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> pd.DataFrame:
        """Load OHLCV bars from a CSV file.

        Args:
            source: Path to CSV file
            start: Optional start datetime filter
            end: Optional end datetime filter

        Returns:
            DataFrame with a 'timestamp' index and columns: open, high, low, close, volume

        Raises:
            FileNotFoundError: If the file doesn't exist
            BarDataError: If required columns are missing or data is invalid
        """
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {path}")

        logger.debug("Loading CSV from %s", path)

        df = pd.read_csv(path)
        df.columns = df.columns.str.lower().str.strip()

        df = self._parse_timestamp(df)
        df = df.dropna(subset=["timestamp"])
        df = self._normalize_columns(df)

        if self.fill_missing:
            df = self._handle_missing(df)

        df = df.set_index("timestamp").sort_index()

        if start is not None:
            df = df[df.index >= pd.Timestamp(start)]
        if end is not None:
            df = df[df.index <= pd.Timestamp(end)]

        df = df[list(OHLCV_COLUMNS)].astype(float)

        if self.validate:
            try:
                df = validate_ohlcv(df)
            except (SchemaError, SchemaErrors) as e:
                raise BarDataError(f"{path.name}: {e}") from e

        logger.debug("Loaded %d rows from %s", len(df), path)
        return df

    def load_symbol(
        self,
        data_dir: str | Path,
        symbol: str,
        timeframes: list[str],
    ) -> dict[str, pd.DataFrame]:
        """Load every available timeframe for one symbol.

        Missing files are left out of the result so that query groups on
        that timeframe evaluate as non-matching.

        Returns:
            Dictionary mapping timeframe labels to DataFrames
        """
        data_dir = Path(data_dir)
        result = {}
        for tf in timeframes:
            path = data_dir / bar_file_name(symbol, tf)
            if path.exists():
                result[tf] = self.load(path)
            else:
                logger.debug("No %s bars for %s", tf, symbol)
        return result

    def discover_symbols(self, data_dir: str | Path, timeframes: list[str]) -> list[str]:
        """List symbols with a bar file for any of ``timeframes``, sorted."""
        data_dir = Path(data_dir)
        if not data_dir.is_dir():
            raise FileNotFoundError(f"Data directory not found: {data_dir}")

        symbols = set()
        for tf in timeframes:
            suffix = f"_{tf}"
            for path in data_dir.glob(f"*{suffix}.csv"):
                symbols.add(path.stem[: -len(suffix)])
        return sorted(symbols)

    def _parse_timestamp(self, df: pd.DataFrame) -> pd.DataFrame:
        """Detect and parse the timestamp column.

        Raises:
            BarDataError: If no timestamp column is found or parsing fails
        """
        ts_col = self._find_timestamp_column(df)
        if ts_col is None:
            raise BarDataError(
                f"Could not find timestamp column. Expected one of: {TIMESTAMP_COLUMN_NAMES}"
            )

        parsed = self._try_parse_dates(df[ts_col])
        if parsed is None:
            raise BarDataError(
                f"Could not parse timestamps in column '{ts_col}'. "
                f"Tried formats: {DATE_FORMATS}"
            )

        df = df.copy()
        df["timestamp"] = parsed
        if ts_col != "timestamp":
            df = df.drop(columns=[ts_col])
        return df

    def _find_timestamp_column(self, df: pd.DataFrame) -> str | None:
        """Find the timestamp column in the DataFrame."""
        for col in df.columns:
            if col.lower() in TIMESTAMP_COLUMN_NAMES:
                return col
        logger.debug("No timestamp column found in: %s", list(df.columns))
        return None

    def _try_parse_dates(self, series: pd.Series) -> pd.Series | None:
        """Try parsing dates with multiple formats.

        Returns:
            Parsed datetime series, or None if all formats fail
        """
        for fmt in DATE_FORMATS:
            parsed = pd.to_datetime(series, format=fmt, errors="coerce")
            # Accept if >95% of values parsed successfully
            if parsed.notna().mean() > 0.95:
                logger.debug("Date format matched: %s", fmt)
                return parsed

        parsed = pd.to_datetime(series, errors="coerce")
        if parsed.notna().mean() > 0.95:
            return parsed
        return None

    def _normalize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Normalize column names to standard OHLCV names.

        Raises:
            BarDataError: If required columns cannot be found
        """
        rename_map = {}
        for standard_name, alternatives in COLUMN_MAPPINGS.items():
            match = next((alt for alt in alternatives if alt in df.columns), None)
            if match is None:
                raise BarDataError(
                    f"Could not find '{standard_name}' column. "
                    f"Expected one of: {alternatives}"
                )
            if match != standard_name:
                rename_map[match] = standard_name

        return df.rename(columns=rename_map) if rename_map else df

    def _handle_missing(self, df: pd.DataFrame) -> pd.DataFrame:
        """Handle missing values in OHLCV data.

        Strategy:
        - Forward-fill prices (use last known value)
        - Fill remaining NaN prices with backward-fill
        - Fill volume NaN with 0
        """
        df = df.copy()
        for col in ["open", "high", "low", "close"]:
            df[col] = pd.to_numeric(df[col], errors="coerce").ffill().bfill()
        df["volume"] = pd.to_numeric(df["volume"], errors="coerce").fillna(0)
        return df


class CSVUniverse(Mapping):
    """Read-only symbol -> {timeframe: bars} mapping backed by a directory.

    Files are read when a symbol is looked up, so loading errors surface
    per instrument inside the scan workers.
    """

    def __init__(
        self,
        data_dir: str | Path,
        timeframes: list[str],
        loader: CSVLoader | None = None,
        symbols: list[str] | None = None,
    ):
        self.data_dir = Path(data_dir)
        self.timeframes = list(timeframes)
        self.loader = loader or CSVLoader()
        self._symbols = symbols if symbols is not None else self.loader.discover_symbols(
            self.data_dir, self.timeframes
        )

    def __getitem__(self, symbol: str) -> dict[str, pd.DataFrame]:
        if symbol not in self._symbols:
            raise KeyError(symbol)
        return self.loader.load_symbol(self.data_dir, symbol, self.timeframes)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._symbols

    def __iter__(self) -> Iterator[str]:
        return iter(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)

"""Bar data loading and validation."""

from screener.data.csv_loader import CSVLoader, CSVUniverse, bar_file_name
from screener.data.schemas import OHLCVSchema, validate_ohlcv

__all__ = [
    "CSVLoader",
    "CSVUniverse",
    "OHLCVSchema",
    "bar_file_name",
    "validate_ohlcv",
]

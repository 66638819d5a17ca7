"""Data validation schemas for OHLCV bars using pandera."""

import pandera.pandas as pa
from pandera.typing.pandas import DataFrame, Index, Series


class OHLCVSchema(pa.DataFrameModel):
    """Schema for loaded OHLCV bars.

    Validates:
    - Required columns with correct dtypes
    - Unique timestamps
    - High >= max(open, close) and low <= min(open, close)
    - Positive prices
    - Non-negative volume
    """

    timestamp: Index[pa.DateTime] = pa.Field(coerce=True, unique=True)
    open: Series[float] = pa.Field(gt=0, coerce=True)
    high: Series[float] = pa.Field(gt=0, coerce=True)
    low: Series[float] = pa.Field(gt=0, coerce=True)
    close: Series[float] = pa.Field(gt=0, coerce=True)
    volume: Series[float] = pa.Field(ge=0, coerce=True)

    @pa.dataframe_check
    def high_low_consistency(cls, df: DataFrame) -> Series[bool]:
        """Validate high >= max(open, close) and low <= min(open, close)."""
        high_valid = df["high"] >= df[["open", "close"]].max(axis=1)
        low_valid = df["low"] <= df[["open", "close"]].min(axis=1)
        return high_valid & low_valid

    class Config:
        strict = False
        coerce = True
        ordered = False


def validate_ohlcv(df: DataFrame) -> DataFrame:
    """Validate a DataFrame against the OHLCV schema.

    Args:
        df: DataFrame to validate

    Returns:
        Validated DataFrame

    Raises:
        pandera.errors.SchemaError: If validation fails
    """
    return OHLCVSchema.validate(df)

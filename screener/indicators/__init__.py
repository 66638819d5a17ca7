"""Indicator registry and built-in indicator catalog."""

from screener.indicators import library  # noqa: F401  registers the built-in catalog
from screener.indicators.base import IndicatorSource, IndicatorSpec
from screener.indicators.registry import (
    IndicatorRegistry,
    get_default_registry,
    register,
)

__all__ = [
    "IndicatorRegistry",
    "IndicatorSource",
    "IndicatorSpec",
    "get_default_registry",
    "register",
]

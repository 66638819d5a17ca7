"""Indicator registry.

Maps an indicator id plus a parameter set to a numeric series aligned
1:1 with the input bars. Built-in indicators register themselves on the
shared default registry when ``screener.indicators`` is imported.
"""

import logging
from typing import Any, Callable

import numpy as np
import pandas as pd

from screener.indicators.base import IndicatorFn, IndicatorSpec, Params

logger = logging.getLogger(__name__)


def _coerce_param(value: Any, default: Any) -> Any:
    """Coerce a caller-supplied parameter to the type of its default.

    Numeric parameters arrive as strings from query JSON; anything that
    does not parse falls back to the default. Integer parameters are bar
    counts: fractional values are truncated and values below 1 fall back
    to the default.
    """
    if value is None or value == "":
        return default
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, (int, float)):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return default
        if not np.isfinite(number):
            return default
        if isinstance(default, int):
            count = int(number)
            return count if count >= 1 else default
        return number
    return str(value)


class IndicatorRegistry:
    """Registry of indicator computations keyed by indicator id."""

    def __init__(self):
        self._specs: dict[str, IndicatorSpec] = {}
        self._fns: dict[str, IndicatorFn] = {}

    def register(
        self,
        indicator_id: str,
        name: str,
        category: str,
        params: dict[str, Any] | None = None,
        output_type: str = "numeric",
    ) -> Callable[[IndicatorFn], IndicatorFn]:
        """Decorator to register an indicator function.

        Args:
            indicator_id: Registry key
            name: Human-readable name
            category: Catalog group
            params: Parameter defaults
            output_type: 'numeric' or 'pattern'

        Returns:
            Decorator function
        """

        def decorator(fn: IndicatorFn) -> IndicatorFn:
            if indicator_id in self._specs:
                raise ValueError(f"Duplicate indicator id '{indicator_id}'")
            self._specs[indicator_id] = IndicatorSpec(
                indicator_id=indicator_id,
                name=name,
                category=category,
                defaults=dict(params or {}),
                output_type=output_type,
            )
            self._fns[indicator_id] = fn
            return fn

        return decorator

    def exists(self, indicator_id: str) -> bool:
        """Return True if the indicator id is registered."""
        return indicator_id in self._specs

    def get(self, indicator_id: str) -> IndicatorSpec:
        """Get an indicator spec by id.

        Raises:
            KeyError: If the indicator id is not registered
        """
        if indicator_id not in self._specs:
            raise KeyError(
                f"Indicator '{indicator_id}' not found. Available: {sorted(self._specs)}"
            )
        return self._specs[indicator_id]

    def list_indicators(self, category: str | None = None) -> list[IndicatorSpec]:
        """List registered indicators, optionally filtered by category."""
        return [
            spec for spec in self._specs.values()
            if category is None or spec.category == category
        ]

    def resolve_params(self, indicator_id: str, params: Params | None) -> Params:
        """Merge caller parameters over the indicator's defaults."""
        defaults = self.get(indicator_id).defaults
        supplied = params or {}
        return {key: _coerce_param(supplied.get(key), default) for key, default in defaults.items()}

    def compute(self, indicator_id: str, params: Params | None, bars: pd.DataFrame) -> np.ndarray:
        """Compute an indicator series aligned to ``bars``.

        Unknown indicator ids yield an all-NaN series.

        Args:
            indicator_id: Registry key
            params: Parameter overrides
            bars: OHLCV DataFrame

        Returns:
            Float array with ``len(bars)`` entries
        """
        n = len(bars)
        if indicator_id not in self._fns:
            logger.warning("Unknown indicator: %s", indicator_id)
            return np.full(n, np.nan)
        if n == 0:
            return np.empty(0)

        resolved = self.resolve_params(indicator_id, params)
        values = self._fns[indicator_id](bars, resolved)
        out = np.asarray(values, dtype=float)
        if out.shape != (n,):
            raise ValueError(
                f"Indicator '{indicator_id}' returned {out.shape} for {n} bars"
            )
        return out

    def indicator_key(self, indicator_id: str, params: Params | None) -> str:
        """Build a unique column key for an indicator + numeric params combination."""
        if indicator_id not in self._specs:
            return indicator_id
        resolved = self.resolve_params(indicator_id, params)
        parts = [
            _format_number(v) for v in resolved.values()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        ]
        return f"{indicator_id}_{'_'.join(parts)}" if parts else indicator_id

    def indicator_label(self, indicator_id: str, params: Params | None) -> str:
        """Build a display label such as ``EMA(20)``."""
        if indicator_id not in self._specs:
            return indicator_id
        spec = self._specs[indicator_id]
        resolved = self.resolve_params(indicator_id, params)
        parts = [
            _format_number(v) for v in resolved.values()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        ]
        return f"{spec.name}({','.join(parts)})" if parts else spec.name


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


_default_registry = IndicatorRegistry()


def get_default_registry() -> IndicatorRegistry:
    """Get the shared registry holding the built-in indicators."""
    return _default_registry


def register(
    indicator_id: str,
    name: str,
    category: str,
    params: dict[str, Any] | None = None,
    output_type: str = "numeric",
) -> Callable[[IndicatorFn], IndicatorFn]:
    """Register an indicator on the default registry."""
    return _default_registry.register(indicator_id, name, category, params, output_type)

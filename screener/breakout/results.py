"""Result objects returned by the breakout classifiers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

PARTIAL = "partial"

CRITERIA_TOTAL = 10


class Tier(str, Enum):
    """Confidence bucket for a consolidation-breakout setup."""

    READY = "1"
    IMMINENT = "2A"
    WATCHLIST = "2B"


TIER_NAMES = {
    Tier.READY: "Ready to Trade",
    Tier.IMMINENT: "Imminent Breakout",
    Tier.WATCHLIST: "Watchlist",
    None: "No Pattern",
}


class BreakoutStatus(str, Enum):
    """Where the latest bar stands relative to the breakout level."""

    BREAKOUT_CONFIRMED = "BREAKOUT_CONFIRMED"
    BREAKOUT_WEAK_VOLUME = "BREAKOUT_WEAK_VOLUME"
    BREAKOUT_NO_VOLUME = "BREAKOUT_NO_VOLUME"
    IMMINENT = "IMMINENT"
    WATCHLIST = "WATCHLIST"
    TOO_FAR = "TOO_FAR"


class TrendContext(str, Enum):
    """Classification of the move leading into the base."""

    CONTINUATION = "continuation"
    PULLBACK_IN_UPTREND = "pullback_in_uptrend"
    RECOVERY_BASE = "recovery_base"
    NEUTRAL_BASE = "neutral_base"
    DOWNTREND = "downtrend"


@dataclass
class CriterionResult:
    """Actual-versus-required outcome of one criterion.

    Attributes:
        passed: True, False, or ``PARTIAL``
        actual: Measured value
        required: Required value for boolean/categorical criteria
        required_min: Lower bound for numeric criteria
        required_max: Upper bound for numeric criteria
        note: Near-miss or context note
        details: Criterion-specific measurements
    """

    passed: Union[bool, str]
    actual: Any
    required: Any = None
    required_min: Optional[float] = None
    required_max: Optional[float] = None
    note: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_pass(self) -> bool:
        return self.passed is True

    @property
    def is_partial(self) -> bool:
        return self.passed == PARTIAL

    def failure_reason(self, key: str) -> str:
        """One-line explanation of why the criterion did not pass."""
        reason = f"{key}: actual {self.actual}"
        if self.required_min is not None:
            reason += f" < required_min {self.required_min}"
        elif self.required_max is not None:
            reason += f" > required_max {self.required_max}"
        elif self.required is not None:
            reason += f" vs required {self.required}"
        if self.note:
            reason += f" ({self.note})"
        return reason

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"passed": self.passed, "actual": _plain(self.actual)}
        for key in ("required", "required_min", "required_max", "note"):
            value = getattr(self, key)
            if value is not None:
                out[key] = _plain(value)
        out.update({k: _plain(v) for k, v in self.details.items()})
        return out


def _plain(value: Any) -> Any:
    """Unwrap enums for JSON output."""
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass
class TierResult:
    """Tiered classification of one instrument.

    Attributes:
        symbol: Instrument symbol
        scan_date: Date of the latest bar
        tier: Assigned tier, or None
        confidence: 'high', 'medium', 'low' or 'none'
        action: Suggested next step for tiered names
        criteria_passed: Criteria passed, partial counting one half, rounded
        score_pct: Score out of 100
        consolidation_analysis: Best window summary
        criteria: Criterion results keyed C1..C10
        caveats: Risk notes
        price_info: Entry/stop levels for tiered names
        volume_info: Volume trigger for tiered names
    """

    symbol: str
    scan_date: str
    tier: Optional[Tier] = None
    confidence: str = "none"
    action: Optional[str] = None
    criteria_passed: int = 0
    score_pct: int = 0
    consolidation_analysis: dict[str, Any] = field(default_factory=lambda: {"best_window_found": False})
    criteria: dict[str, CriterionResult] = field(default_factory=dict)
    caveats: list[str] = field(default_factory=list)
    price_info: Optional[dict[str, Any]] = None
    volume_info: Optional[dict[str, Any]] = None

    @property
    def tier_name(self) -> str:
        return TIER_NAMES[self.tier]

    @property
    def distance_pct(self) -> float:
        """Distance below the window high reported by the breakout criterion."""
        c10 = self.criteria.get("C10_breakout_status")
        if c10 is None:
            return float("inf")
        return c10.details.get("distance_pct", float("inf"))

    def to_dict(self) -> dict[str, Any]:
        out = {
            "symbol": self.symbol,
            "scan_date": self.scan_date,
            "tier_classification": {
                "tier": self.tier.value if self.tier else None,
                "tier_name": self.tier_name,
                "confidence": self.confidence,
                "action": self.action,
            },
            "score": {
                "criteria_passed": self.criteria_passed,
                "criteria_total": CRITERIA_TOTAL,
                "score_pct": self.score_pct,
            },
            "consolidation_analysis": dict(self.consolidation_analysis),
            "criteria_results": {k: c.to_dict() for k, c in self.criteria.items()},
            "caveats": list(self.caveats),
        }
        if self.price_info is not None:
            out["price_info"] = dict(self.price_info)
        if self.volume_info is not None:
            out["volume_info"] = dict(self.volume_info)
        return out


@dataclass
class DiagnosticResult:
    """Unconditional criterion-by-criterion scoring of one instrument.

    Attributes:
        symbol: Instrument symbol
        scan_date: Date of the latest bar
        match: All criteria passed
        criteria_passed: Number of criteria passed
        consolidation_analysis: Best window summary, even if imperfect
        criteria: Criterion results keyed C1..C10
        relaxed_analysis: Which relaxed thresholds would pass
        failure_reasons: One line per failed criterion
    """

    symbol: str
    scan_date: str
    match: bool = False
    criteria_passed: int = 0
    consolidation_analysis: dict[str, Any] = field(default_factory=lambda: {"best_window_found": False})
    criteria: dict[str, CriterionResult] = field(default_factory=dict)
    relaxed_analysis: dict[str, bool] = field(default_factory=dict)
    failure_reasons: list[str] = field(default_factory=list)

    @property
    def score(self) -> float:
        """Fraction of criteria passed."""
        return self.criteria_passed / CRITERIA_TOTAL

    @property
    def score_pct(self) -> int:
        return int(round(self.score * 100))

    @property
    def failed_criteria(self) -> list[str]:
        return [key for key, c in self.criteria.items() if not c.is_pass]

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "scan_date": self.scan_date,
            "match": self.match,
            "score": {
                "criteria_passed": self.criteria_passed,
                "criteria_total": CRITERIA_TOTAL,
                "score_pct": self.score_pct,
            },
            "consolidation_analysis": dict(self.consolidation_analysis),
            "criteria_results": {k: c.to_dict() for k, c in self.criteria.items()},
            "relaxed_thresholds_analysis": dict(self.relaxed_analysis),
            "failure_reasons": list(self.failure_reasons),
        }

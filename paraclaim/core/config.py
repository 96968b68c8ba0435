"""
paraclaim/core/config.py

Engine configuration.

    EngineConfig.default()          → built-in limits and risk table
    EngineConfig.from_yaml(path)    → YAML file, missing keys fall back to defaults
    EngineConfig.from_dict(data)    → same, from an already-parsed mapping

YAML readings (thresholds, reference values, tail widths) are written in
human units ("-2.5", 30) and converted to fixed point on load. Amounts
are plain integers in the smallest currency unit.

Example:

    admin: ops-admin
    yield_fraction: 80
    limits:
      min_coverage_days: 1
      max_coverage_days: 365
      min_payout: 10000
      max_payout: 100000000
      thresholds:
        temperature: ["-60", "60"]
    risk:
      annual_rate_bps:
        rainfall: 1200
      operator_pct:
        equal_to: 25
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from paraclaim.core.models import (
    ComparisonOperator,
    WeatherParameter,
    to_fixed,
)
from paraclaim.core.time import DAY_SECONDS


def _reading(value: Any) -> int:
    # YAML turns unquoted 2.5 into a float; its repr is the literal the user wrote.
    if isinstance(value, float):
        value = repr(value)
    return to_fixed(value)


def _default_thresholds() -> Dict[WeatherParameter, Tuple[int, int]]:
    return {
        WeatherParameter.TEMPERATURE: (to_fixed(-100), to_fixed(100)),
        WeatherParameter.RAINFALL:    (to_fixed(0),    to_fixed(10_000)),
        WeatherParameter.WIND_SPEED:  (to_fixed(0),    to_fixed(500)),
        WeatherParameter.HUMIDITY:    (to_fixed(0),    to_fixed(100)),
    }


# ─────────────────────────────────────────────────────────────
# Policy limits
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PolicyLimits:
    """Bounds enforced by PolicyRegistry.create_policy()."""
    min_coverage_seconds: int = DAY_SECONDS
    max_coverage_seconds: int = 365 * DAY_SECONDS
    min_payout:           int = 10_000
    max_payout:           int = 100_000_000
    thresholds: Dict[WeatherParameter, Tuple[int, int]] = field(
        default_factory=_default_thresholds
    )

    def __post_init__(self) -> None:
        if self.min_coverage_seconds <= 0:
            raise ValueError("min_coverage_seconds must be positive")
        if self.max_coverage_seconds < self.min_coverage_seconds:
            raise ValueError("max_coverage_seconds must be >= min_coverage_seconds")
        if self.min_payout <= 0:
            raise ValueError("min_payout must be positive")
        if self.max_payout < self.min_payout:
            raise ValueError("max_payout must be >= min_payout")
        for param in WeatherParameter:
            if param not in self.thresholds:
                raise ValueError(f"No threshold range configured for {param.value}")
            low, high = self.thresholds[param]
            if high < low:
                raise ValueError(f"Threshold range for {param.value} is inverted")

    def threshold_range(self, parameter: WeatherParameter) -> Tuple[int, int]:
        return self.thresholds[parameter]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_coverage_seconds": self.min_coverage_seconds,
            "max_coverage_seconds": self.max_coverage_seconds,
            "min_payout":           self.min_payout,
            "max_payout":           self.max_payout,
            "thresholds": {
                p.value: list(rng) for p, rng in self.thresholds.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyLimits":
        base       = cls()
        thresholds = dict(base.thresholds)
        for name, (low, high) in (data.get("thresholds") or {}).items():
            thresholds[WeatherParameter(name)] = (_reading(low), _reading(high))

        min_cov = base.min_coverage_seconds
        max_cov = base.max_coverage_seconds
        if "min_coverage_days" in data:
            min_cov = int(data["min_coverage_days"]) * DAY_SECONDS
        if "max_coverage_days" in data:
            max_cov = int(data["max_coverage_days"]) * DAY_SECONDS

        return cls(
            min_coverage_seconds= int(data.get("min_coverage_seconds", min_cov)),
            max_coverage_seconds= int(data.get("max_coverage_seconds", max_cov)),
            min_payout=           int(data.get("min_payout", base.min_payout)),
            max_payout=           int(data.get("max_payout", base.max_payout)),
            thresholds=           thresholds,
        )


# ─────────────────────────────────────────────────────────────
# Risk table
# ─────────────────────────────────────────────────────────────

def _default_rates() -> Dict[WeatherParameter, int]:
    return {
        WeatherParameter.TEMPERATURE: 800,
        WeatherParameter.RAINFALL:    1_000,
        WeatherParameter.WIND_SPEED:  1_200,
        WeatherParameter.HUMIDITY:    600,
    }


def _default_reference() -> Dict[WeatherParameter, int]:
    return {
        WeatherParameter.TEMPERATURE: to_fixed(20),
        WeatherParameter.RAINFALL:    to_fixed(50),
        WeatherParameter.WIND_SPEED:  to_fixed(15),
        WeatherParameter.HUMIDITY:    to_fixed(60),
    }


def _default_tail_width() -> Dict[WeatherParameter, int]:
    return {
        WeatherParameter.TEMPERATURE: to_fixed(15),
        WeatherParameter.RAINFALL:    to_fixed(100),
        WeatherParameter.WIND_SPEED:  to_fixed(15),
        WeatherParameter.HUMIDITY:    to_fixed(30),
    }


def _default_operator_pct() -> Dict[ComparisonOperator, int]:
    return {
        ComparisonOperator.GREATER_THAN: 100,
        ComparisonOperator.LESS_THAN:    100,
        ComparisonOperator.EQUAL_TO:     25,
    }


@dataclass(frozen=True)
class RiskTable:
    """
    Inputs of the premium formula (see registry/premium.py).

    annual_rate_bps  — yearly cost of cover as basis points of payout
    reference        — typical reading per parameter (fixed point)
    tail_width       — distance from reference that halves/doubles likelihood
    operator_pct     — multiplier per comparison operator, percent
    """
    annual_rate_bps: Dict[WeatherParameter, int]   = field(default_factory=_default_rates)
    reference:       Dict[WeatherParameter, int]   = field(default_factory=_default_reference)
    tail_width:      Dict[WeatherParameter, int]   = field(default_factory=_default_tail_width)
    operator_pct:    Dict[ComparisonOperator, int] = field(default_factory=_default_operator_pct)
    min_premium:     int = 1

    def __post_init__(self) -> None:
        for param in WeatherParameter:
            if self.annual_rate_bps.get(param, -1) < 0:
                raise ValueError(f"annual_rate_bps missing or negative for {param.value}")
            if param not in self.reference:
                raise ValueError(f"reference missing for {param.value}")
            if self.tail_width.get(param, 0) <= 0:
                raise ValueError(f"tail_width must be positive for {param.value}")
        for op in ComparisonOperator:
            if self.operator_pct.get(op, -1) < 0:
                raise ValueError(f"operator_pct missing or negative for {op.value}")
        if self.min_premium < 0:
            raise ValueError("min_premium must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "annual_rate_bps": {p.value: v for p, v in self.annual_rate_bps.items()},
            "reference":       {p.value: v for p, v in self.reference.items()},
            "tail_width":      {p.value: v for p, v in self.tail_width.items()},
            "operator_pct":    {o.value: v for o, v in self.operator_pct.items()},
            "min_premium":     self.min_premium,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskTable":
        base  = cls()
        rates = dict(base.annual_rate_bps)
        ref   = dict(base.reference)
        tail  = dict(base.tail_width)
        ops   = dict(base.operator_pct)

        for name, v in (data.get("annual_rate_bps") or {}).items():
            rates[WeatherParameter(name)] = int(v)
        for name, v in (data.get("reference") or {}).items():
            ref[WeatherParameter(name)] = _reading(v)
        for name, v in (data.get("tail_width") or {}).items():
            tail[WeatherParameter(name)] = _reading(v)
        for name, v in (data.get("operator_pct") or {}).items():
            ops[ComparisonOperator(name)] = int(v)

        return cls(
            annual_rate_bps= rates,
            reference=       ref,
            tail_width=      tail,
            operator_pct=    ops,
            min_premium=     int(data.get("min_premium", base.min_premium)),
        )


# ─────────────────────────────────────────────────────────────
# Engine config
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EngineConfig:
    admin:             str = "admin"
    issuer_public_key: Optional[str] = None
    yield_fraction:    int = 80
    paused:            bool = False
    limits:            PolicyLimits = field(default_factory=PolicyLimits)
    risk:              RiskTable = field(default_factory=RiskTable)
    audit_log_path:    Optional[str] = None

    def __post_init__(self) -> None:
        if not self.admin:
            raise ValueError("admin identity must be a non-empty string")
        if not 0 <= self.yield_fraction <= 100:
            raise ValueError(
                f"yield_fraction must be within 0..100, got {self.yield_fraction}"
            )

    @classmethod
    def default(cls) -> "EngineConfig":
        return cls()

    def with_overrides(self, **changes: Any) -> "EngineConfig":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EngineConfig":
        data = data or {}
        base = cls()
        return cls(
            admin=             str(data.get("admin", base.admin)),
            issuer_public_key= data.get("issuer_public_key"),
            yield_fraction=    int(data.get("yield_fraction", base.yield_fraction)),
            paused=            bool(data.get("paused", base.paused)),
            limits=            PolicyLimits.from_dict(data.get("limits") or {}),
            risk=              RiskTable.from_dict(data.get("risk") or {}),
            audit_log_path=    data.get("audit_log_path"),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "EngineConfig":
        """
        Load configuration from a YAML file.
        Raises FileNotFoundError if missing, ValueError on invalid content.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)

"""
paraclaim/core/models.py

Domain data model.

Units:
    amounts     — int, smallest currency unit
    timestamps  — int, Unix seconds
    values      — int, fixed-point hundredths of the native unit
                  (°C, mm, m/s, %RH). 30.5 °C is stored as 3050.

No float ever enters a policy record or an observation. Use to_fixed()
to convert human input.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Union


FIXED_POINT_SCALE = 100


# ─────────────────────────────────────────────────────────────
# Enumerations
# ─────────────────────────────────────────────────────────────

class WeatherParameter(Enum):
    TEMPERATURE = "temperature"
    RAINFALL    = "rainfall"
    WIND_SPEED  = "wind_speed"
    HUMIDITY    = "humidity"


class ComparisonOperator(Enum):
    GREATER_THAN = "greater_than"
    LESS_THAN    = "less_than"
    EQUAL_TO     = "equal_to"


class PolicyStatus(Enum):
    ACTIVE    = "active"
    CLAIMED   = "claimed"
    EXPIRED   = "expired"
    CANCELLED = "cancelled"


# Only legal edges of the policy lifecycle.
_ALLOWED_TRANSITIONS = {
    PolicyStatus.ACTIVE: {
        PolicyStatus.CLAIMED,
        PolicyStatus.EXPIRED,
        PolicyStatus.CANCELLED,
    },
}


def can_transition(current: PolicyStatus, target: PolicyStatus) -> bool:
    return target in _ALLOWED_TRANSITIONS.get(current, set())


# ─────────────────────────────────────────────────────────────
# Fixed point
# ─────────────────────────────────────────────────────────────

def to_fixed(value: Union[str, int, Decimal]) -> int:
    """
    Convert a human-readable reading to fixed-point hundredths.

        to_fixed("30")     → 3000
        to_fixed("-2.5")   → -250
        to_fixed(12)       → 1200

    Raises ValueError for floats, non-numeric strings, or more than
    two decimal places. Floats are refused outright: 0.1 has no exact
    binary form and the trigger comparison must be exact.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(
            f"to_fixed() requires str, int or Decimal, got {type(value).__name__}"
        )
    if isinstance(value, int):
        return value * FIXED_POINT_SCALE
    try:
        dec = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a numeric reading: {value!r}")
    if not dec.is_finite():
        raise ValueError(f"Not a finite reading: {value!r}")
    scaled = dec * FIXED_POINT_SCALE
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"Reading {value!r} has more precision than 1/{FIXED_POINT_SCALE}"
        )
    return int(scaled)


def from_fixed(value: int) -> str:
    """Render fixed-point hundredths as a decimal string ("30.00")."""
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), FIXED_POINT_SCALE)
    return f"{sign}{whole}.{frac:02d}"


# ─────────────────────────────────────────────────────────────
# Policy
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CoverageWindow:
    start: int
    end:   int

    @property
    def duration(self) -> int:
        return self.end - self.start

    def contains(self, timestamp: int) -> bool:
        """Inclusive on both ends."""
        return self.start <= timestamp <= self.end


@dataclass(frozen=True)
class Policy:
    """
    One insurance contract. Immutable: status changes produce a new
    record via with_status(), performed only inside PolicyRegistry.
    """
    policy_id:     int
    holder:        str
    window:        CoverageWindow
    location:      str
    parameter:     WeatherParameter
    operator:      ComparisonOperator
    threshold:     int
    premium_paid:  int
    payout_amount: int
    status:        PolicyStatus
    created_at:    int

    @property
    def is_active(self) -> bool:
        return self.status is PolicyStatus.ACTIVE

    def covers(self, timestamp: int) -> bool:
        return self.window.contains(timestamp)

    def with_status(self, status: PolicyStatus) -> "Policy":
        if not can_transition(self.status, status):
            raise ValueError(
                f"Illegal policy transition {self.status.value} → {status.value}"
            )
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_id":     self.policy_id,
            "holder":        self.holder,
            "coverage_start": self.window.start,
            "coverage_end":  self.window.end,
            "location":      self.location,
            "parameter":     self.parameter.value,
            "operator":      self.operator.value,
            "threshold":     self.threshold,
            "premium_paid":  self.premium_paid,
            "payout_amount": self.payout_amount,
            "status":        self.status.value,
            "created_at":    self.created_at,
        }


# ─────────────────────────────────────────────────────────────
# Observation
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WeatherObservation:
    location:  str
    parameter: WeatherParameter
    value:     int
    timestamp: int
    proof:     Optional[str] = None

    def to_signing_dict(self) -> Dict[str, Any]:
        """The exact dict whose JCS bytes the issuer signs. Excludes proof."""
        return {
            "location":  self.location,
            "parameter": self.parameter.value,
            "timestamp": self.timestamp,
            "value":     self.value,
        }

    def with_proof(self, proof: str) -> "WeatherObservation":
        return replace(self, proof=proof)

    def to_dict(self) -> Dict[str, Any]:
        d = self.to_signing_dict()
        d["proof"] = self.proof
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeatherObservation":
        return cls(
            location=  data["location"],
            parameter= WeatherParameter(data["parameter"]),
            value=     int(data["value"]),
            timestamp= int(data["timestamp"]),
            proof=     data.get("proof"),
        )


# ─────────────────────────────────────────────────────────────
# Liquidity
# ─────────────────────────────────────────────────────────────

@dataclass
class LiquidityPosition:
    """Per-provider share balance plus the pool totals seen at deposit."""
    shares:             int = 0
    deposit_timestamp:  int = 0
    premiums_snapshot:  int = 0
    payouts_snapshot:   int = 0


@dataclass(frozen=True)
class PoolStats:
    total_value:      int
    total_liability:  int
    utilization_rate: int   # basis points
    total_premiums:   int
    total_payouts:    int
    total_shares:     int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_value":      self.total_value,
            "total_liability":  self.total_liability,
            "utilization_rate": self.utilization_rate,
            "total_premiums":   self.total_premiums,
            "total_payouts":    self.total_payouts,
            "total_shares":     self.total_shares,
        }


# ─────────────────────────────────────────────────────────────
# Settlement output
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClaimRecord:
    policy_id:             int
    holder:                str
    payout_amount:         int
    observation_timestamp: int
    settled_at:            int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_id":             self.policy_id,
            "holder":                self.holder,
            "payout_amount":         self.payout_amount,
            "observation_timestamp": self.observation_timestamp,
            "settled_at":            self.settled_at,
        }


@dataclass
class EvaluationReport:
    """What one evaluate() pass did."""
    observation:      WeatherObservation
    claims:           List[ClaimRecord] = field(default_factory=list)
    already_resolved: List[int]         = field(default_factory=list)
    candidates:       int               = 0

    @property
    def total_paid(self) -> int:
        return sum(c.payout_amount for c in self.claims)

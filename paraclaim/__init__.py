"""
paraclaim/__init__.py

paraclaim: settlement and accounting engine for parametric weather insurance.

Policyholders buy coverage against a weather trigger, liquidity providers
fund a shared pool for proportional shares, and a signed observation from
a single trusted issuer settles every triggered policy exactly once.
All amounts and readings are integers; every state change is recorded in
a hash-chained, Ed25519-signed audit log.
"""

__version__ = "0.3.0"

from paraclaim.core.audit import AuditLog
from paraclaim.core.config import EngineConfig, PolicyLimits, RiskTable
from paraclaim.core.crypto import Ed25519KeyManager
from paraclaim.core.envelope import AuditEnvelope, EventType
from paraclaim.core.exceptions import ParaclaimError
from paraclaim.core.models import (
    ComparisonOperator,
    CoverageWindow,
    FIXED_POINT_SCALE,
    Policy,
    PolicyStatus,
    WeatherObservation,
    WeatherParameter,
    from_fixed,
    to_fixed,
)
from paraclaim.ledger import LiquidityLedger
from paraclaim.oracle import ObservationGateway, sign_observation
from paraclaim.registry import PolicyRegistry
from paraclaim.runtime import InsuranceRuntime
from paraclaim.settlement import ClaimEvaluator

__all__ = [
    # Components
    "PolicyRegistry",
    "LiquidityLedger",
    "ObservationGateway",
    "ClaimEvaluator",
    "InsuranceRuntime",
    "AuditLog",
    # Types
    "AuditEnvelope",
    "EventType",
    "Policy",
    "PolicyStatus",
    "CoverageWindow",
    "WeatherObservation",
    "WeatherParameter",
    "ComparisonOperator",
    # Configuration
    "EngineConfig",
    "PolicyLimits",
    "RiskTable",
    # Helpers
    "Ed25519KeyManager",
    "sign_observation",
    "to_fixed",
    "from_fixed",
    # Errors
    "ParaclaimError",
    # Constants
    "FIXED_POINT_SCALE",
]

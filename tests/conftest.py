"""
tests/conftest.py

Shared fixtures: a pinned clock, an issuer key, a fully wired runtime and
helpers to buy policies and sign observations against it.
"""

import pytest

from paraclaim.core.config import EngineConfig
from paraclaim.core.crypto import Ed25519KeyManager
from paraclaim.core.models import (
    ComparisonOperator,
    CoverageWindow,
    WeatherObservation,
    WeatherParameter,
    to_fixed,
)
from paraclaim.core.time import DAY_SECONDS, FixedClock
from paraclaim.ledger.liquidity import LiquidityLedger
from paraclaim.ledger.transfer import InMemoryTransfer
from paraclaim.oracle.gateway import sign_observation
from paraclaim.runtime import EVALUATOR_IDENTITY, REGISTRY_IDENTITY, InsuranceRuntime


NOW    = 1_700_000_000
ADMIN  = "admin"
HOLDER = "alice"
LP     = "lp-1"


# ─────────────────────────────────────────────────────────────
# Primitives
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def issuer():
    return Ed25519KeyManager.generate()


@pytest.fixture
def transfer():
    return InMemoryTransfer()


# ─────────────────────────────────────────────────────────────
# Components
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def ledger(clock, transfer):
    return LiquidityLedger(
        admin=           ADMIN,
        policy_manager=  REGISTRY_IDENTITY,
        claim_evaluator= EVALUATOR_IDENTITY,
        transfer=        transfer,
        clock=           clock,
    )


@pytest.fixture
def config(issuer):
    return EngineConfig(admin=ADMIN, issuer_public_key=issuer.public_key_hex)


@pytest.fixture
def runtime(config, clock, transfer):
    return InsuranceRuntime(config=config, transfer=transfer, clock=clock)


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def coverage(clock, days=30, lead=3600):
    start = clock() + lead
    return CoverageWindow(start=start, end=start + days * DAY_SECONDS)


def buy(
    runtime,
    holder=HOLDER,
    location="NYC",
    parameter=WeatherParameter.TEMPERATURE,
    threshold="30",
    operator=ComparisonOperator.GREATER_THAN,
    payout=100_000,
    days=30,
):
    """Purchase a policy paying exactly the quoted premium. Returns (id, window)."""
    window  = coverage(runtime.clock, days=days)
    fixed   = to_fixed(threshold)
    premium = runtime.quote_premium(window, parameter, fixed, operator, payout)
    policy_id = runtime.purchase_policy(
        holder, window, location, parameter, fixed, operator, premium, payout,
    )
    return policy_id, window


def observe(
    issuer,
    value,
    timestamp,
    location="NYC",
    parameter=WeatherParameter.TEMPERATURE,
):
    """A signed observation; value in native units."""
    obs = WeatherObservation(
        location=  location,
        parameter= parameter,
        value=     to_fixed(value),
        timestamp= timestamp,
    )
    return sign_observation(obs, issuer)

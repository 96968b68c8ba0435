"""
Runtime context for a paraclaim insurance pool.

Wires the registry, ledger, gateway and evaluator from one EngineConfig
and serializes every state-changing call behind a single writer lock.
The components themselves are lock-free. A state-changing call first
checks that the audit log accepts appends, so an unwritable log rejects
the call before anything moves.
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from paraclaim.core.audit import AuditLog
from paraclaim.core.config import EngineConfig, PolicyLimits, RiskTable
from paraclaim.core.crypto import Ed25519KeyManager
from paraclaim.core.models import (
    ComparisonOperator,
    CoverageWindow,
    EvaluationReport,
    LiquidityPosition,
    Policy,
    PolicyStatus,
    PoolStats,
    WeatherObservation,
    WeatherParameter,
)
from paraclaim.core.time import Clock, unix_now
from paraclaim.ledger.liquidity import LiquidityLedger
from paraclaim.ledger.transfer import FundsTransfer
from paraclaim.oracle.gateway import ObservationGateway
from paraclaim.registry.registry import PolicyRegistry
from paraclaim.settlement.evaluator import ClaimEvaluator


logger = logging.getLogger(__name__)

REGISTRY_IDENTITY  = "policy-registry"
EVALUATOR_IDENTITY = "claim-evaluator"


class InsuranceRuntime:

    def __init__(
        self,
        config:    Optional[EngineConfig] = None,
        transfer:  Optional[FundsTransfer] = None,
        clock:     Clock = unix_now,
        audit_key: Optional[Ed25519KeyManager] = None,
    ) -> None:
        self.config = config or EngineConfig.default()
        self.clock  = clock
        self._lock  = threading.RLock()

        audit_path = Path(self.config.audit_log_path) if self.config.audit_log_path else None
        self.audit = AuditLog(key_manager=audit_key, path=audit_path)

        self.ledger = LiquidityLedger(
            admin=           self.config.admin,
            policy_manager=  REGISTRY_IDENTITY,
            claim_evaluator= EVALUATOR_IDENTITY,
            transfer=        transfer,
            audit=           self.audit,
            clock=           clock,
            yield_fraction=  self.config.yield_fraction,
        )
        self.registry = PolicyRegistry(
            ledger=          self.ledger,
            admin=           self.config.admin,
            claim_evaluator= EVALUATOR_IDENTITY,
            identity=        REGISTRY_IDENTITY,
            limits=          self.config.limits,
            risk=            self.config.risk,
            audit=           self.audit,
            clock=           clock,
            paused=          self.config.paused,
        )
        self.gateway = ObservationGateway(
            admin=      self.config.admin,
            issuer_key= self.config.issuer_public_key,
            audit=      self.audit,
            clock=      clock,
        )
        self.evaluator = ClaimEvaluator(
            gateway=  self.gateway,
            registry= self.registry,
            ledger=   self.ledger,
            identity= EVALUATOR_IDENTITY,
            audit=    self.audit,
            clock=    clock,
        )

    @classmethod
    def from_config(
        cls,
        config:    EngineConfig,
        transfer:  Optional[FundsTransfer] = None,
        clock:     Clock = unix_now,
        key_path:  Optional[Path] = None,
    ) -> "InsuranceRuntime":
        """Create a runtime, loading or creating the audit signing key at key_path."""
        audit_key = None
        if key_path is not None:
            key_path = Path(key_path)
            if key_path.exists():
                audit_key = Ed25519KeyManager.from_file(key_path)
            else:
                audit_key = Ed25519KeyManager.generate()
                audit_key.save(key_path)
                logger.info("Generated audit signing key at %s", key_path)
        return cls(config=config, transfer=transfer, clock=clock, audit_key=audit_key)

    @classmethod
    def from_yaml(
        cls,
        path:      Path,
        transfer:  Optional[FundsTransfer] = None,
        clock:     Clock = unix_now,
        key_path:  Optional[Path] = None,
    ) -> "InsuranceRuntime":
        return cls.from_config(
            EngineConfig.from_yaml(path), transfer=transfer, clock=clock, key_path=key_path,
        )

    # ── Policies ──────────────────────────────────────────────

    def purchase_policy(
        self,
        holder:        str,
        window:        CoverageWindow,
        location:      str,
        parameter:     WeatherParameter,
        threshold:     int,
        operator:      ComparisonOperator,
        premium_paid:  int,
        payout_amount: int,
    ) -> int:
        with self._writing():
            return self.registry.create_policy(
                holder, window, location, parameter, threshold,
                operator, premium_paid, payout_amount,
            )

    def quote_premium(
        self,
        window:        CoverageWindow,
        parameter:     WeatherParameter,
        threshold:     int,
        operator:      ComparisonOperator,
        payout_amount: int,
    ) -> int:
        with self._lock:
            return self.registry.quote_premium(
                window, parameter, threshold, operator, payout_amount,
            )

    def cancel_policy(self, policy_id: int, caller: str) -> Policy:
        with self._writing():
            return self.registry.cancel_policy(policy_id, caller)

    def sweep_expired(self, as_of: Optional[int] = None) -> List[int]:
        with self._writing():
            return self.registry.sweep_expired(as_of)

    def get_policy(self, policy_id: int) -> Policy:
        with self._lock:
            return self.registry.get_policy(policy_id)

    def get_policies_by_holder(self, holder: str) -> List[int]:
        with self._lock:
            return self.registry.get_policies_by_holder(holder)

    def get_policies_by_status(
        self,
        status: PolicyStatus,
        as_of:  Optional[int] = None,
    ) -> List[int]:
        with self._lock:
            return self.registry.get_policies_by_status(
                status, self.clock() if as_of is None else as_of,
            )

    # ── Liquidity ─────────────────────────────────────────────

    def deposit(self, provider: str, amount: int) -> int:
        with self._writing():
            return self.ledger.deposit(provider, amount)

    def withdraw(self, provider: str, shares: int) -> int:
        with self._writing():
            return self.ledger.withdraw(provider, shares)

    def calculate_yield(self, provider: str) -> int:
        with self._lock:
            return self.ledger.calculate_yield(provider)

    def share_balance(self, provider: str) -> int:
        with self._lock:
            return self.ledger.share_balance(provider)

    def get_position(self, provider: str) -> Optional[LiquidityPosition]:
        with self._lock:
            return self.ledger.get_position(provider)

    def get_pool_stats(self) -> PoolStats:
        with self._lock:
            return self.ledger.get_pool_stats()

    # ── Claims ────────────────────────────────────────────────

    def evaluate(self, observation: WeatherObservation) -> EvaluationReport:
        with self._writing():
            return self.evaluator.evaluate(observation)

    # ── Administration ────────────────────────────────────────

    def set_yield_fraction(self, fraction: int, caller: str) -> None:
        with self._writing():
            self.ledger.set_yield_fraction(fraction, caller)

    def set_policy_limits(self, limits: PolicyLimits, caller: str) -> None:
        with self._writing():
            self.registry.set_policy_limits(limits, caller)

    def set_risk_table(self, risk: RiskTable, caller: str) -> None:
        with self._writing():
            self.registry.set_risk_table(risk, caller)

    def set_issuer(self, public_key_hex: str, caller: str) -> None:
        with self._writing():
            self.gateway.set_issuer(public_key_hex, caller)

    def pause(self, caller: str) -> None:
        with self._writing():
            self.registry.pause(caller)

    def unpause(self, caller: str) -> None:
        with self._writing():
            self.registry.unpause(caller)

    # ── Health ────────────────────────────────────────────────

    def check_conservation(self) -> Dict[str, bool]:
        """
        Accounting invariants that must hold between any two operations.
        """
        with self._lock:
            ledger = self.ledger
            shares = sum(ledger.share_balance(p) for p in ledger.providers())
            return {
                "shares_conserved":   shares == ledger.total_shares,
                "liability_matches":  ledger.total_liability == self.registry.total_liability(),
                "value_non_negative": ledger.total_value >= 0,
            }

    def __repr__(self) -> str:
        return (
            f"InsuranceRuntime("
            f"policies={self.registry.policy_count()}, "
            f"pool_value={self.ledger.total_value}, "
            f"audit_entries={len(self.audit.entries)})"
        )

    # ── Internal ──────────────────────────────────────────────

    @contextmanager
    def _writing(self) -> Iterator[None]:
        """Writer lock plus an audit-log check, before any state changes."""
        with self._lock:
            self.audit.ensure_writable()
            yield

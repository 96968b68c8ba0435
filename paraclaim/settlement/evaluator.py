"""
Claim evaluator: turns one verified observation into payouts.

    evaluate(observation)
        1. gateway.submit()           unverified -> UnauthenticatedObservation
        2. candidates                 same (location, parameter), window
                                      contains the reading, trigger holds
        3. solvency pre-check         sum of ACTIVE payouts <= pool value
        4. per candidate              mark_claimed -> debit_payout -> event

A policy pays at most once: mark_claimed() refuses anything not ACTIVE,
and the status change happens before the ledger is asked to move funds.
Re-evaluating the same observation finds every policy already CLAIMED
and pays nothing.

Evaluation is not gated by pause; pause only stops new policies.
"""

import logging
from typing import List, Optional

from paraclaim.core.audit import AuditLog
from paraclaim.core.envelope import EventType
from paraclaim.core.exceptions import (
    AlreadyResolved,
    InsufficientLiquidity,
    TransferFailed,
    UnauthenticatedObservation,
)
from paraclaim.core.models import (
    ClaimRecord,
    ComparisonOperator,
    EvaluationReport,
    Policy,
    WeatherObservation,
)
from paraclaim.core.time import Clock, unix_now
from paraclaim.ledger.liquidity import LiquidityLedger
from paraclaim.oracle.gateway import ObservationGateway
from paraclaim.registry.registry import PolicyRegistry


logger = logging.getLogger(__name__)


def trigger_holds(value: int, threshold: int, operator: ComparisonOperator) -> bool:
    """Strict integer comparison of a fixed-point reading against a threshold."""
    if operator is ComparisonOperator.GREATER_THAN:
        return value > threshold
    if operator is ComparisonOperator.LESS_THAN:
        return value < threshold
    if operator is ComparisonOperator.EQUAL_TO:
        return value == threshold
    raise ValueError(f"Unknown comparison operator: {operator!r}")


class ClaimEvaluator:

    def __init__(
        self,
        gateway:  ObservationGateway,
        registry: PolicyRegistry,
        ledger:   LiquidityLedger,
        identity: str = "claim-evaluator",
        audit:    Optional[AuditLog] = None,
        clock:    Clock = unix_now,
    ) -> None:
        self.gateway  = gateway
        self.registry = registry
        self.ledger   = ledger
        self.identity = identity
        self.audit    = audit
        self.clock    = clock

    def triggered_policies(self, observation: WeatherObservation) -> List[Policy]:
        """Policies this reading triggers, regardless of current status."""
        return [
            policy
            for policy in self.registry.candidates_for(
                observation.location, observation.parameter,
            )
            if policy.covers(observation.timestamp)
            and trigger_holds(observation.value, policy.threshold, policy.operator)
        ]

    def evaluate(self, observation: WeatherObservation) -> EvaluationReport:
        """
        Settle every policy triggered by a verified observation.

        Raises:
            UnauthenticatedObservation — proof missing or invalid; nothing changes
            InsufficientLiquidity      — pool cannot cover all triggered payouts;
                                         nothing changes
            TransferFailed             — a payout transfer failed; that policy is
                                         back to ACTIVE, earlier ones stay settled
        """
        if not self.gateway.submit(observation):
            raise UnauthenticatedObservation(
                "Observation proof did not verify",
                {
                    "location":  observation.location,
                    "parameter": observation.parameter.value,
                    "timestamp": observation.timestamp,
                },
            )

        triggered = self.triggered_policies(observation)
        report    = EvaluationReport(observation=observation, candidates=len(triggered))

        owed = sum(p.payout_amount for p in triggered if p.is_active)
        if owed > self.ledger.total_value:
            raise InsufficientLiquidity(
                "Pool cannot cover triggered payouts",
                {"owed": owed, "total_value": self.ledger.total_value},
            )

        for policy in triggered:
            record = self._settle(policy, observation)
            if record is None:
                report.already_resolved.append(policy.policy_id)
            else:
                report.claims.append(record)

        if report.claims:
            logger.info(
                "Observation %s/%s=%d at %d settled %d claims totalling %d",
                observation.location, observation.parameter.value,
                observation.value, observation.timestamp,
                len(report.claims), report.total_paid,
            )
        return report

    def _settle(
        self,
        policy:      Policy,
        observation: WeatherObservation,
    ) -> Optional[ClaimRecord]:
        try:
            self.registry.mark_claimed(
                policy.policy_id, caller=self.identity, payout=self._pay,
            )
        except AlreadyResolved:
            logger.debug("Policy %d already resolved; skipping", policy.policy_id)
            return None
        except TransferFailed:
            logger.error(
                "Payout transfer for policy %d failed; policy left ACTIVE",
                policy.policy_id,
            )
            raise

        record = ClaimRecord(
            policy_id=             policy.policy_id,
            holder=                policy.holder,
            payout_amount=         policy.payout_amount,
            observation_timestamp= observation.timestamp,
            settled_at=            self.clock(),
        )
        if self.audit is not None:
            self.audit.emit(EventType.CLAIM_PROCESSED, {
                **record.to_dict(),
                "location":  observation.location,
                "parameter": observation.parameter.value,
                "value":     observation.value,
            }, actor=self.identity)
        return record

    def _pay(self, policy: Policy) -> None:
        self.ledger.debit_payout(policy.holder, policy.payout_amount, caller=self.identity)

"""
Policy registry: owner of every policy record and its lifecycle.

    ACTIVE ──► CLAIMED     mark_claimed()     claim evaluator only
       │──► EXPIRED     sweep_expired()    anyone; lapse is objective
       └──► CANCELLED   cancel_policy()    admin only

Non-ACTIVE records never change again and are never deleted.

Purchase is all-or-nothing: every check runs first, then the premium is
credited to the liquidity ledger, and only then is the record stored.
Storing cannot fail, so a failed credit leaves no policy behind.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from paraclaim.core.access import require_admin, require_caller
from paraclaim.core.audit import AuditLog
from paraclaim.core.config import PolicyLimits, RiskTable
from paraclaim.core.envelope import EventType
from paraclaim.core.exceptions import (
    AlreadyResolved,
    InvalidPolicyParameters,
    NotFound,
    SystemPaused,
)
from paraclaim.core.models import (
    ComparisonOperator,
    CoverageWindow,
    Policy,
    PolicyStatus,
    WeatherParameter,
)
from paraclaim.core.time import Clock, unix_now
from paraclaim.ledger.liquidity import LiquidityLedger
from paraclaim.registry.premium import PremiumCalculator


logger = logging.getLogger(__name__)

MIN_LOCATION_LENGTH = 2
MAX_LOCATION_LENGTH = 100


class PolicyRegistry:
    """
    Roles:
        identity         — this registry's own identity towards the ledger
        admin            — limits, risk table, pause, cancel
        claim_evaluator  — mark_claimed
    """

    def __init__(
        self,
        ledger:          LiquidityLedger,
        admin:           str,
        claim_evaluator: str,
        identity:        str = "policy-registry",
        limits:          Optional[PolicyLimits] = None,
        risk:            Optional[RiskTable] = None,
        audit:           Optional[AuditLog] = None,
        clock:           Clock = unix_now,
        paused:          bool = False,
    ) -> None:
        self.ledger          = ledger
        self.admin           = admin
        self.claim_evaluator = claim_evaluator
        self.identity        = identity
        self.limits          = limits or PolicyLimits()
        self.premiums        = PremiumCalculator(risk or RiskTable())
        self.audit           = audit
        self.clock           = clock
        self.paused          = paused

        self._policies:  Dict[int, Policy]  = {}
        self._by_holder: Dict[str, List[int]] = defaultdict(list)
        self._by_market: Dict[Tuple[str, WeatherParameter], List[int]] = defaultdict(list)
        self._next_id:   int = 1

    # ── Purchase ──────────────────────────────────────────────

    def create_policy(
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
        """
        Validate, credit the premium, store an ACTIVE policy, return its id.

        Raises:
            SystemPaused             — intake is paused
            InvalidPolicyParameters  — any term out of bounds or premium too low
        """
        if self.paused:
            raise SystemPaused("New policies are not accepted while paused")

        now = self.clock()
        self._validate(
            holder, window, location, parameter, threshold,
            operator, premium_paid, payout_amount, now,
        )
        # Stored and indexed trimmed; candidates_for() trims the lookup too.
        location = location.strip()

        self.ledger.credit_premium(premium_paid, caller=self.identity)

        policy = Policy(
            policy_id=     self._next_id,
            holder=        holder,
            window=        window,
            location=      location,
            parameter=     parameter,
            operator=      operator,
            threshold=     threshold,
            premium_paid=  premium_paid,
            payout_amount= payout_amount,
            status=        PolicyStatus.ACTIVE,
            created_at=    now,
        )
        self._next_id += 1
        self._policies[policy.policy_id] = policy
        self._by_holder[holder].append(policy.policy_id)
        self._by_market[(location, parameter)].append(policy.policy_id)
        self._push_liability()

        logger.info(
            "Policy %d created for %s: %s %s %d at %s",
            policy.policy_id, holder, parameter.value,
            operator.value, threshold, location,
        )
        self._emit(EventType.POLICY_CREATED, {
            **policy.to_dict(),
            "total_liability": self.ledger.total_liability,
        }, actor=holder)
        return policy.policy_id

    def quote_premium(
        self,
        window:        CoverageWindow,
        parameter:     WeatherParameter,
        threshold:     int,
        operator:      ComparisonOperator,
        payout_amount: int,
    ) -> int:
        return self.premiums.required_premium(
            window.duration, payout_amount, parameter, threshold, operator,
        )

    # ── Queries ───────────────────────────────────────────────

    def get_policy(self, policy_id: int) -> Policy:
        try:
            return self._policies[policy_id]
        except KeyError:
            raise NotFound("Policy not found", {"policy_id": policy_id}) from None

    def get_policies_by_holder(self, holder: str) -> List[int]:
        return list(self._by_holder.get(holder, ()))

    def get_policies_by_status(self, status: PolicyStatus, as_of: int) -> List[int]:
        """
        Ids matching `status` as of a point in time.

        ACTIVE  — stored ACTIVE and as_of within the coverage window
        EXPIRED — stored EXPIRED, plus stored ACTIVE whose window ended before as_of
        others  — stored status only
        """
        result = []
        for policy in self._policies.values():
            if status is PolicyStatus.ACTIVE:
                if policy.is_active and policy.covers(as_of):
                    result.append(policy.policy_id)
            elif status is PolicyStatus.EXPIRED:
                lapsed = policy.is_active and policy.window.end < as_of
                if policy.status is PolicyStatus.EXPIRED or lapsed:
                    result.append(policy.policy_id)
            elif policy.status is status:
                result.append(policy.policy_id)
        return result

    def candidates_for(self, location: str, parameter: WeatherParameter) -> List[Policy]:
        """Every policy written on this (location, parameter), any status."""
        return [
            self._policies[pid]
            for pid in self._by_market.get((location.strip(), parameter), ())
        ]

    def policy_count(self) -> int:
        return len(self._policies)

    def total_liability(self) -> int:
        return sum(p.payout_amount for p in self._policies.values() if p.is_active)

    # ── Transitions ───────────────────────────────────────────

    def mark_claimed(
        self,
        policy_id: int,
        caller:    str,
        payout:    Optional[Callable[[Policy], None]] = None,
    ) -> Policy:
        """
        Move an ACTIVE policy to CLAIMED.

        When `payout` is given it is called with the claimed record. If it
        raises, the policy is restored to its prior ACTIVE record and the
        exception propagates; the claim never completed.
        """
        require_caller(caller, (self.claim_evaluator,), "mark_claimed")
        original = self.get_policy(policy_id)
        claimed  = self._transition(policy_id, PolicyStatus.CLAIMED)
        if payout is None:
            return claimed
        try:
            payout(claimed)
        except Exception:
            self._policies[policy_id] = original
            self._push_liability()
            raise
        return claimed

    def cancel_policy(self, policy_id: int, caller: str) -> Policy:
        require_admin(caller, self.admin, "cancel_policy")
        policy = self._transition(policy_id, PolicyStatus.CANCELLED)
        self._emit(EventType.POLICY_CANCELLED, policy.to_dict(), actor=caller)
        return policy

    def sweep_expired(self, as_of: Optional[int] = None) -> List[int]:
        """Move every ACTIVE policy whose window ended before as_of to EXPIRED."""
        as_of   = self.clock() if as_of is None else as_of
        expired = [
            p.policy_id for p in self._policies.values()
            if p.is_active and p.window.end < as_of
        ]
        for policy_id in expired:
            policy = self._transition(policy_id, PolicyStatus.EXPIRED)
            self._emit(EventType.POLICY_EXPIRED, policy.to_dict(), actor=self.identity)
        if expired:
            logger.info("Expired %d lapsed policies as of %d", len(expired), as_of)
        return expired

    # ── Administration ────────────────────────────────────────

    def set_policy_limits(self, limits: PolicyLimits, caller: str) -> None:
        require_admin(caller, self.admin, "set_policy_limits")
        old, self.limits = self.limits, limits
        self._config_changed("policy_limits", old.to_dict(), limits.to_dict(), caller)

    def set_risk_table(self, risk: RiskTable, caller: str) -> None:
        require_admin(caller, self.admin, "set_risk_table")
        old, self.premiums = self.premiums, PremiumCalculator(risk)
        self._config_changed("risk_table", old.risk.to_dict(), risk.to_dict(), caller)

    def pause(self, caller: str) -> None:
        require_admin(caller, self.admin, "pause")
        self._set_paused(True, caller)

    def unpause(self, caller: str) -> None:
        require_admin(caller, self.admin, "unpause")
        self._set_paused(False, caller)

    # ── Internal ──────────────────────────────────────────────

    def _validate(
        self,
        holder:        str,
        window:        CoverageWindow,
        location:      str,
        parameter:     WeatherParameter,
        threshold:     int,
        operator:      ComparisonOperator,
        premium_paid:  int,
        payout_amount: int,
        now:           int,
    ) -> None:
        def reject(field_name: str, reason: str, **details) -> None:
            raise InvalidPolicyParameters(
                reason, {"field": field_name, **details}
            )

        if not holder:
            reject("holder", "Holder identity is required")
        if not isinstance(parameter, WeatherParameter):
            reject("parameter", "Unknown weather parameter", value=parameter)
        if not isinstance(operator, ComparisonOperator):
            reject("operator", "Unknown comparison operator", value=operator)
        for name, value in (
            ("threshold", threshold),
            ("premium_paid", premium_paid),
            ("payout_amount", payout_amount),
            ("coverage_start", window.start),
            ("coverage_end", window.end),
        ):
            if isinstance(value, bool) or not isinstance(value, int):
                reject(name, "Value must be an integer", value=value)

        stripped = location.strip() if isinstance(location, str) else ""
        if not MIN_LOCATION_LENGTH <= len(stripped) <= MAX_LOCATION_LENGTH:
            reject(
                "location",
                f"Location must be {MIN_LOCATION_LENGTH}-{MAX_LOCATION_LENGTH} characters",
                value=location,
            )

        if window.start <= now:
            reject("coverage_start", "Coverage must start in the future",
                   start=window.start, now=now)
        if window.end <= window.start:
            reject("coverage_end", "Coverage must end after it starts",
                   start=window.start, end=window.end)

        limits = self.limits
        if not limits.min_coverage_seconds <= window.duration <= limits.max_coverage_seconds:
            reject("coverage_end", "Coverage duration out of bounds",
                   duration=window.duration,
                   min=limits.min_coverage_seconds,
                   max=limits.max_coverage_seconds)

        low, high = limits.threshold_range(parameter)
        if not low <= threshold <= high:
            reject("threshold", "Trigger threshold out of range",
                   threshold=threshold, min=low, max=high)

        if not limits.min_payout <= payout_amount <= limits.max_payout:
            reject("payout_amount", "Payout amount out of bounds",
                   payout=payout_amount, min=limits.min_payout, max=limits.max_payout)

        required = self.premiums.required_premium(
            window.duration, payout_amount, parameter, threshold, operator,
        )
        if premium_paid < required:
            reject("premium_paid", "Premium below required amount",
                   paid=premium_paid, required=required)

    def _transition(self, policy_id: int, target: PolicyStatus) -> Policy:
        policy = self.get_policy(policy_id)
        if not policy.is_active:
            raise AlreadyResolved(
                "Policy is no longer active",
                {"policy_id": policy_id, "status": policy.status.value},
            )
        updated = policy.with_status(target)
        self._policies[policy_id] = updated
        self._push_liability()
        return updated

    def _push_liability(self) -> None:
        self.ledger.set_liability(self.total_liability(), caller=self.identity)

    def _set_paused(self, paused: bool, caller: str) -> None:
        old, self.paused = self.paused, paused
        logger.warning("Policy intake %s by %s", "paused" if paused else "resumed", caller)
        self._config_changed("paused", old, paused, caller)

    def _config_changed(self, parameter: str, old, new, caller: str) -> None:
        self._emit(EventType.CONFIGURATION_CHANGED, {
            "parameter": parameter,
            "old_value": old,
            "new_value": new,
            "timestamp": self.clock(),
        }, actor=caller)

    def _emit(self, event_type: str, payload: dict, actor: str) -> None:
        if self.audit is not None:
            self.audit.emit(event_type, payload, actor=actor)

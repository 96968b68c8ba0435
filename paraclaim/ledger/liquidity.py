"""
Liquidity ledger: the shared capital pool and its proportional shares.

Invariants:
    sum(position.shares for all providers) == total_shares
    a withdrawal never takes total_value below total_liability
    every outbound transfer happens after bookkeeping; if it raises,
    that operation's bookkeeping is rolled back

Share arithmetic is integer only. Mint and burn multiply before they
divide, so floor division is the single source of rounding and it
always rounds in the pool's favour.
"""

import copy
import logging
from typing import Dict, List, Optional

from paraclaim.core.access import require_admin, require_caller
from paraclaim.core.audit import AuditLog
from paraclaim.core.envelope import EventType
from paraclaim.core.exceptions import (
    InsufficientLiquidity,
    InsufficientShares,
    InvalidFraction,
    TransferFailed,
    ValidationError,
    ZeroAmount,
)
from paraclaim.core.models import LiquidityPosition, PoolStats
from paraclaim.core.time import Clock, unix_now
from paraclaim.ledger.transfer import FundsTransfer, InMemoryTransfer


logger = logging.getLogger(__name__)

BASIS_POINTS = 10_000


class LiquidityLedger:
    """
    Pool accounting for liquidity providers.

    Roles:
        admin            — set_yield_fraction, set_liability
        policy_manager   — credit_premium, set_liability
        claim_evaluator  — debit_payout
        anyone           — deposit, withdraw (own shares), reads
    """

    def __init__(
        self,
        admin:           str,
        policy_manager:  str,
        claim_evaluator: str,
        transfer:        Optional[FundsTransfer] = None,
        audit:           Optional[AuditLog] = None,
        clock:           Clock = unix_now,
        yield_fraction:  int = 80,
    ) -> None:
        self.admin           = admin
        self.policy_manager  = policy_manager
        self.claim_evaluator = claim_evaluator
        self.transfer        = transfer if transfer is not None else InMemoryTransfer()
        self.audit           = audit
        self.clock           = clock

        _check_fraction(yield_fraction)
        self.yield_fraction: int = yield_fraction

        self.total_value:     int = 0
        self.total_shares:    int = 0
        self.total_premiums:  int = 0
        self.total_payouts:   int = 0
        self.total_liability: int = 0
        self._positions: Dict[str, LiquidityPosition] = {}

    # ── Providers ─────────────────────────────────────────────

    def deposit(self, provider: str, amount: int) -> int:
        """
        Add `amount` to the pool and mint proportional shares.

        The first deposit into an empty pool mints 1:1. Raises ZeroAmount
        for a non-positive amount or one too small to mint a single share.
        """
        if amount <= 0:
            raise ZeroAmount("Deposit amount must be positive", {"amount": amount})

        if self.total_shares == 0:
            shares = amount
        elif self.total_value == 0:
            # Outstanding shares back nothing; any mint price would be arbitrary.
            raise InsufficientLiquidity(
                "Pool value is exhausted; deposits are suspended",
                {"total_shares": self.total_shares},
            )
        else:
            shares = amount * self.total_shares // self.total_value
        if shares == 0:
            raise ZeroAmount(
                "Deposit too small to mint a share",
                {"amount": amount, "total_value": self.total_value},
            )

        before = self._pool_snapshot()
        now    = self.clock()

        position = self._positions.setdefault(provider, LiquidityPosition())
        position.shares            += shares
        position.deposit_timestamp  = now
        position.premiums_snapshot  = self.total_premiums
        position.payouts_snapshot   = self.total_payouts

        self.total_shares += shares
        self.total_value  += amount

        logger.info("Deposit of %d by %s minted %d shares", amount, provider, shares)
        self._emit(EventType.LIQUIDITY_DEPOSITED, {
            "provider":       provider,
            "amount":         amount,
            "shares_minted":  shares,
            "provider_shares": position.shares,
            "before":         before,
            "after":          self._pool_snapshot(),
        }, actor=provider)
        return shares

    def withdraw(self, provider: str, shares: int) -> int:
        """
        Burn `shares` and pay the provider their proportional value.

        Raises:
            ZeroAmount            — shares <= 0
            InsufficientShares    — provider holds fewer shares
            InsufficientLiquidity — payout would dip into reserved liability
            TransferFailed        — host transfer raised; nothing changed
        """
        if shares <= 0:
            raise ZeroAmount("Shares to burn must be positive", {"shares": shares})

        position = self._positions.get(provider)
        balance  = position.shares if position else 0
        if balance < shares:
            raise InsufficientShares(
                "Provider does not hold enough shares",
                {"provider": provider, "balance": balance, "requested": shares},
            )

        amount = shares * self.total_value // self.total_shares
        if amount > self.available_liquidity():
            raise InsufficientLiquidity(
                "Withdrawal exceeds unreserved liquidity",
                {"amount": amount, "available": self.available_liquidity()},
            )

        saved  = self._save_state()
        before = self._pool_snapshot()

        position.shares   -= shares
        self.total_shares -= shares
        self.total_value  -= amount
        if position.shares == 0:
            del self._positions[provider]

        self._send(provider, amount, saved)

        logger.info("Withdrawal of %d shares by %s returned %d", shares, provider, amount)
        self._emit(EventType.LIQUIDITY_WITHDRAWN, {
            "provider":        provider,
            "shares_burned":   shares,
            "amount":          amount,
            "provider_shares": balance - shares,
            "before":          before,
            "after":           self._pool_snapshot(),
        }, actor=provider)
        return amount

    # ── Policy flows ──────────────────────────────────────────

    def credit_premium(self, amount: int, caller: str) -> None:
        require_caller(caller, (self.policy_manager,), "credit_premium")
        if amount < 0:
            raise ValidationError("Premium must be non-negative", {"amount": amount})

        before = self._pool_snapshot()
        self.total_premiums += amount
        self.total_value    += amount

        self._emit(EventType.PREMIUM_CREDITED, {
            "amount": amount,
            "before": before,
            "after":  self._pool_snapshot(),
        }, actor=caller)

    def debit_payout(self, recipient: str, amount: int, caller: str) -> None:
        """
        Pay `amount` to `recipient`. Each call debits independently; the
        claim evaluator is responsible for calling at most once per policy.
        """
        require_caller(caller, (self.claim_evaluator,), "debit_payout")
        if amount <= 0:
            raise ZeroAmount("Payout must be positive", {"amount": amount})
        if amount > self.total_value:
            raise InsufficientLiquidity(
                "Pool cannot cover payout",
                {"amount": amount, "total_value": self.total_value},
            )

        saved  = self._save_state()
        before = self._pool_snapshot()

        self.total_payouts += amount
        self.total_value   -= amount

        self._send(recipient, amount, saved)

        logger.info("Paid %d to %s", amount, recipient)
        self._emit(EventType.PAYOUT_DEBITED, {
            "recipient": recipient,
            "amount":    amount,
            "before":    before,
            "after":     self._pool_snapshot(),
        }, actor=caller)

    def set_liability(self, new_total: int, caller: str) -> None:
        """Replace the reserved liability. Used only to gate withdrawals."""
        require_caller(caller, (self.policy_manager, self.admin), "set_liability")
        if new_total < 0:
            raise ValidationError("Liability must be non-negative", {"liability": new_total})
        self.total_liability = new_total

    # ── Configuration ─────────────────────────────────────────

    def set_yield_fraction(self, fraction: int, caller: str) -> None:
        require_admin(caller, self.admin, "set_yield_fraction")
        _check_fraction(fraction)

        old = self.yield_fraction
        self.yield_fraction = fraction
        self._emit(EventType.CONFIGURATION_CHANGED, {
            "parameter": "yield_fraction",
            "old_value": old,
            "new_value": fraction,
            "timestamp": self.clock(),
        }, actor=caller)

    # ── Reads ─────────────────────────────────────────────────

    def calculate_yield(self, provider: str) -> int:
        """
        Yield accrued by a provider since their last deposit. Pure read.

            net    = max(0, Δpremiums - Δpayouts)   since deposit
            share  = net * provider_shares // total_shares
            yield  = share * yield_fraction // 100
        """
        position = self._positions.get(provider)
        if position is None or self.total_shares == 0:
            return 0

        premiums = self.total_premiums - position.premiums_snapshot
        payouts  = self.total_payouts - position.payouts_snapshot
        net      = max(0, premiums - payouts)

        provider_share = net * position.shares // self.total_shares
        return provider_share * self.yield_fraction // 100

    def available_liquidity(self) -> int:
        return max(0, self.total_value - self.total_liability)

    def share_balance(self, provider: str) -> int:
        position = self._positions.get(provider)
        return position.shares if position else 0

    def get_position(self, provider: str) -> Optional[LiquidityPosition]:
        position = self._positions.get(provider)
        return copy.copy(position) if position else None

    def providers(self) -> List[str]:
        return list(self._positions)

    def get_pool_stats(self) -> PoolStats:
        if self.total_value == 0:
            utilization = 0
        else:
            utilization = self.total_liability * BASIS_POINTS // self.total_value
        return PoolStats(
            total_value=      self.total_value,
            total_liability=  self.total_liability,
            utilization_rate= utilization,
            total_premiums=   self.total_premiums,
            total_payouts=    self.total_payouts,
            total_shares=     self.total_shares,
        )

    # ── Internal ──────────────────────────────────────────────

    def _send(self, recipient: str, amount: int, saved: dict) -> None:
        try:
            self.transfer.transfer(recipient, amount)
        except Exception as exc:
            self._restore_state(saved)
            logger.error("Transfer of %d to %s failed: %s", amount, recipient, exc)
            raise TransferFailed(
                "Funds transfer failed; ledger state restored",
                {"recipient": recipient, "amount": amount},
            ) from exc

    def _save_state(self) -> dict:
        return {
            "total_value":    self.total_value,
            "total_shares":   self.total_shares,
            "total_premiums": self.total_premiums,
            "total_payouts":  self.total_payouts,
            "positions":      copy.deepcopy(self._positions),
        }

    def _restore_state(self, saved: dict) -> None:
        self.total_value    = saved["total_value"]
        self.total_shares   = saved["total_shares"]
        self.total_premiums = saved["total_premiums"]
        self.total_payouts  = saved["total_payouts"]
        self._positions     = saved["positions"]

    def _pool_snapshot(self) -> Dict[str, int]:
        return {
            "total_value":    self.total_value,
            "total_shares":   self.total_shares,
            "total_premiums": self.total_premiums,
            "total_payouts":  self.total_payouts,
        }

    def _emit(self, event_type: str, payload: dict, actor: str) -> None:
        if self.audit is not None:
            self.audit.emit(event_type, payload, actor=actor)


def _check_fraction(fraction: int) -> None:
    if isinstance(fraction, bool) or not isinstance(fraction, int) or not 0 <= fraction <= 100:
        raise InvalidFraction(
            "Yield fraction must be an integer percentage within 0..100",
            {"fraction": fraction},
        )

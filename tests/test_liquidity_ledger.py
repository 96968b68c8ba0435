"""
tests/test_liquidity_ledger.py

Pool accounting: share mint/burn, reserved liability, yield and the
roll-back of bookkeeping when the host transfer fails.
"""

import pytest

from paraclaim.core.audit import AuditLog
from paraclaim.core.envelope import EventType
from paraclaim.core.exceptions import (
    InsufficientLiquidity,
    InsufficientShares,
    InvalidFraction,
    TransferFailed,
    Unauthorized,
    ZeroAmount,
)
from paraclaim.ledger.liquidity import LiquidityLedger
from paraclaim.runtime import EVALUATOR_IDENTITY, REGISTRY_IDENTITY

from conftest import ADMIN


class FailingTransfer:
    def transfer(self, recipient, amount):
        raise ConnectionError("settlement rail down")


def _share_sum(ledger):
    return sum(ledger.share_balance(p) for p in ledger.providers())


# ─────────────────────────────────────────────────────────────
# Deposit / withdraw
# ─────────────────────────────────────────────────────────────

class TestShares:

    def test_first_deposit_mints_one_to_one(self, ledger):
        assert ledger.deposit("alice", 1000) == 1000
        assert ledger.total_value == 1000
        assert ledger.total_shares == 1000

    def test_proportional_mint_and_burn(self, ledger):
        """1000 value / 1000 shares: deposit 500 mints 500, burning 750 returns 750."""
        ledger.deposit("alice", 1000)
        assert ledger.deposit("bob", 500) == 500
        assert ledger.withdraw("alice", 750) == 750
        assert ledger.total_value == 750
        assert ledger.total_shares == 750

    def test_mint_price_follows_pool_growth(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.credit_premium(1000, caller=REGISTRY_IDENTITY)
        # 2000 value backs 1000 shares: 2 per share
        assert ledger.deposit("bob", 500) == 250
        assert ledger.withdraw("alice", 1000) == 2000

    def test_mint_rounds_down(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.credit_premium(2000, caller=REGISTRY_IDENTITY)
        assert ledger.deposit("bob", 10) == 3

    def test_deposit_too_small_for_one_share(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.credit_premium(2000, caller=REGISTRY_IDENTITY)
        with pytest.raises(ZeroAmount):
            ledger.deposit("bob", 2)
        assert ledger.share_balance("bob") == 0

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_deposit_rejected(self, ledger, amount):
        with pytest.raises(ZeroAmount):
            ledger.deposit("alice", amount)

    def test_withdraw_more_than_held(self, ledger):
        ledger.deposit("alice", 100)
        with pytest.raises(InsufficientShares):
            ledger.withdraw("alice", 101)
        with pytest.raises(InsufficientShares):
            ledger.withdraw("stranger", 1)

    def test_withdraw_zero_rejected(self, ledger):
        ledger.deposit("alice", 100)
        with pytest.raises(ZeroAmount):
            ledger.withdraw("alice", 0)

    def test_full_exit_removes_position(self, ledger):
        ledger.deposit("alice", 100)
        ledger.withdraw("alice", 100)
        assert ledger.get_position("alice") is None
        assert ledger.providers() == []

    def test_share_sum_matches_supply(self, ledger):
        ledger.deposit("a", 1000)
        ledger.deposit("b", 333)
        ledger.credit_premium(77, caller=REGISTRY_IDENTITY)
        ledger.deposit("c", 50)
        ledger.withdraw("b", 100)
        ledger.debit_payout("holder", 200, caller=EVALUATOR_IDENTITY)
        ledger.withdraw("a", 500)
        assert _share_sum(ledger) == ledger.total_shares

    def test_deposits_suspended_when_value_exhausted(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.debit_payout("holder", 1000, caller=EVALUATOR_IDENTITY)
        with pytest.raises(InsufficientLiquidity):
            ledger.deposit("bob", 500)

    def test_get_position_is_a_copy(self, ledger):
        ledger.deposit("alice", 100)
        ledger.get_position("alice").shares = 999
        assert ledger.share_balance("alice") == 100


# ─────────────────────────────────────────────────────────────
# Liability reserve
# ─────────────────────────────────────────────────────────────

class TestLiability:

    def test_withdraw_cannot_touch_reserved_liability(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.set_liability(900, caller=REGISTRY_IDENTITY)
        with pytest.raises(InsufficientLiquidity):
            ledger.withdraw("alice", 1000)
        assert ledger.withdraw("alice", 100) == 100
        assert ledger.available_liquidity() == 0

    def test_only_registry_or_admin_sets_liability(self, ledger):
        ledger.set_liability(10, caller=ADMIN)
        with pytest.raises(Unauthorized):
            ledger.set_liability(0, caller="alice")
        assert ledger.total_liability == 10

    def test_utilization_in_basis_points(self, ledger):
        ledger.deposit("alice", 2000)
        ledger.set_liability(500, caller=REGISTRY_IDENTITY)
        stats = ledger.get_pool_stats()
        assert stats.utilization_rate == 2500
        assert stats.total_value == 2000

    def test_utilization_of_empty_pool_is_zero(self, ledger):
        assert ledger.get_pool_stats().utilization_rate == 0


# ─────────────────────────────────────────────────────────────
# Premiums, payouts, yield
# ─────────────────────────────────────────────────────────────

class TestFlows:

    def test_credit_premium_requires_registry(self, ledger):
        with pytest.raises(Unauthorized):
            ledger.credit_premium(10, caller="alice")
        assert ledger.total_value == 0

    def test_debit_payout_requires_evaluator(self, ledger):
        ledger.deposit("alice", 1000)
        with pytest.raises(Unauthorized):
            ledger.debit_payout("bob", 10, caller=REGISTRY_IDENTITY)

    def test_debit_payout_moves_funds(self, ledger, transfer):
        ledger.deposit("alice", 1000)
        ledger.debit_payout("bob", 400, caller=EVALUATOR_IDENTITY)
        assert ledger.total_value == 600
        assert ledger.total_payouts == 400
        assert transfer.total_to("bob") == 400

    def test_debit_beyond_value_rejected(self, ledger):
        ledger.deposit("alice", 100)
        with pytest.raises(InsufficientLiquidity):
            ledger.debit_payout("bob", 101, caller=EVALUATOR_IDENTITY)
        assert ledger.total_value == 100

    def test_yield_share_of_net_premiums(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.credit_premium(100, caller=REGISTRY_IDENTITY)
        assert ledger.calculate_yield("alice") == 80

    def test_yield_is_zero_when_payouts_exceed_premiums(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.credit_premium(100, caller=REGISTRY_IDENTITY)
        ledger.debit_payout("bob", 300, caller=EVALUATOR_IDENTITY)
        assert ledger.calculate_yield("alice") == 0

    def test_yield_counts_only_since_deposit(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.credit_premium(100, caller=REGISTRY_IDENTITY)
        ledger.deposit("alice", 100)
        assert ledger.calculate_yield("alice") == 0

    def test_set_yield_fraction(self, ledger):
        ledger.deposit("alice", 1000)
        ledger.credit_premium(100, caller=REGISTRY_IDENTITY)
        ledger.set_yield_fraction(50, caller=ADMIN)
        assert ledger.calculate_yield("alice") == 50

    @pytest.mark.parametrize("fraction", [-1, 101, True])
    def test_invalid_yield_fraction(self, ledger, fraction):
        with pytest.raises(InvalidFraction):
            ledger.set_yield_fraction(fraction, caller=ADMIN)
        assert ledger.yield_fraction == 80

    def test_yield_fraction_admin_only(self, ledger):
        with pytest.raises(Unauthorized):
            ledger.set_yield_fraction(10, caller="alice")


# ─────────────────────────────────────────────────────────────
# Transfer failure
# ─────────────────────────────────────────────────────────────

class TestTransferFailure:

    @pytest.fixture
    def failing(self, clock):
        return LiquidityLedger(
            admin=           ADMIN,
            policy_manager=  REGISTRY_IDENTITY,
            claim_evaluator= EVALUATOR_IDENTITY,
            transfer=        FailingTransfer(),
            clock=           clock,
        )

    def test_failed_withdraw_restores_state(self, failing):
        failing.deposit("alice", 1000)
        with pytest.raises(TransferFailed):
            failing.withdraw("alice", 400)
        assert failing.share_balance("alice") == 1000
        assert failing.total_value == 1000
        assert failing.total_shares == 1000

    def test_failed_full_exit_restores_position(self, failing):
        failing.deposit("alice", 1000)
        with pytest.raises(TransferFailed):
            failing.withdraw("alice", 1000)
        assert failing.get_position("alice").shares == 1000

    def test_failed_payout_restores_state(self, failing):
        failing.deposit("alice", 1000)
        with pytest.raises(TransferFailed):
            failing.debit_payout("bob", 300, caller=EVALUATOR_IDENTITY)
        assert failing.total_value == 1000
        assert failing.total_payouts == 0


# ─────────────────────────────────────────────────────────────
# Audit events
# ─────────────────────────────────────────────────────────────

class TestLedgerEvents:

    def test_events_carry_before_and_after(self, clock):
        audit  = AuditLog()
        ledger = LiquidityLedger(
            ADMIN, REGISTRY_IDENTITY, EVALUATOR_IDENTITY, audit=audit, clock=clock,
        )
        ledger.deposit("alice", 1000)
        ledger.withdraw("alice", 250)

        deposited = audit.events(EventType.LIQUIDITY_DEPOSITED)[0]
        withdrawn = audit.events(EventType.LIQUIDITY_WITHDRAWN)[0]
        assert deposited.payload["before"]["total_value"] == 0
        assert deposited.payload["after"]["total_value"] == 1000
        assert withdrawn.payload["amount"] == 250
        assert withdrawn.payload["after"]["total_shares"] == 750
        assert audit.verify_chain()

    def test_rejected_operation_emits_nothing(self, clock):
        audit  = AuditLog()
        ledger = LiquidityLedger(
            ADMIN, REGISTRY_IDENTITY, EVALUATOR_IDENTITY, audit=audit, clock=clock,
        )
        with pytest.raises(ZeroAmount):
            ledger.deposit("alice", 0)
        assert audit.entries == []

    def test_failed_disk_append_does_not_undo_withdrawal(self, clock, transfer, tmp_path):
        path   = tmp_path / "audit.jsonl"
        audit  = AuditLog(path=path)
        ledger = LiquidityLedger(
            ADMIN, REGISTRY_IDENTITY, EVALUATOR_IDENTITY,
            transfer=transfer, audit=audit, clock=clock,
        )
        ledger.deposit("alice", 1000)
        path.unlink()
        path.mkdir()

        assert ledger.withdraw("alice", 500) == 500

        assert transfer.total_to("alice") == 500
        assert ledger.share_balance("alice") == 500
        assert audit.pending == 1
        assert audit.events(EventType.LIQUIDITY_WITHDRAWN)[0].payload["amount"] == 500

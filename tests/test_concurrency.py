"""
tests/test_concurrency.py

The runtime's writer lock: concurrent deposits, withdrawals, purchases and
claims must leave accounting and the audit chain consistent.

Run:
    pytest tests/test_concurrency.py -v --tb=short
"""

import threading

import pytest

from paraclaim.core.replay import AuditReplay
from paraclaim.runtime import InsuranceRuntime

from conftest import buy, observe


def _run_threads(targets):
    errors = []

    def guard(fn):
        def run():
            try:
                fn()
            except Exception as e:
                errors.append(repr(e))
        return run

    threads = [threading.Thread(target=guard(fn)) for fn in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return errors


class TestConcurrency:

    def test_concurrent_deposits_conserve_shares(self, runtime):
        def deposit_20(provider):
            return lambda: [runtime.deposit(provider, 1_000) for _ in range(20)]

        errors = _run_threads([deposit_20(f"lp-{i}") for i in range(8)])

        assert errors == [], f"Concurrent deposits raised: {errors}"
        stats = runtime.get_pool_stats()
        assert stats.total_value == 8 * 20 * 1_000
        assert stats.total_shares == 8 * 20 * 1_000
        assert all(runtime.check_conservation().values())
        assert len(runtime.audit.entries) == 160
        assert runtime.audit.verify_chain()

    def test_mixed_operations_keep_invariants(self, runtime, issuer):
        runtime.deposit("seed", 10_000_000)
        policies = [buy(runtime, holder=f"holder-{i}") for i in range(10)]
        window   = policies[0][1]
        obs      = observe(issuer, "35", window.start + 60)

        def churn(provider):
            def run():
                for _ in range(10):
                    runtime.deposit(provider, 5_000)
                    runtime.withdraw(provider, runtime.share_balance(provider) // 2)
            return run

        def settle():
            runtime.evaluate(obs)

        errors = _run_threads(
            [churn(f"lp-{i}") for i in range(4)] + [settle for _ in range(4)]
        )

        assert errors == [], f"Concurrent operations raised: {errors}"
        assert runtime.get_pool_stats().total_payouts == 10 * 100_000
        assert runtime.ledger.transfer.total_to("holder-0") == 100_000
        assert all(runtime.check_conservation().values())
        assert runtime.get_pool_stats().total_liability == 0

    def test_concurrent_writes_persist_every_entry(self, config, clock, tmp_path):
        path    = tmp_path / "audit.jsonl"
        runtime = InsuranceRuntime(
            config=config.with_overrides(audit_log_path=str(path)), clock=clock,
        )

        errors = _run_threads([
            (lambda p=f"lp-{i}": [runtime.deposit(p, 100) for _ in range(10)])
            for i in range(4)
        ])
        assert errors == []

        replay = AuditReplay()
        try:
            replay.load(path)
        except ValueError as e:
            pytest.fail(f"Concurrent writes corrupted the audit log: {e}")
        summary = replay.verify()
        assert summary.total_entries == 40
        assert summary.valid

"""
Paraclaim Liquidity Ledger - shared capital pool

Providers deposit currency for proportional shares; premiums flow in,
payouts flow out, and yield is reported per provider.
"""

from paraclaim.ledger.liquidity import LiquidityLedger
from paraclaim.ledger.transfer import FundsTransfer, InMemoryTransfer, Transfer

__all__ = ["LiquidityLedger", "FundsTransfer", "InMemoryTransfer", "Transfer"]

"""
Paraclaim Settlement - trigger evaluation and payout
"""

from paraclaim.settlement.evaluator import ClaimEvaluator, trigger_holds

__all__ = ["ClaimEvaluator", "trigger_holds"]

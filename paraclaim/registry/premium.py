"""
Premium calculation.

A pure integer function of the policy terms and a RiskTable. The same
inputs always give the same premium; no float, no clock, no randomness.

    gap        GREATER_THAN: reference - threshold
               LESS_THAN:    threshold - reference
               EQUAL_TO:     -|threshold - reference|
    likelihood_pct = clamp(100 + gap * 100 // tail_width, 10, 200)

    premium = ceil(payout * annual_rate_bps * duration * likelihood_pct * operator_pct
                   / (10_000 * YEAR_SECONDS * 100 * 100))

A positive gap means the trigger sits on the common side of the reference
reading, so the trigger is more likely and the premium rises.
"""

from paraclaim.core.config import RiskTable
from paraclaim.core.models import ComparisonOperator, WeatherParameter
from paraclaim.core.time import YEAR_SECONDS


MIN_LIKELIHOOD_PCT = 10
MAX_LIKELIHOOD_PCT = 200

_DENOMINATOR = 10_000 * YEAR_SECONDS * 100 * 100


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


class PremiumCalculator:

    def __init__(self, risk: RiskTable) -> None:
        self.risk = risk

    def likelihood_pct(
        self,
        parameter: WeatherParameter,
        threshold: int,
        operator:  ComparisonOperator,
    ) -> int:
        reference = self.risk.reference[parameter]
        if operator is ComparisonOperator.GREATER_THAN:
            gap = reference - threshold
        elif operator is ComparisonOperator.LESS_THAN:
            gap = threshold - reference
        else:
            gap = -abs(threshold - reference)

        pct = 100 + gap * 100 // self.risk.tail_width[parameter]
        return max(MIN_LIKELIHOOD_PCT, min(MAX_LIKELIHOOD_PCT, pct))

    def required_premium(
        self,
        duration:      int,
        payout_amount: int,
        parameter:     WeatherParameter,
        threshold:     int,
        operator:      ComparisonOperator,
    ) -> int:
        if duration <= 0 or payout_amount <= 0:
            return self.risk.min_premium

        numerator = (
            payout_amount
            * self.risk.annual_rate_bps[parameter]
            * duration
            * self.likelihood_pct(parameter, threshold, operator)
            * self.risk.operator_pct[operator]
        )
        return max(_ceil_div(numerator, _DENOMINATOR), self.risk.min_premium)

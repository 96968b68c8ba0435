"""
Paraclaim Runtime - component wiring and the single writer lock.
"""

from paraclaim.runtime.context import (
    EVALUATOR_IDENTITY,
    REGISTRY_IDENTITY,
    InsuranceRuntime,
)

__all__ = [
    "InsuranceRuntime",
    "EVALUATOR_IDENTITY",
    "REGISTRY_IDENTITY",
]

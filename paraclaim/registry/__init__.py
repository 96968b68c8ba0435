"""
Paraclaim Policy Registry - policy records and lifecycle
"""

from paraclaim.registry.premium import PremiumCalculator
from paraclaim.registry.registry import PolicyRegistry

__all__ = ["PolicyRegistry", "PremiumCalculator"]

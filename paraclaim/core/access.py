"""
Caller identity checks.

Every privileged operation takes an explicit `caller` identity and calls
one of these helpers before touching state. Identities are plain strings:
the admin, the policy registry, the claim evaluator.
"""

from typing import Iterable

from paraclaim.core.exceptions import Unauthorized


def require_caller(caller: str, allowed: Iterable[str], operation: str) -> None:
    """Raise Unauthorized unless caller is one of allowed."""
    allowed = tuple(allowed)
    if caller not in allowed:
        raise Unauthorized(
            f"{operation} is not permitted for this caller",
            {"caller": caller, "allowed": ",".join(allowed)},
        )


def require_admin(caller: str, admin: str, operation: str) -> None:
    require_caller(caller, (admin,), operation)

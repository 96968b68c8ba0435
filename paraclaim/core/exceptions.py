"""
Paraclaim Exception Hierarchy

All exceptions inherit from ParaclaimError for easy catching.

Families:
    ValidationError     — request rejected before any mutation
    AuthorizationError  — caller or observation not trusted, no mutation
    StateConflictError  — operation conflicts with current state
    NotFound            — query for an unknown record
    TransferFailed      — host transfer capability raised; bookkeeping restored
"""


class ParaclaimError(Exception):
    """Base exception for all Paraclaim errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


# ── Validation ────────────────────────────────────────────────

class ValidationError(ParaclaimError):
    """Raised when request data fails validation"""
    pass


class InvalidPolicyParameters(ValidationError):
    """Raised when createPolicy inputs violate configured bounds"""
    pass


class InvalidFraction(ValidationError):
    """Raised when a yield fraction is outside 0..100 percent"""
    pass


class ZeroAmount(ValidationError):
    """Raised when a deposit or withdrawal moves nothing"""
    pass


# ── Authorization ─────────────────────────────────────────────

class AuthorizationError(ParaclaimError):
    """Raised when authorization fails"""
    pass


class Unauthorized(AuthorizationError):
    """Raised when the caller identity lacks the required role"""
    pass


class UnauthenticatedObservation(AuthorizationError):
    """Raised when a weather observation proof does not verify"""
    pass


# ── State conflicts ───────────────────────────────────────────

class StateConflictError(ParaclaimError):
    """Raised when an operation conflicts with current state"""
    pass


class AlreadyResolved(StateConflictError):
    """Raised when a policy is no longer ACTIVE"""
    pass


class InsufficientShares(StateConflictError):
    """Raised when a provider burns more shares than it holds"""
    pass


class InsufficientLiquidity(StateConflictError):
    """Raised when the pool cannot fund a withdrawal or payout"""
    pass


class SystemPaused(StateConflictError):
    """Raised when new business is attempted while paused"""
    pass


# ── Other ─────────────────────────────────────────────────────

class NotFound(ParaclaimError):
    """Raised when a queried record does not exist"""
    pass


class TransferFailed(ParaclaimError):
    """Raised when the host funds-transfer capability fails"""
    pass


class AuditLogError(ParaclaimError):
    """Raised when audit log operations fail"""
    pass

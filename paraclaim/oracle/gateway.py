"""
Observation gateway: the single point where weather data becomes trusted.

An observation is trusted iff its proof is a valid Ed25519 signature by
the configured issuer key over

    canonicalize({"location", "parameter", "timestamp", "value"})

submit() answers True/False and never raises; callers refuse to act on
False. Rotating the issuer key is an admin action with an audit trail.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from paraclaim.core.access import require_admin
from paraclaim.core.audit import AuditLog
from paraclaim.core.canonical import canonicalize
from paraclaim.core.crypto import Ed25519KeyManager, is_public_key_hex
from paraclaim.core.envelope import EventType
from paraclaim.core.exceptions import ValidationError
from paraclaim.core.models import WeatherObservation
from paraclaim.core.time import Clock, unix_now


logger = logging.getLogger(__name__)

# (data, proof, public_key_hex) -> bool
ProofVerifier = Callable[[bytes, str, str], bool]


@dataclass(frozen=True)
class IssuerChange:
    old_key:   Optional[str]
    new_key:   str
    changed_at: int
    changed_by: str


def observation_bytes(observation: WeatherObservation) -> bytes:
    """Canonical bytes an issuer signs for this observation."""
    return canonicalize(observation.to_signing_dict())


def sign_observation(
    observation: WeatherObservation,
    key_manager: Ed25519KeyManager,
) -> WeatherObservation:
    """Issuer side: return a copy of observation carrying its proof."""
    return observation.with_proof(key_manager.sign(observation_bytes(observation)))


class ObservationGateway:

    def __init__(
        self,
        admin:      str,
        issuer_key: Optional[str] = None,
        verifier:   ProofVerifier = Ed25519KeyManager.verify_detached,
        audit:      Optional[AuditLog] = None,
        clock:      Clock = unix_now,
    ) -> None:
        if issuer_key is not None and not is_public_key_hex(issuer_key):
            raise ValidationError("Issuer key is not a valid Ed25519 public key")
        self.admin      = admin
        self.issuer_key = issuer_key
        self.verifier   = verifier
        self.audit      = audit
        self.clock      = clock
        self.issuer_history: List[IssuerChange] = []

    def submit(
        self,
        observation: WeatherObservation,
        proof:       Optional[str] = None,
    ) -> bool:
        """True iff the proof verifies against the trusted issuer key."""
        proof = proof if proof is not None else observation.proof
        if self.issuer_key is None or not proof:
            return self._reject(observation, "missing issuer key or proof")
        try:
            data = observation_bytes(observation)
            ok   = bool(self.verifier(data, proof, self.issuer_key))
        except Exception as exc:
            return self._reject(observation, f"verification error: {exc}")
        if not ok:
            return self._reject(observation, "signature mismatch")
        return True

    def set_issuer(self, new_key: str, caller: str) -> None:
        require_admin(caller, self.admin, "set_issuer")
        if not is_public_key_hex(new_key):
            raise ValidationError(
                "Issuer key is not a valid Ed25519 public key",
                {"key": new_key},
            )

        change = IssuerChange(
            old_key=    self.issuer_key,
            new_key=    new_key,
            changed_at= self.clock(),
            changed_by= caller,
        )
        self.issuer_key = new_key
        self.issuer_history.append(change)

        logger.warning(
            "Observation issuer rotated by %s: %s -> %s",
            caller, (change.old_key or "none")[:16], new_key[:16],
        )
        if self.audit is not None:
            self.audit.emit(EventType.CONFIGURATION_CHANGED, {
                "parameter": "issuer_key",
                "old_value": change.old_key,
                "new_value": change.new_key,
                "timestamp": change.changed_at,
            }, actor=caller)

    def _reject(self, observation: WeatherObservation, reason: str) -> bool:
        logger.warning(
            "Rejected observation for %s/%s at %d: %s",
            observation.location, observation.parameter.value,
            observation.timestamp, reason,
        )
        if self.audit is not None:
            self.audit.emit(EventType.OBSERVATION_REJECTED, {
                **observation.to_signing_dict(),
                "reason": reason,
            })
        return False

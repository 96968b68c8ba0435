"""
paraclaim/core/envelope.py

Audit envelope — one signed, hash-chained entry of the audit log.

Contracts:

    Signing   bytes_signed = canonicalize(env.to_signing_dict())
              Ed25519, base64url without padding
    Chain     causal_hash  = SHA-256(canonicalize(prev.to_signing_dict()))
              first entry  = GENESIS_HASH ("0" * 64)
    Timestamp YYYY-MM-DDTHH:MM:SS.mmmZ from audit_timestamp()
    Nonce     32 random hex chars, unique per entry
    Vocabulary event_type must be an EventType constant
"""

import hashlib
import re
import secrets
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from paraclaim.core.canonical import canonicalize
from paraclaim.core.crypto import Ed25519KeyManager, is_public_key_hex
from paraclaim.core.time import audit_timestamp


AUDIT_VERSION = "1.0"
GENESIS_HASH  = "0" * 64

_NONCE_HEX_LENGTH = 32

_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"
)


class EventType:
    """Valid values for AuditEnvelope.event_type."""
    POLICY_CREATED        = "policy_created"
    POLICY_EXPIRED        = "policy_expired"
    POLICY_CANCELLED      = "policy_cancelled"
    CLAIM_PROCESSED       = "claim_processed"
    PREMIUM_CREDITED      = "premium_credited"
    PAYOUT_DEBITED        = "payout_debited"
    LIQUIDITY_DEPOSITED   = "liquidity_deposited"
    LIQUIDITY_WITHDRAWN   = "liquidity_withdrawn"
    CONFIGURATION_CHANGED = "configuration_changed"
    OBSERVATION_REJECTED  = "observation_rejected"


_VALID_EVENT_TYPES: Set[str] = {
    value for name, value in vars(EventType).items() if name.isupper()
}


@dataclass
class SchemaValidationResult:
    """Returned, not raised, so callers can choose hard fail vs report."""
    valid:  bool
    errors: List[str]

    def __bool__(self) -> bool:
        return self.valid


@dataclass
class AuditEnvelope:
    audit_version:     str
    record_id:         str
    event_type:        str
    actor:             str
    signer_public_key: str
    sequence:          int
    nonce:             str
    timestamp:         str
    causal_hash:       str
    payload:           Dict[str, Any]
    signature:         Optional[str] = None

    # ── Constructor ───────────────────────────────────────────

    @classmethod
    def create(
        cls,
        event_type:        str,
        actor:             str,
        signer_public_key: str,
        sequence:          int,
        payload:           Dict[str, Any],
        prev:              Optional["AuditEnvelope"] = None,
    ) -> "AuditEnvelope":
        """
        Create an unsigned envelope with the correct causal_hash.
        Call .sign(key_manager) immediately after.
        """
        if event_type not in _VALID_EVENT_TYPES:
            raise ValueError(
                f"Invalid event_type '{event_type}'. "
                f"Valid: {sorted(_VALID_EVENT_TYPES)}"
            )
        if not isinstance(payload, dict):
            raise TypeError(
                f"payload must be dict, got {type(payload).__name__}"
            )
        if not isinstance(sequence, int) or sequence < 0:
            raise ValueError(
                f"sequence must be non-negative int, got {sequence!r}"
            )
        if not is_public_key_hex(signer_public_key):
            raise ValueError(
                f"signer_public_key must be a 64-char Ed25519 hex key, "
                f"got {signer_public_key!r}"
            )

        return cls(
            audit_version=     AUDIT_VERSION,
            record_id=         f"evt-{uuid.uuid4()}",
            event_type=        event_type,
            actor=             actor,
            signer_public_key= signer_public_key,
            sequence=          sequence,
            nonce=             secrets.token_hex(_NONCE_HEX_LENGTH // 2),
            timestamp=         audit_timestamp(),
            causal_hash=       cls.chain_hash(prev),
            payload=           payload,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEnvelope":
        """
        Deserialize from a JSONL line dict. Trusts persisted data;
        callers must run validate_schema().
        """
        return cls(
            audit_version=     data["audit_version"],
            record_id=         data["record_id"],
            event_type=        data["event_type"],
            actor=             data["actor"],
            signer_public_key= data["signer_public_key"],
            sequence=          data["sequence"],
            nonce=             data["nonce"],
            timestamp=         data["timestamp"],
            causal_hash=       data["causal_hash"],
            payload=           data.get("payload", {}),
            signature=         data.get("signature"),
        )

    # ── Schema ────────────────────────────────────────────────

    def validate_schema(self) -> SchemaValidationResult:
        errors: List[str] = []

        if self.audit_version != AUDIT_VERSION:
            errors.append(
                f"audit_version: expected '{AUDIT_VERSION}', got '{self.audit_version}'"
            )
        if self.event_type not in _VALID_EVENT_TYPES:
            errors.append(f"event_type '{self.event_type}' is not a known event")
        if not isinstance(self.record_id, str) or not self.record_id.startswith("evt-"):
            errors.append(
                f"record_id must be a string starting with 'evt-', got {self.record_id!r}"
            )
        if not isinstance(self.actor, str) or not self.actor:
            errors.append("actor must be a non-empty string")
        if not is_public_key_hex(self.signer_public_key):
            errors.append("signer_public_key is not a valid Ed25519 hex key")
        if not isinstance(self.sequence, int) or self.sequence < 0:
            errors.append(f"sequence must be non-negative int, got {self.sequence!r}")
        if not _is_hex(self.nonce, _NONCE_HEX_LENGTH):
            errors.append(f"nonce must be exactly {_NONCE_HEX_LENGTH} hex chars")
        if not isinstance(self.timestamp, str) or not _TIMESTAMP_RE.match(self.timestamp):
            errors.append(
                f"timestamp {self.timestamp!r} does not match YYYY-MM-DDTHH:MM:SS.mmmZ"
            )
        if not _is_hex(self.causal_hash, 64):
            errors.append("causal_hash must be 64 hex chars")
        if not isinstance(self.payload, dict):
            errors.append(f"payload must be dict, got {type(self.payload).__name__}")

        return SchemaValidationResult(valid=not errors, errors=errors)

    # ── Canonical forms ───────────────────────────────────────

    def to_signing_dict(self) -> Dict[str, Any]:
        """Every field except signature. Also the chain surface."""
        return {
            "actor":             self.actor,
            "audit_version":     self.audit_version,
            "causal_hash":       self.causal_hash,
            "event_type":        self.event_type,
            "nonce":             self.nonce,
            "payload":           self.payload,
            "record_id":         self.record_id,
            "sequence":          self.sequence,
            "signer_public_key": self.signer_public_key,
            "timestamp":         self.timestamp,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Full serialization including signature. JSONL persistence only."""
        d = self.to_signing_dict()
        d["signature"] = self.signature
        return d

    def canonical_bytes(self) -> bytes:
        return canonicalize(self.to_signing_dict())

    @staticmethod
    def chain_hash(prev: Optional["AuditEnvelope"]) -> str:
        """causal_hash a successor of prev must carry."""
        if prev is None:
            return GENESIS_HASH
        return hashlib.sha256(prev.canonical_bytes()).hexdigest()

    # ── Signing / verification ────────────────────────────────

    def sign(self, key_manager: Ed25519KeyManager) -> "AuditEnvelope":
        self.signature = key_manager.sign(self.canonical_bytes())
        return self

    def verify_signature(self, public_key_hex: Optional[str] = None) -> bool:
        """False for unsigned, tampered or wrong-key envelopes. Never raises."""
        if not self.signature:
            return False
        return Ed25519KeyManager.verify_detached(
            self.canonical_bytes(),
            self.signature,
            public_key_hex or self.signer_public_key,
        )

    def verify_chain(self, prev: Optional["AuditEnvelope"]) -> bool:
        return self.causal_hash == AuditEnvelope.chain_hash(prev)


def _is_hex(value: object, length: int) -> bool:
    if not isinstance(value, str) or len(value) != length:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True

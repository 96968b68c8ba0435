"""
paraclaim/core/replay.py

Offline verification of a persisted audit log.

Per line:
    1. json.loads(line)
    2. AuditEnvelope.from_dict(data)
    3. env.validate_schema()        — fail fast on a corrupt entry

Then verify():
    sequence continuity, causal_hash chain, nonce uniqueness,
    signatures (optionally pinned to one expected signer key).

All hashing and signature logic delegates to AuditEnvelope.
"""

import json
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from paraclaim.core.envelope import AuditEnvelope


@dataclass
class ChainViolation:
    at_sequence:    int
    record_id:      str
    violation_type: str   # "chain_break" | "sequence_gap" | "duplicate_nonce" | "invalid_signature"
    detail:         str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "at_sequence":    self.at_sequence,
            "record_id":      self.record_id,
            "violation_type": self.violation_type,
            "detail":         self.detail,
        }


@dataclass
class ReplaySummary:
    total_entries:      int
    violations:         List[ChainViolation]
    valid_signatures:   int
    invalid_signatures: int
    event_counts:       Dict[str, int]
    actors_seen:        List[str]
    first_timestamp:    Optional[str]
    last_timestamp:     Optional[str]

    @property
    def valid(self) -> bool:
        return not self.violations

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_entries":      self.total_entries,
            "valid":              self.valid,
            "valid_signatures":   self.valid_signatures,
            "invalid_signatures": self.invalid_signatures,
            "event_counts":       self.event_counts,
            "actors_seen":        self.actors_seen,
            "first_timestamp":    self.first_timestamp,
            "last_timestamp":     self.last_timestamp,
            "violations":         [v.to_dict() for v in self.violations],
        }


class AuditReplay:
    """
    Usage:
        replay = AuditReplay(expected_signer=engine_pubkey_hex)
        replay.load(Path("audit.jsonl"))
        summary = replay.verify()
    """

    def __init__(self, expected_signer: Optional[str] = None) -> None:
        self.envelopes:        List[AuditEnvelope] = []
        self.expected_signer:  Optional[str]       = expected_signer
        self._path:            Optional[Path]      = None

    def load(self, path: Path) -> None:
        """
        Raises:
            FileNotFoundError — file does not exist
            ValueError        — malformed JSON, missing field or schema violation
        """
        path       = Path(path)
        self._path = path
        self.envelopes = []

        if not path.exists():
            raise FileNotFoundError(f"Audit log not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            for line_num, raw in enumerate(f, 1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        f"Malformed JSON at audit line {line_num}: {e}"
                    ) from e
                try:
                    env = AuditEnvelope.from_dict(data)
                except KeyError as e:
                    raise ValueError(
                        f"Missing required field at audit line {line_num}: {e}"
                    ) from e

                schema = env.validate_schema()
                if not schema:
                    raise ValueError(
                        f"Schema violation at audit line {line_num} "
                        f"(record_id={data.get('record_id', '?')}): {schema.errors}"
                    )
                self.envelopes.append(env)

    def verify(self) -> ReplaySummary:
        violations:  List[ChainViolation] = []
        seen_nonces: Set[str]             = set()
        valid_sigs   = 0
        invalid_sigs = 0

        for i, env in enumerate(self.envelopes):
            prev = self.envelopes[i - 1] if i > 0 else None

            if env.sequence != i:
                violations.append(ChainViolation(
                    at_sequence=    i,
                    record_id=      env.record_id,
                    violation_type= "sequence_gap",
                    detail=         f"Expected sequence {i}, got {env.sequence}",
                ))

            if not env.verify_chain(prev):
                expected = AuditEnvelope.chain_hash(prev)
                violations.append(ChainViolation(
                    at_sequence=    env.sequence,
                    record_id=      env.record_id,
                    violation_type= "chain_break",
                    detail=(
                        f"causal_hash mismatch: expected ...{expected[-12:]}, "
                        f"got ...{env.causal_hash[-12:]}"
                    ),
                ))

            if env.nonce in seen_nonces:
                violations.append(ChainViolation(
                    at_sequence=    env.sequence,
                    record_id=      env.record_id,
                    violation_type= "duplicate_nonce",
                    detail=         f"Nonce {env.nonce} already used earlier in the log",
                ))
            seen_nonces.add(env.nonce)

            if env.verify_signature(self.expected_signer):
                valid_sigs += 1
            else:
                invalid_sigs += 1
                violations.append(ChainViolation(
                    at_sequence=    env.sequence,
                    record_id=      env.record_id,
                    violation_type= "invalid_signature",
                    detail=(
                        f"Signature invalid "
                        f"(signer: {env.signer_public_key[:16]}...)"
                    ),
                ))

        counts: Dict[str, int] = defaultdict(int)
        for env in self.envelopes:
            counts[env.event_type] += 1

        return ReplaySummary(
            total_entries=      len(self.envelopes),
            violations=         violations,
            valid_signatures=   valid_sigs,
            invalid_signatures= invalid_sigs,
            event_counts=       dict(counts),
            actors_seen=        sorted({e.actor for e in self.envelopes}),
            first_timestamp=    self.envelopes[0].timestamp if self.envelopes else None,
            last_timestamp=     self.envelopes[-1].timestamp if self.envelopes else None,
        )

    def export_json(self, output_path: Path) -> None:
        """Write the verification summary as a JSON audit report."""
        summary     = self.verify()
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        report = {
            "paraclaim_audit_report": {
                "log": str(self._path or "in-memory"),
                **summary.to_dict(),
            }
        }
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2)

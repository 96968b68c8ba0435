"""
paraclaim/core/audit.py

Audit log — the observable output stream of every state change.

emit() MUST, in this exact order:
  1. Acquire lock
  2. AuditEnvelope.create(event_type, actor, signer_public_key,
                          sequence, payload, prev=last_envelope)
  3. envelope.sign(key_manager)
  4. Advance internal state
  5. Append every unwritten envelope to the JSONL file (when persistent)
  6. Notify listeners
  7. Return the signed envelope

Components emit only after their bookkeeping has committed, so emit()
never raises on a failed disk append: the envelope stays in memory,
is marked pending, and is written ahead of the next one. Callers that
must not commit against an unwritable log call ensure_writable() before
they change any state.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from paraclaim.core.crypto import Ed25519KeyManager
from paraclaim.core.envelope import AUDIT_VERSION, GENESIS_HASH, AuditEnvelope
from paraclaim.core.exceptions import AuditLogError


logger = logging.getLogger(__name__)

Listener = Callable[[AuditEnvelope], None]


class AuditLog:
    """
    Signed, hash-chained, append-only event log.

    In-memory by default. Pass `path` to also append every envelope as a
    JSON line; an existing file is replayed on construction so sequence
    and chain continue where they left off.

    Without a key_manager an ephemeral key is generated; the log is
    still verifiable within the process via verify_chain().
    """

    def __init__(
        self,
        key_manager: Optional[Ed25519KeyManager] = None,
        path:        Optional[Path] = None,
        actor:       str = "paraclaim",
    ) -> None:
        self.key_manager = key_manager or Ed25519KeyManager.generate()
        self.actor       = actor

        self._lock:      threading.Lock       = threading.Lock()
        self._entries:   List[AuditEnvelope]  = []
        self._pending:   List[AuditEnvelope]  = []
        self._listeners: List[Listener]       = []
        self._path:      Optional[Path]       = Path(path) if path else None

        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._restore()

    # ── Public API ────────────────────────────────────────────

    def emit(
        self,
        event_type: str,
        payload:    Dict[str, Any],
        actor:      Optional[str] = None,
    ) -> AuditEnvelope:
        """
        Append one signed envelope. A failed disk append is logged and the
        envelope kept pending; see ensure_writable() and flush().
        """
        with self._lock:
            prev     = self._entries[-1] if self._entries else None
            envelope = AuditEnvelope.create(
                event_type=        event_type,
                actor=             actor or self.actor,
                signer_public_key= self.key_manager.public_key_hex,
                sequence=          len(self._entries),
                payload=           payload,
                prev=              prev,
            ).sign(self.key_manager)

            self._entries.append(envelope)
            if self._path is not None:
                self._pending.append(envelope)
                try:
                    self._flush_locked()
                except AuditLogError as exc:
                    logger.error(
                        "Audit entry %d kept pending (%d unwritten): %s",
                        envelope.sequence, len(self._pending), exc,
                    )
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(envelope)
            except Exception:
                logger.exception(
                    "Audit listener %r failed on %s", listener, envelope.event_type
                )
        return envelope

    def ensure_writable(self) -> None:
        """
        Raise AuditLogError unless the log file accepts appends.

        Writes any pending envelopes first. A no-op for in-memory logs.
        """
        if self._path is None:
            return
        with self._lock:
            self._flush_locked()
            try:
                with open(self._path, "a", encoding="utf-8"):
                    pass
            except OSError as exc:
                raise AuditLogError(
                    "Audit log is not writable",
                    {"path": str(self._path), "error": str(exc)},
                ) from exc

    def flush(self) -> None:
        """Write pending envelopes. Raises AuditLogError if any remain unwritten."""
        with self._lock:
            self._flush_locked()

    @property
    def pending(self) -> int:
        """Envelopes signed and chained in memory but not yet on disk."""
        with self._lock:
            return len(self._pending)

    def subscribe(self, listener: Listener) -> None:
        """Register a callable invoked with every envelope after it is appended."""
        with self._lock:
            self._listeners.append(listener)

    @property
    def entries(self) -> List[AuditEnvelope]:
        with self._lock:
            return list(self._entries)

    def events(self, event_type: Optional[str] = None) -> List[AuditEnvelope]:
        """Entries of one type, in append order. All entries when type is None."""
        return [
            e for e in self.entries
            if event_type is None or e.event_type == event_type
        ]

    def verify_chain(self) -> bool:
        """Check sequence, causal hashes and signatures of all in-memory entries."""
        entries = self.entries
        for i, env in enumerate(entries):
            prev = entries[i - 1] if i > 0 else None
            if env.sequence != i:
                return False
            if not env.verify_chain(prev):
                return False
            if not env.verify_signature():
                return False
        return True

    def get_stats(self) -> Dict[str, Any]:
        entries = self.entries
        return {
            "entries":          len(entries),
            "last_record_id":   entries[-1].record_id if entries else None,
            "last_causal_hash": (
                AuditEnvelope.chain_hash(entries[-1]) if entries else GENESIS_HASH
            ),
            "signer":           self.key_manager.public_key_hex,
            "path":             str(self._path) if self._path else None,
            "pending":          self.pending,
            "audit_version":    AUDIT_VERSION,
        }

    # ── Internal ──────────────────────────────────────────────

    def _flush_locked(self) -> None:
        if not self._pending:
            return
        lines = "".join(json.dumps(env.to_dict()) + "\n" for env in self._pending)
        try:
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(lines)
        except OSError as exc:
            raise AuditLogError(
                "Audit log write failed",
                {"path": str(self._path), "pending": len(self._pending), "error": str(exc)},
            ) from exc
        self._pending.clear()

    def _restore(self) -> None:
        """Reload an existing JSONL file so the chain continues."""
        if not self._path.exists():
            return
        with open(self._path, "r", encoding="utf-8") as f:
            for line_num, raw in enumerate(f, 1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    env = AuditEnvelope.from_dict(json.loads(raw))
                except (json.JSONDecodeError, KeyError) as exc:
                    raise AuditLogError(
                        "Unreadable audit log line",
                        {"path": str(self._path), "line": line_num, "error": str(exc)},
                    ) from exc
                self._entries.append(env)
        logger.info("Restored %d audit entries from %s", len(self._entries), self._path)

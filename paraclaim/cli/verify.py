"""
paraclaim verify: offline check of a persisted audit log.

Replays the JSONL file and reports chain, sequence, nonce and signature
violations as a check table (default), JSON, or one compact line.

Exit codes: 0 valid, 1 violations found, 2 unusable input.
"""

import json
import sys
import time
from collections import Counter
from pathlib import Path
from typing import Optional, Tuple

import click

from paraclaim.core.crypto import is_public_key_hex
from paraclaim.core.envelope import AuditEnvelope
from paraclaim.core.replay import AuditReplay, ReplaySummary


_CHECKS = (
    # (label, violation type, what a clean result says)
    ("chain",      "chain_break",       "every causal hash links"),
    ("sequence",   "sequence_gap",      "contiguous from 0"),
    ("nonces",     "duplicate_nonce",   "unique"),
    ("signatures", "invalid_signature", "all verify"),
)


def _head(replay: AuditReplay) -> Tuple[Optional[str], Optional[int]]:
    """
    Chain head: the causal_hash the next entry would have to carry.
    A commitment to the whole log, suitable for external anchoring.
    """
    if not replay.envelopes:
        return None, None
    last = replay.envelopes[-1]
    return AuditEnvelope.chain_hash(last), last.sequence


# ── CLI command ───────────────────────────────────────────────────────────────

@click.command(name="verify")
@click.argument("log", type=click.Path(exists=False))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json", "compact"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format: human, json (CI/automation), compact (pipelines).",
)
@click.option(
    "--signer",
    type=str,
    default=None,
    metavar="PUBKEY_HEX",
    help="Require every entry to be signed by this Ed25519 public key.",
)
@click.option(
    "--export",
    "export_path",
    type=click.Path(),
    default=None,
    metavar="PATH",
    help="Export the full audit report to a JSON file.",
)
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output. Exit code only (0=valid, 1=invalid, 2=error).",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable ANSI color output.",
)
def verify_command(
    log:         str,
    fmt:         str,
    signer:      Optional[str],
    export_path: Optional[str],
    quiet:       bool,
    no_color:    bool,
) -> None:
    """
    Verify a paraclaim audit log: sequence, hash chain, nonces, signatures.

    LOG is the path to a .jsonl audit log written by the engine.

    \b
    Examples:
      paraclaim verify audit.jsonl
      paraclaim verify audit.jsonl --format json
      paraclaim verify audit.jsonl --signer 3b6a27bc...
      paraclaim verify audit.jsonl --quiet && echo "clean"
    """
    color    = False if no_color else None
    log_path = Path(log)

    if signer is not None and not is_public_key_hex(signer):
        _fail(f"Invalid --signer: {signer!r} is not a 64-char hex key", fmt, quiet, color)
    if not log_path.exists():
        _fail(f"Audit log not found: {log}", fmt, quiet, color)

    replay  = AuditReplay(expected_signer=signer)
    started = time.perf_counter()
    try:
        replay.load(log_path)
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e), fmt, quiet, color)

    summary = replay.verify()
    elapsed = time.perf_counter() - started
    head_hash, head_sequence = _head(replay)

    if export_path:
        try:
            replay.export_json(Path(export_path))
        except OSError as e:
            if not quiet:
                click.echo(f"export failed: {e}", err=True)

    if not quiet:
        if fmt == "json":
            click.echo(json.dumps({
                "paraclaim_verify": {
                    "log":                 str(log_path),
                    "signer":              signer,
                    "chain_head_hash":     head_hash,
                    "chain_head_sequence": head_sequence,
                    "violation_count":     len(summary.violations),
                    "elapsed_seconds":     round(elapsed, 3),
                    "export_path":         export_path,
                    **summary.to_dict(),
                }
            }, indent=2))
        elif fmt == "compact":
            click.echo(_verdict(summary, compact=True) + (
                f"  {log_path.name}  {summary.total_entries} entries  "
                f"{len(summary.violations)} violation(s)  {elapsed:.3f}s"
            ), color=color)
        else:
            _report(summary, log_path, head_hash, head_sequence, signer, color)

    sys.exit(0 if summary.valid else 1)


def _report(
    summary:       ReplaySummary,
    log_path:      Path,
    head_hash:     Optional[str],
    head_sequence: Optional[int],
    signer:        Optional[str],
    color:         Optional[bool],
) -> None:
    counts = Counter(v.violation_type for v in summary.violations)

    click.echo(f"{log_path}: {summary.total_entries} entries")
    if signer:
        click.echo(f"  pinned signer   {signer[:16]}...")
    for label, violation_type, clean in _CHECKS:
        found = counts.get(violation_type, 0)
        mark  = click.style("ok  ", fg="green") if not found else click.style("FAIL", fg="red")
        click.echo(f"  {label:<14}  {mark}  {clean if not found else f'{found} violation(s)'}",
                   color=color)
    if head_hash is not None:
        click.echo(f"  chain head      {head_hash}  (seq {head_sequence})")
    for event_type, count in sorted(summary.event_counts.items()):
        click.echo(f"  {event_type:<24}{count:>8}")
    for v in summary.violations:
        click.echo(f"  #{v.at_sequence:<6} {v.violation_type:<18} {v.detail}")
    click.echo(_verdict(summary), color=color)


def _verdict(summary: ReplaySummary, compact: bool = False) -> str:
    if summary.valid:
        text = "VALID" if compact else "VALID: audit log integrity confirmed"
        return click.style(text, fg="green", bold=True)
    text = "INVALID" if compact else f"INVALID: {len(summary.violations)} violation(s)"
    return click.style(text, fg="red", bold=True)


def _fail(msg: str, fmt: str, quiet: bool, color: Optional[bool]) -> None:
    """Report an unusable input in the requested format and exit 2."""
    if not quiet:
        if fmt == "json":
            click.echo(json.dumps({"paraclaim_verify": {"error": msg, "valid": False}}))
        else:
            click.echo(click.style(f"ERROR: {msg}", fg="red"), err=True, color=color)
    sys.exit(2)

"""
tests/test_cli.py

CLI commands via click's CliRunner.
"""

import json

import pytest
from click.testing import CliRunner

from paraclaim.cli import cli
from paraclaim.core.audit import AuditLog
from paraclaim.core.crypto import Ed25519KeyManager, is_public_key_hex
from paraclaim.core.envelope import EventType


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def issuer_file(runner, tmp_path):
    path   = tmp_path / "issuer.pem"
    result = runner.invoke(cli, ["keygen", str(path)])
    assert result.exit_code == 0
    return path, result.output.strip()


@pytest.fixture
def audit_file(tmp_path):
    path = tmp_path / "audit.jsonl"
    log  = AuditLog(path=path)
    for i in range(3):
        log.emit(EventType.LIQUIDITY_DEPOSITED, {"provider": "lp", "amount": i + 1})
    return path


class TestKeys:

    def test_keygen_prints_public_key(self, issuer_file):
        path, pubkey = issuer_file
        assert is_public_key_hex(pubkey)
        assert Ed25519KeyManager.from_file(path).public_key_hex == pubkey

    def test_keygen_refuses_overwrite(self, runner, issuer_file):
        path, _ = issuer_file
        result = runner.invoke(cli, ["keygen", str(path)])
        assert result.exit_code == 2
        assert runner.invoke(cli, ["keygen", str(path), "--force"]).exit_code == 0

    def test_sign_and_check_observation(self, runner, issuer_file, tmp_path):
        path, pubkey = issuer_file
        out = tmp_path / "obs.json"
        result = runner.invoke(cli, [
            "sign-observation", "--key", str(path), "--location", "NYC",
            "--parameter", "temperature", "--value", "35.5",
            "--timestamp", "1767225600", "--output", str(out),
        ])
        assert result.exit_code == 0, result.output

        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["value"] == 3550
        assert data["proof"]

        checked = runner.invoke(cli, ["check-observation", str(out), "--issuer", pubkey])
        assert checked.exit_code == 0
        assert "VERIFIED" in checked.output

        other = Ed25519KeyManager.generate().public_key_hex
        rejected = runner.invoke(cli, ["check-observation", str(out), "--issuer", other])
        assert rejected.exit_code == 1

    def test_sign_rejects_float_noise(self, runner, issuer_file):
        path, _ = issuer_file
        result = runner.invoke(cli, [
            "sign-observation", "--key", str(path), "--location", "NYC",
            "--parameter", "rainfall", "--value", "1.234", "--timestamp", "1",
        ])
        assert result.exit_code == 2


class TestQuote:

    def test_quote_json(self, runner):
        result = runner.invoke(cli, [
            "quote", "--parameter", "rainfall", "--operator", "greater_than",
            "--threshold", "30", "--payout", "1000000", "--days", "30", "--json",
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["premium"] == 9864
        assert data["likelihood_pct"] == 120

    def test_quote_plain(self, runner):
        result = runner.invoke(cli, [
            "quote", "--parameter", "temperature", "--operator", "greater_than",
            "--threshold", "20", "--payout", "1000000", "--days", "365",
        ])
        assert result.output.strip() == "80000"

    def test_quote_uses_config(self, runner, tmp_path):
        config = tmp_path / "engine.yaml"
        config.write_text("risk:\n  min_premium: 5000\n", encoding="utf-8")
        result = runner.invoke(cli, [
            "quote", "--parameter", "humidity", "--operator", "equal_to",
            "--threshold", "90", "--payout", "10000", "--days", "1",
            "--config", str(config),
        ])
        assert result.output.strip() == "5000"

    def test_quote_rejects_bad_days(self, runner):
        result = runner.invoke(cli, [
            "quote", "--parameter", "humidity", "--operator", "equal_to",
            "--threshold", "90", "--payout", "10000", "--days", "0",
        ])
        assert result.exit_code == 2


class TestVerify:

    def test_clean_log(self, runner, audit_file):
        result = runner.invoke(cli, ["verify", str(audit_file)])
        assert result.exit_code == 0
        assert "VALID" in result.output

    def test_json_output(self, runner, audit_file):
        result = runner.invoke(cli, ["verify", str(audit_file), "--format", "json"])
        data = json.loads(result.output)["paraclaim_verify"]
        assert data["valid"] is True
        assert data["total_entries"] == 3
        assert len(data["chain_head_hash"]) == 64

    def test_tampered_log(self, runner, audit_file):
        lines = audit_file.read_text(encoding="utf-8").splitlines()
        entry = json.loads(lines[0])
        entry["payload"]["amount"] = 1_000_000
        lines[0] = json.dumps(entry)
        audit_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

        result = runner.invoke(cli, ["verify", str(audit_file), "--format", "compact"])
        assert result.exit_code == 1
        assert result.output.startswith("INVALID")

    def test_pinned_signer_mismatch(self, runner, audit_file):
        other = Ed25519KeyManager.generate().public_key_hex
        result = runner.invoke(cli, ["verify", str(audit_file), "--signer", other, "--quiet"])
        assert result.exit_code == 1
        assert result.output == ""

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["verify", str(tmp_path / "nope.jsonl"), "--quiet"])
        assert result.exit_code == 2

    def test_malformed_file(self, runner, tmp_path):
        path = tmp_path / "broken.jsonl"
        path.write_text("{nope\n", encoding="utf-8")
        result = runner.invoke(cli, ["verify", str(path), "--format", "json"])
        assert result.exit_code == 2
        assert "error" in json.loads(result.output)["paraclaim_verify"]

    def test_export(self, runner, audit_file, tmp_path):
        report = tmp_path / "report.json"
        result = runner.invoke(cli, ["verify", str(audit_file), "--export", str(report), "--quiet"])
        assert result.exit_code == 0
        assert report.exists()

    def test_human_report_names_failed_check(self, runner, audit_file):
        lines = audit_file.read_text(encoding="utf-8").splitlines()
        del lines[1]
        audit_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

        result = runner.invoke(cli, ["verify", str(audit_file), "--no-color"])
        assert result.exit_code == 1
        assert "FAIL" in result.output
        assert "sequence_gap" in result.output
        assert "INVALID" in result.output

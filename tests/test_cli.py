"""Tests for CLI functionality."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from docnotary.cli import main
from docnotary.journal import RecordJournal
from docnotary.models import NotarizationRecord
from docnotary.signing import Signer


@pytest.fixture(autouse=True)
def _offline(monkeypatch: pytest.MonkeyPatch) -> None:
    """Leave the ledger unconfigured so every run stays local."""

    monkeypatch.setenv("NOTARY_ALGOD_URL", "")
    monkeypatch.setenv("NOTARY_INDEXER_URL", "")


def test_cli_main_no_args(capsys) -> None:
    assert main([]) == 1


def test_cli_main_help(capsys) -> None:
    assert main(["--help"]) == 0
    captured = capsys.readouterr()
    assert "usage:" in captured.out.lower()
    assert "notarize" in captured.out.lower()


def test_hash_is_reproducible(tmp_path: Path, capsys) -> None:
    document = tmp_path / "lease.txt"
    document.write_text("Lease Agreement v1", encoding="utf-8")
    args = ["hash", "-i", str(document), "-m", "userId=u1", "--timestamp-ms", "1700000000123"]

    assert main(args) == 0
    first = json.loads(capsys.readouterr().out)
    assert main(args) == 0
    second = json.loads(capsys.readouterr().out)

    assert first == second
    assert first["hashedAtEpochMillis"] == 1700000000123
    assert len(first["documentHash"]) == 64


def test_hash_rejects_empty_document(tmp_path: Path, capsys) -> None:
    document = tmp_path / "empty.txt"
    document.write_text("   ", encoding="utf-8")
    assert main(["hash", "-i", str(document)]) == 1
    assert "empty" in capsys.readouterr().err


def test_hash_rejects_bad_metadata(tmp_path: Path, capsys) -> None:
    document = tmp_path / "doc.txt"
    document.write_text("content", encoding="utf-8")
    assert main(["hash", "-i", str(document), "-m", "novalue"]) == 1
    assert "key=value" in capsys.readouterr().err


def test_notarize_offline_is_flagged_simulated(tmp_path: Path, capsys) -> None:
    document = tmp_path / "doc.txt"
    document.write_text("content", encoding="utf-8")

    assert main(["notarize", "-i", str(document), "-m", "documentName=doc.txt"]) == 0
    captured = capsys.readouterr()
    record = json.loads(captured.out)

    assert record["simulated"] is True
    assert record["transactionReference"].startswith("DEMO_")
    assert "SIMULATED" in captured.err


def test_notarize_fail_mode_exits_non_zero(
    tmp_path: Path, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("NOTARY_FALLBACK_MODE", "fail")
    document = tmp_path / "doc.txt"
    document.write_text("content", encoding="utf-8")

    assert main(["notarize", "-i", str(document)]) == 1
    assert capsys.readouterr().out == ""


def test_verify_simulated_reference(capsys) -> None:
    assert main(["verify", "DEMO_1700000000123_ABCDEF01", "ab" * 32]) == 0
    captured = capsys.readouterr()
    assert json.loads(captured.out)["verified"] is True
    assert "SIMULATED" in captured.err


def test_verify_unreachable_ledger_exits_one(capsys) -> None:
    assert main(["verify", "TX123", "ab" * 32]) == 1
    result = json.loads(capsys.readouterr().out)
    assert result["errorCode"] == "ledger_unavailable"


def test_payload(capsys) -> None:
    assert main(["payload", "TX123", "ab" * 32]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["verifyUrl"] == "https://justicegpt.ai/verify/TX123"
    assert payload["simulated"] is False


def test_audit_reports_simulated_records(tmp_path: Path, capsys) -> None:
    path = tmp_path / "journal.ndjson"
    journal = RecordJournal(path, Signer(bytes(range(32))))
    for reference, simulated in (("TX1", False), ("DEMO_1_ABCDEF01", True)):
        journal.append(
            NotarizationRecord(
                document_hash="ab" * 32,
                transaction_reference=reference,
                ledger_position=7,
                submitted_at_ms=1,
                simulated=simulated,
            )
        )

    assert main(["audit", "-j", str(path)]) == 0
    captured = capsys.readouterr()
    report = json.loads(captured.out)
    assert report["valid"] is True
    assert report["anchored"] == 1
    assert report["simulated"] == 1
    assert "SIMULATED" in captured.err


def test_audit_detects_tampering(tmp_path: Path, capsys) -> None:
    path = tmp_path / "journal.ndjson"
    journal = RecordJournal(path, Signer(bytes(range(32))))
    journal.append(
        NotarizationRecord(
            document_hash="ab" * 32,
            transaction_reference="TX1",
            ledger_position=7,
            submitted_at_ms=1,
            simulated=False,
        )
    )
    path.write_text(path.read_text(encoding="utf-8").replace("TX1", "TX2"), encoding="utf-8")

    assert main(["audit", "-j", str(path), "-q"]) == 1
    assert capsys.readouterr().out == ""


def test_audit_requires_journal(capsys) -> None:
    assert main(["audit"]) == 1
    assert "NOTARY_JOURNAL_PATH" in capsys.readouterr().err


def _journal_with(path: Path, signer: Signer) -> None:
    RecordJournal(path, signer).append(
        NotarizationRecord(
            document_hash="ab" * 32,
            transaction_reference="TX1",
            ledger_position=7,
            submitted_at_ms=1,
            simulated=False,
        )
    )


def test_audit_checks_configured_journal_key(
    tmp_path: Path, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "journal.ndjson"
    _journal_with(path, Signer(ephemeral=True))
    monkeypatch.setenv("NOTARY_JOURNAL_KEY", bytes(range(32)).hex())

    assert main(["audit", "-j", str(path)]) == 1
    report = json.loads(capsys.readouterr().out)
    assert report["valid"] is False
    assert report["firstInvalidLine"] == 1


def test_audit_accepts_journal_signed_with_configured_key(
    tmp_path: Path, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "journal.ndjson"
    _journal_with(path, Signer(bytes(range(32))))
    monkeypatch.setenv("NOTARY_JOURNAL_KEY", bytes(range(32)).hex())

    assert main(["audit", "-j", str(path)]) == 0
    assert json.loads(capsys.readouterr().out)["valid"] is True

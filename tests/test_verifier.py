"""Tests for verification against the ledger read index."""

from __future__ import annotations

import json

import pytest

from docnotary.errors import InvalidReferenceError
from docnotary.hashing import compute_hash
from docnotary.identity import EphemeralIdentityProvider
from docnotary.ledger import InMemoryLedgerClient
from docnotary.ledger.base import LedgerTransaction
from docnotary.simulator import FallbackSimulator
from docnotary.submitter import NotarizationSubmitter
from docnotary.verifier import Verifier

FIXED_MS = 1_700_000_000_123
HASH = compute_hash("contract", {}, timestamp_ms=FIXED_MS)


async def _anchor(ledger: InMemoryLedgerClient, content: str = "contract") -> tuple[str, str]:
    record = await NotarizationSubmitter(ledger).notarize(
        content,
        {"documentName": "contract.txt"},
        EphemeralIdentityProvider().create_identity(),
        timestamp_ms=FIXED_MS,
    )
    assert record.simulated is False
    return record.transaction_reference, record.document_hash


@pytest.mark.asyncio
async def test_round_trip_verifies() -> None:
    ledger = InMemoryLedgerClient()
    reference, document_hash = await _anchor(ledger)

    result = await Verifier(ledger).verify(reference, document_hash)

    assert result.verified is True
    assert result.observed_hash == document_hash
    assert result.metadata["documentName"] == "contract.txt"
    assert result.metadata["platform"] == "JusticeGPT"
    assert result.ledger_position == ledger.current_round
    assert result.timestamp is not None
    assert result.error is None
    assert result.simulated is False


@pytest.mark.asyncio
async def test_tampered_hash_is_not_verified() -> None:
    ledger = InMemoryLedgerClient()
    reference, document_hash = await _anchor(ledger)
    tampered = await NotarizationSubmitter(InMemoryLedgerClient(available=False)).notarize(
        "contract!",
        {"documentName": "contract.txt"},
        EphemeralIdentityProvider().create_identity(),
        timestamp_ms=FIXED_MS,
    )

    result = await Verifier(ledger).verify(reference, tampered.document_hash)

    assert result.verified is False
    assert result.observed_hash == document_hash
    assert result.error_code == "hash_mismatch"
    assert result.metadata is not None


@pytest.mark.asyncio
async def test_unknown_reference_is_not_found() -> None:
    result = await Verifier(InMemoryLedgerClient()).verify("nonexistent-ref", HASH)

    assert result.verified is False
    assert result.error == "Transaction not found"
    assert result.error_code == "not_found"


@pytest.mark.asyncio
async def test_ledger_outage_is_reported_not_raised() -> None:
    result = await Verifier(InMemoryLedgerClient(available=False)).verify("TX1", HASH)

    assert result.verified is False
    assert result.error_code == "ledger_unavailable"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "note",
    [
        None,
        b"\xff\xfe not utf-8",
        b"plain text payment note",
        b"[1, 2, 3]",
        json.dumps({"recordType": "SOMETHING_ELSE", "documentHash": HASH}).encode(),
        json.dumps({"recordType": "LEGAL_DOCUMENT_NOTARIZATION"}).encode(),
        json.dumps({"documentHash": HASH, "metadata": {}}).encode(),
    ],
)
async def test_malformed_notes_are_reported(note) -> None:
    ledger = InMemoryLedgerClient()
    ledger.record_external("TXBAD", note)

    result = await Verifier(ledger).verify("TXBAD", HASH)

    assert result.verified is False
    assert result.error_code == "malformed_record"
    assert result.ledger_position == ledger.current_round


@pytest.mark.asyncio
async def test_missing_note_message() -> None:
    ledger = InMemoryLedgerClient()
    ledger.record_external("TXEMPTY", None)
    result = await Verifier(ledger).verify("TXEMPTY", HASH)
    assert result.error == "No notarization data found"


@pytest.mark.asyncio
async def test_legacy_type_key_is_accepted() -> None:
    ledger = InMemoryLedgerClient()
    note = json.dumps(
        {
            "type": "LEGAL_DOCUMENT_NOTARIZATION",
            "documentHash": HASH,
            "metadata": {"platform": "JusticeGPT"},
        }
    ).encode("utf-8")
    ledger.record_external("TXLEGACY", note)

    result = await Verifier(ledger).verify("TXLEGACY", HASH)

    assert result.verified is True
    assert result.metadata == {"platform": "JusticeGPT"}


@pytest.mark.asyncio
async def test_simulated_reference_skips_ledger() -> None:
    ledger = InMemoryLedgerClient()
    simulator = FallbackSimulator(platform="JusticeGPT")
    reference = simulator.new_reference(FIXED_MS)

    result = await Verifier(ledger, simulator=simulator).verify(reference, HASH)

    assert result.verified is True
    assert result.simulated is True
    assert result.observed_hash == HASH
    assert result.timestamp == FIXED_MS // 1000
    assert ledger.calls["lookup_transaction"] == 0


@pytest.mark.asyncio
async def test_verification_is_idempotent() -> None:
    ledger = InMemoryLedgerClient()
    reference, document_hash = await _anchor(ledger)
    verifier = Verifier(ledger)

    first = await verifier.verify(reference, document_hash)
    second = await verifier.verify(reference, document_hash)

    assert first == second
    assert ledger.calls["submit_transaction"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("reference", ["", "   "])
async def test_empty_reference_is_caller_error(reference) -> None:
    with pytest.raises(InvalidReferenceError):
        await Verifier(InMemoryLedgerClient()).verify(reference, HASH)


class _BrokenLookupLedger(InMemoryLedgerClient):
    async def lookup_transaction(self, tx_id: str) -> LedgerTransaction:
        raise RuntimeError("client bug")


@pytest.mark.asyncio
async def test_unexpected_client_error_is_reported_not_raised() -> None:
    result = await Verifier(_BrokenLookupLedger()).verify("TX123", HASH)

    assert result.verified is False
    assert result.error_code == "ledger_unavailable"
    assert "client bug" in result.error

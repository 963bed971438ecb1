#!/usr/bin/env python3
"""
Notarization Walkthrough

This example demonstrates:
- Notarizing documents against the in-memory ledger
- Verifying records and detecting tampered hashes
- Falling back to simulated records when the ledger is offline
- Journaling records and auditing the journal
"""

import asyncio
from pathlib import Path

from docnotary.journal import RecordJournal
from docnotary.ledger import InMemoryLedgerClient
from docnotary.service import NotaryService
from docnotary.settings import NotarySettings
from docnotary.signing import Signer

JOURNAL_PATH = Path("notary_journal.ndjson")


async def demonstrate_round_trip(service):
    """Notarize a document, then verify the real and a tampered hash."""
    print("Notarize and verify")
    print("=" * 40)

    record = await service.notarize(
        "Lease Agreement v1", {"documentName": "lease.txt", "userId": "u1"}
    )
    print(f"Reference: {record.transaction_reference}")
    print(f"Round:     {record.ledger_position}")
    print(f"Hash:      {record.document_hash}")

    result = await service.verify(record.transaction_reference, record.document_hash)
    print(f"Verified original hash: {result.verified}")

    tampered = await service.verify(
        record.transaction_reference, record.document_hash[:-1] + "0"
    )
    print(f"Verified tampered hash: {tampered.verified} ({tampered.error})")

    payload = service.generate_verification_payload(
        record.transaction_reference, record.document_hash
    )
    print(f"QR payload: {payload.encode()}")


async def demonstrate_fallback(service, ledger):
    """Take the ledger offline and show the simulated path."""
    print("Simulated fallback")
    print("=" * 40)

    ledger.available = False
    record = await service.notarize("Draft NDA", {"documentName": "nda.txt"})
    ledger.available = True

    print(f"Simulated: {record.simulated}")
    print(f"Reference: {record.transaction_reference}")
    print("Simulated records carry no trust guarantee.")


def demonstrate_audit(journal):
    """Validate the journal and report anchored versus simulated records."""
    print("Journal audit")
    print("=" * 40)

    ok, bad_line = journal.validate()
    if ok:
        print("Journal validation passed.")
    else:
        print(f"Journal validation failed at line {bad_line}")

    summary = journal.summarize()
    print(f"Anchored records:  {summary.anchored}")
    print(f"Simulated records: {summary.simulated}")


async def main():
    JOURNAL_PATH.unlink(missing_ok=True)
    ledger = InMemoryLedgerClient()
    journal = RecordJournal(JOURNAL_PATH, Signer(ephemeral=True))
    service = NotaryService(
        ledger, settings=NotarySettings(algod_url=None, indexer_url=None), journal=journal
    )

    await demonstrate_round_trip(service)
    print()
    await demonstrate_fallback(service, ledger)
    print()
    demonstrate_audit(journal)
    print(f"Journal saved to: {JOURNAL_PATH.absolute()}")


if __name__ == "__main__":
    asyncio.run(main())

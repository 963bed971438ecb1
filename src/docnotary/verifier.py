"""Verify notarization records against the ledger read index."""

from __future__ import annotations

import logging

from .errors import (
    InvalidReferenceError,
    LedgerNotFound,
    LedgerUnavailable,
    MalformedRecord,
)
from .ledger.base import LedgerClient
from .memo import decode_memo
from .models import VerificationResult
from .simulator import FallbackSimulator

__all__ = ["Verifier"]

LOGGER = logging.getLogger(__name__)


class Verifier:
    """Look up a transaction, decode its memo and compare document hashes.

    Verification never writes to the ledger and never raises for ledger-side
    outcomes: missing transactions, undecodable memos, outages and unexpected
    client errors all yield ``verified=False`` with an ``error_code``.
    """

    def __init__(
        self, ledger: LedgerClient, *, simulator: FallbackSimulator | None = None
    ) -> None:
        self.ledger = ledger
        self.simulator = simulator or FallbackSimulator()

    async def verify(
        self, transaction_reference: str, expected_hash: str
    ) -> VerificationResult:
        """Check that ``transaction_reference`` anchors ``expected_hash``.

        Raises:
            InvalidReferenceError: If the reference is empty or not a string.
        """

        if not isinstance(transaction_reference, str) or not transaction_reference.strip():
            raise InvalidReferenceError("Transaction reference must be a non-empty string")

        if self.simulator.is_simulated(transaction_reference):
            LOGGER.info(
                "Verifying simulated reference without ledger lookup",
                extra={"transaction_reference": transaction_reference, "simulated": True},
            )
            return self.simulator.simulate_verify(transaction_reference, expected_hash)

        try:
            transaction = await self.ledger.lookup_transaction(transaction_reference)
        except LedgerNotFound:
            return VerificationResult(
                verified=False,
                transaction_reference=transaction_reference,
                error="Transaction not found",
                error_code="not_found",
            )
        except LedgerUnavailable as exc:
            LOGGER.warning(
                "Ledger unavailable during verification",
                extra={"transaction_reference": transaction_reference},
                exc_info=exc,
            )
            return VerificationResult(
                verified=False,
                transaction_reference=transaction_reference,
                error=f"Ledger unavailable: {exc}",
                error_code="ledger_unavailable",
            )
        except Exception as exc:
            LOGGER.warning(
                "Unexpected ledger client error during verification",
                extra={
                    "transaction_reference": transaction_reference,
                    "error_type": type(exc).__name__,
                },
                exc_info=exc,
            )
            return VerificationResult(
                verified=False,
                transaction_reference=transaction_reference,
                error=f"Ledger lookup failed: {exc}",
                error_code="ledger_unavailable",
            )

        try:
            memo = decode_memo(transaction.note)
        except MalformedRecord as exc:
            return VerificationResult(
                verified=False,
                transaction_reference=transaction_reference,
                ledger_position=transaction.confirmed_round,
                timestamp=transaction.timestamp,
                error=str(exc),
                error_code="malformed_record",
            )

        verified = memo.document_hash == expected_hash
        if not verified:
            LOGGER.info(
                "Document hash mismatch",
                extra={"transaction_reference": transaction_reference},
            )
        return VerificationResult(
            verified=verified,
            transaction_reference=transaction_reference,
            ledger_position=transaction.confirmed_round,
            observed_hash=memo.document_hash,
            metadata=dict(memo.metadata),
            timestamp=transaction.timestamp,
            error=None if verified else "Document hash does not match ledger record",
            error_code=None if verified else "hash_mismatch",
        )

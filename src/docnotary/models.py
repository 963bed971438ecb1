"""Result types returned by notarization and verification."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from .hashing import DocumentHash

ErrorCode = Literal[
    "not_found",
    "malformed_record",
    "ledger_unavailable",
    "hash_mismatch",
    "not_simulated",
]


@dataclass(frozen=True, slots=True)
class NotarizationRecord:
    """Immutable outcome of a single notarization.

    ``simulated`` is the only trustworthy signal of whether the record was
    actually anchored on the ledger. Records with ``simulated=True`` carry a
    synthetic reference and ledger position and have no legal weight.
    """

    document_hash: DocumentHash
    transaction_reference: str
    ledger_position: int
    submitted_at_ms: int
    simulated: bool
    hashed_at_ms: int | None = None

    def to_dict(self) -> dict[str, object]:
        """Return the camelCase JSON shape consumed by document stores."""

        return {
            "documentHash": self.document_hash,
            "transactionReference": self.transaction_reference,
            "ledgerPosition": self.ledger_position,
            "submittedAtEpochMillis": self.submitted_at_ms,
            "simulated": self.simulated,
            "hashedAtEpochMillis": self.hashed_at_ms,
        }


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Outcome of a verification call, produced fresh on every request.

    ``timestamp`` is the ledger round time in epoch seconds. ``metadata`` and
    ``observed_hash`` are populated whenever a memo was decoded, including on
    hash mismatches, so callers can audit what the ledger actually holds.
    """

    verified: bool
    transaction_reference: str
    ledger_position: int | None = None
    observed_hash: str | None = None
    metadata: dict[str, object] | None = field(default=None, hash=False)
    timestamp: int | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    simulated: bool = False

    def to_dict(self) -> dict[str, object]:
        """Return the camelCase JSON shape with unset fields dropped."""

        payload: dict[str, object] = {
            "verified": self.verified,
            "transactionReference": self.transaction_reference,
            "simulated": self.simulated,
        }
        optional = {
            "ledgerPosition": self.ledger_position,
            "observedHash": self.observed_hash,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
            "error": self.error,
            "errorCode": self.error_code,
        }
        for key, value in optional.items():
            if value is not None:
                payload[key] = value
        return payload

"""Exception hierarchy shared by the notarization and verification paths."""

from __future__ import annotations

__all__ = [
    "ConfirmationTimeout",
    "EmptyDocumentError",
    "IdentityDiscardedError",
    "InvalidInputError",
    "InvalidMetadataError",
    "InvalidReferenceError",
    "KeyGenerationFailed",
    "LedgerNotFound",
    "LedgerUnavailable",
    "MalformedRecord",
    "NotarizationFailed",
    "NotaryError",
    "TransactionRejected",
]


class NotaryError(Exception):
    """Base class for all docnotary errors."""


class InvalidInputError(NotaryError, ValueError):
    """Raised when caller-supplied input cannot be notarized or verified."""


class EmptyDocumentError(InvalidInputError):
    """Raised when document content is empty after trimming whitespace."""


class InvalidMetadataError(InvalidInputError):
    """Raised when metadata is not a flat mapping of strings to scalars."""


class InvalidReferenceError(InvalidInputError):
    """Raised when a transaction reference is empty or not a string."""


class KeyGenerationFailed(NotaryError):
    """Raised when the keypair primitive fails; never recovered by fallback."""


class IdentityDiscardedError(NotaryError):
    """Raised when private key material is accessed after it was discarded."""


class LedgerUnavailable(NotaryError):
    """Raised by ledger clients when the ledger cannot serve a request."""


class ConfirmationTimeout(LedgerUnavailable):
    """Raised when a transaction is not confirmed within the round budget."""

    def __init__(self, tx_id: str, max_rounds: int) -> None:
        super().__init__(
            f"Transaction {tx_id} not confirmed after {max_rounds} rounds"
        )
        self.tx_id = tx_id
        self.max_rounds = max_rounds


class TransactionRejected(LedgerUnavailable):
    """Raised when the ledger rejects a submitted transaction."""


class LedgerNotFound(NotaryError):
    """Raised when a transaction reference is absent from the ledger index."""

    def __init__(self, tx_id: str) -> None:
        super().__init__(f"Transaction not found: {tx_id}")
        self.tx_id = tx_id


class MalformedRecord(NotaryError):
    """Raised when a memo is present but cannot be decoded as a notarization."""


class NotarizationFailed(NotaryError):
    """Raised when notarization fails and simulated fallback is disabled."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

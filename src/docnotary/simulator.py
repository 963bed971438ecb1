"""Simulated notarization used when the ledger is unreachable or unconfigured.

Simulated records are structurally identical to anchored ones but carry a
``DEMO_``-prefixed reference and ``simulated=True``. They keep demo and
offline flows working and provide no trust guarantee whatsoever.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Mapping
from typing import Final

from .hashing import compute_hash, now_ms
from .models import NotarizationRecord, VerificationResult
from .settings import DEFAULT_PLATFORM

__all__ = ["SIMULATED_PREFIX", "FallbackSimulator"]

LOGGER = logging.getLogger(__name__)

SIMULATED_PREFIX: Final[str] = "DEMO_"
_POSITION_MODULUS: Final[int] = 1_000_000


class FallbackSimulator:
    """Produce and verify simulated notarization records."""

    def __init__(
        self, *, prefix: str = SIMULATED_PREFIX, platform: str = DEFAULT_PLATFORM
    ) -> None:
        if not prefix:
            raise ValueError("Simulated reference prefix must not be empty")
        self.prefix = prefix
        self.platform = platform

    def is_simulated(self, transaction_reference: str) -> bool:
        """Return ``True`` when the reference carries the simulated prefix."""

        return transaction_reference.startswith(self.prefix)

    def new_reference(self, at_ms: int | None = None) -> str:
        """Return a fresh simulated reference ``<prefix><ms>_<token>``."""

        stamp = now_ms() if at_ms is None else at_ms
        return f"{self.prefix}{stamp}_{secrets.token_hex(4).upper()}"

    def ledger_position(self, transaction_reference: str) -> int:
        """Return the synthetic ledger position bound to a reference."""

        digest = hashlib.sha256(transaction_reference.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % _POSITION_MODULUS

    def simulate(
        self,
        content: str | bytes,
        metadata: Mapping[str, object] | None = None,
        *,
        timestamp_ms: int | None = None,
    ) -> NotarizationRecord:
        """Return a simulated record whose hash matches the real path's.

        Args:
            content: Document content, hashed exactly as the submitter does.
            metadata: Metadata covered by the hash.
            timestamp_ms: Freshness marker; defaults to now.
        """

        hashed_at = now_ms() if timestamp_ms is None else timestamp_ms
        document_hash = compute_hash(content, metadata, timestamp_ms=hashed_at)
        submitted_at = now_ms()
        reference = self.new_reference(submitted_at)
        LOGGER.info(
            "Produced simulated notarization",
            extra={"transaction_reference": reference, "simulated": True},
        )
        return NotarizationRecord(
            document_hash=document_hash,
            transaction_reference=reference,
            ledger_position=self.ledger_position(reference),
            submitted_at_ms=submitted_at,
            simulated=True,
            hashed_at_ms=hashed_at,
        )

    def simulate_verify(
        self, transaction_reference: str, expected_hash: str
    ) -> VerificationResult:
        """Echo a successful verification for simulated references.

        Non-simulated references are reported as unverified; they must go
        through the ledger.
        """

        if not self.is_simulated(transaction_reference):
            return VerificationResult(
                verified=False,
                transaction_reference=transaction_reference,
                error="Reference is not a simulated notarization",
                error_code="not_simulated",
            )
        return VerificationResult(
            verified=True,
            transaction_reference=transaction_reference,
            ledger_position=self.ledger_position(transaction_reference),
            observed_hash=expected_hash,
            metadata={"platform": self.platform, "simulated": True},
            timestamp=self._timestamp_from_reference(transaction_reference),
            simulated=True,
        )

    def _timestamp_from_reference(self, transaction_reference: str) -> int | None:
        stamp = transaction_reference[len(self.prefix) :].split("_", 1)[0]
        return int(stamp) // 1000 if stamp.isdigit() else None

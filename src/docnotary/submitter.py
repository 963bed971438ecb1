"""Anchor document hashes on the ledger as zero-value self-payments."""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping

from algosdk import encoding
from algosdk.transaction import PaymentTxn

from .errors import IdentityDiscardedError, LedgerUnavailable, NotarizationFailed
from .hashing import (
    NOTARIZED_AT_KEY,
    Scalar,
    compute_hash,
    format_timestamp,
    normalise_metadata,
    now_ms,
)
from .identity import Identity
from .ledger.base import Confirmation, LedgerClient
from .memo import build_memo, encode_memo
from .models import NotarizationRecord
from .settings import DEFAULT_PLATFORM, FallbackMode
from .simulator import FallbackSimulator

__all__ = ["NotarizationSubmitter"]

LOGGER = logging.getLogger(__name__)

PLATFORM_KEY = "platform"


class NotarizationSubmitter:
    """Build, sign, submit and confirm notarization transactions.

    The transaction is a payment of zero units from the signing address to
    itself; its only purpose is to timestamp the memo carried in the note.
    Ledger failures are absorbed by the :class:`FallbackSimulator` unless
    ``fallback_mode`` is ``"fail"``.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        *,
        simulator: FallbackSimulator | None = None,
        platform: str = DEFAULT_PLATFORM,
        confirmation_rounds: int = 4,
        fallback_mode: FallbackMode = "simulate",
    ) -> None:
        if confirmation_rounds < 1:
            raise ValueError("confirmation_rounds must be at least 1")
        self.ledger = ledger
        self.simulator = simulator or FallbackSimulator(platform=platform)
        self.platform = platform
        self.confirmation_rounds = confirmation_rounds
        self.fallback_mode = fallback_mode

    def prepare_metadata(
        self, metadata: Mapping[str, object] | None, timestamp_ms: int
    ) -> dict[str, Scalar]:
        """Return caller metadata with the platform tag and timestamp injected.

        Injected fields win over caller-supplied keys of the same name.
        """

        prepared = normalise_metadata(metadata)
        for key in (PLATFORM_KEY, NOTARIZED_AT_KEY):
            if key in prepared:
                LOGGER.debug("Overriding caller metadata key", extra={"key": key})
        prepared[PLATFORM_KEY] = self.platform
        prepared[NOTARIZED_AT_KEY] = format_timestamp(timestamp_ms)
        return prepared

    async def notarize(
        self,
        content: str | bytes,
        metadata: Mapping[str, object] | None,
        identity: Identity,
        *,
        timestamp_ms: int | None = None,
    ) -> NotarizationRecord:
        """Notarize ``content`` and return the resulting record.

        The identity's private key is discarded before this coroutine returns,
        raises or is cancelled.

        Args:
            content: Document text or bytes.
            metadata: Flat scalar metadata covered by the hash.
            identity: Signing identity; consumed by this call.
            timestamp_ms: Freshness marker; defaults to now.

        Returns:
            An anchored record, or a simulated one when the ledger failed.

        Raises:
            InvalidInputError: For empty content, bad metadata or oversized
                memos.
            NotarizationFailed: If the ledger failed and fallback is disabled.
        """

        try:
            if identity.discarded:
                raise IdentityDiscardedError(
                    f"Identity {identity.address} was discarded before use"
                )
            hashed_at = now_ms() if timestamp_ms is None else timestamp_ms
            prepared = self.prepare_metadata(metadata, hashed_at)
            document_hash = compute_hash(content, prepared, timestamp_ms=hashed_at)
            note = encode_memo(build_memo(document_hash, prepared))

            try:
                confirmation = await self._anchor(note, identity)
            except LedgerUnavailable as exc:
                return self._fall_back(content, prepared, hashed_at, exc)
            except Exception as exc:
                LOGGER.warning(
                    "Unexpected ledger client failure",
                    extra={"error_type": type(exc).__name__},
                    exc_info=exc,
                )
                return self._fall_back(content, prepared, hashed_at, exc)

            record = NotarizationRecord(
                document_hash=document_hash,
                transaction_reference=confirmation.tx_id,
                ledger_position=confirmation.confirmed_round,
                submitted_at_ms=now_ms(),
                simulated=False,
                hashed_at_ms=hashed_at,
            )
            LOGGER.info(
                "Document notarized on ledger",
                extra={
                    "transaction_reference": record.transaction_reference,
                    "ledger_position": record.ledger_position,
                    "simulated": False,
                },
            )
            return record
        finally:
            identity.discard()

    async def _anchor(self, note: bytes, identity: Identity) -> Confirmation:
        params = await self.ledger.get_network_params()
        txn = PaymentTxn(
            sender=identity.address,
            sp=params.to_suggested_params(),
            receiver=identity.address,
            amt=0,
            note=note,
        )
        signed = identity.sign(txn)
        signed_bytes = base64.b64decode(encoding.msgpack_encode(signed))
        tx_id = await self.ledger.submit_transaction(signed_bytes)
        LOGGER.debug("Submitted notarization transaction", extra={"tx_id": tx_id})
        return await self.ledger.await_confirmation(tx_id, self.confirmation_rounds)

    def _fall_back(
        self,
        content: str | bytes,
        prepared: Mapping[str, Scalar],
        hashed_at: int,
        exc: Exception,
    ) -> NotarizationRecord:
        if self.fallback_mode == "fail":
            LOGGER.error(
                "Ledger notarization failed and fallback is disabled",
                extra={"error_type": type(exc).__name__},
            )
            raise NotarizationFailed(str(exc)) from exc

        LOGGER.warning(
            "Ledger notarization failed; returning simulated record",
            extra={"error_type": type(exc).__name__, "error": str(exc), "simulated": True},
        )
        return self.simulator.simulate(content, prepared, timestamp_ms=hashed_at)

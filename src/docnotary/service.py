"""Caller-facing notarization API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path

import portalocker

from .hashing import DocumentHash, compute_hash, now_ms
from .identity import (
    EphemeralIdentityProvider,
    IdentityProvider,
    MnemonicIdentityProvider,
)
from .journal import RecordJournal
from .ledger.algorand import AlgorandLedgerClient
from .ledger.base import LedgerClient
from .models import NotarizationRecord, VerificationResult
from .schemas import VerificationPayload
from .settings import DEFAULT_VERIFY_URL_TEMPLATE, NotarySettings, get_settings
from .signing import Signer
from .simulator import FallbackSimulator
from .submitter import NotarizationSubmitter
from .verifier import Verifier

__all__ = ["NotaryService"]

LOGGER = logging.getLogger(__name__)


class NotaryService:
    """Hash, notarize and verify documents against a ledger.

    Every :meth:`notarize` call obtains its own identity from the identity
    provider and hands it to the submitter, which discards it before the call
    returns. Records with ``simulated=True`` were not anchored and must not be
    presented as legally meaningful.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        *,
        identity_provider: IdentityProvider | None = None,
        simulator: FallbackSimulator | None = None,
        settings: NotarySettings | None = None,
        journal: RecordJournal | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.simulator = simulator or FallbackSimulator(platform=self.settings.platform)
        self.identity_provider = identity_provider or EphemeralIdentityProvider()
        self.journal = journal
        self.submitter = NotarizationSubmitter(
            ledger,
            simulator=self.simulator,
            platform=self.settings.platform,
            confirmation_rounds=self.settings.confirmation_rounds,
            fallback_mode=self.settings.fallback_mode,
        )
        self.verifier = Verifier(ledger, simulator=self.simulator)

    @classmethod
    def from_settings(cls, settings: NotarySettings | None = None) -> NotaryService:
        """Wire the Algorand client, identity provider and journal from settings."""

        settings_obj = settings or get_settings()
        provider: IdentityProvider
        if settings_obj.signer_mnemonic:
            provider = MnemonicIdentityProvider(settings_obj.signer_mnemonic)
        else:
            provider = EphemeralIdentityProvider()

        journal: RecordJournal | None = None
        if settings_obj.journal_path and settings_obj.journal_key_hex:
            journal = RecordJournal(
                Path(settings_obj.journal_path),
                Signer.from_hex(settings_obj.journal_key_hex),
            )
        elif settings_obj.journal_path:
            LOGGER.warning(
                "Journal path configured without NOTARY_JOURNAL_KEY; journaling disabled",
                extra={"journal_path": settings_obj.journal_path},
            )

        return cls(
            AlgorandLedgerClient.from_settings(settings_obj),
            identity_provider=provider,
            settings=settings_obj,
            journal=journal,
        )

    def compute_hash(
        self,
        content: str | bytes,
        metadata: Mapping[str, object] | None = None,
        *,
        timestamp_ms: int | None = None,
    ) -> DocumentHash:
        """Return the hash :meth:`notarize` would anchor for the same inputs.

        The platform tag and ``notarizedAt`` are injected into ``metadata``
        first, so passing the same ``timestamp_ms`` to both calls yields the
        same digest.
        """

        stamp = now_ms() if timestamp_ms is None else timestamp_ms
        prepared = self.submitter.prepare_metadata(metadata, stamp)
        return compute_hash(content, prepared, timestamp_ms=stamp)

    async def notarize(
        self,
        content: str | bytes,
        metadata: Mapping[str, object] | None = None,
        *,
        timestamp_ms: int | None = None,
    ) -> NotarizationRecord:
        """Notarize a document and return its record.

        Raises:
            KeyGenerationFailed: If no signing identity could be created.
            InvalidInputError: For empty content or invalid metadata.
            NotarizationFailed: If the ledger failed and fallback is disabled.
        """

        identity = self.identity_provider.create_identity()
        record = await self.submitter.notarize(
            content, metadata, identity, timestamp_ms=timestamp_ms
        )
        if self.journal is not None:
            try:
                await asyncio.to_thread(self.journal.append, record)
            except (OSError, ValueError, portalocker.LockException) as exc:
                # The ledger outcome stands even when the journal write fails.
                LOGGER.error(
                    "Failed to journal notarization record",
                    extra={
                        "transaction_reference": record.transaction_reference,
                        "simulated": record.simulated,
                        "journal_path": str(self.journal.path),
                    },
                    exc_info=exc,
                )
        return record

    async def verify(
        self, transaction_reference: str, expected_hash: str
    ) -> VerificationResult:
        """Verify that ``transaction_reference`` anchors ``expected_hash``."""

        return await self.verifier.verify(transaction_reference, expected_hash)

    def generate_verification_payload(
        self, transaction_reference: str, document_hash: str
    ) -> VerificationPayload:
        """Return the compact payload rendered into a verification QR code."""

        template = self.settings.verify_url_template or DEFAULT_VERIFY_URL_TEMPLATE
        verify_url = template.format(
            transaction_reference=transaction_reference,
            document_hash=document_hash,
        )
        return VerificationPayload(
            platform=self.settings.platform,
            transaction_reference=transaction_reference,
            document_hash=document_hash,
            verification_url_template=template,
            verify_url=verify_url,
            simulated=self.simulator.is_simulated(transaction_reference),
        )

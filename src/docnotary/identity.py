"""Signing identities for notarization transactions.

An :class:`Identity` wraps an Algorand address and its private key. The key
is held in a mutable buffer so that :meth:`Identity.discard` can zero it once
the notarization that used it completes. Every notarization owns exactly one
identity and discards it on success, fallback, error or cancellation.
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from types import TracebackType

from algosdk import account, mnemonic
from algosdk.atomic_transaction_composer import AccountTransactionSigner
from algosdk.transaction import SignedTransaction, Transaction

from .errors import IdentityDiscardedError, KeyGenerationFailed

__all__ = [
    "EphemeralIdentityProvider",
    "Identity",
    "IdentityProvider",
    "MnemonicIdentityProvider",
]

LOGGER = logging.getLogger(__name__)


class Identity:
    """Ledger address plus private signing material."""

    __slots__ = ("address", "_secret", "_discarded")

    def __init__(self, address: str, private_key: str) -> None:
        self.address = address
        self._secret = bytearray(base64.b64decode(private_key))
        self._discarded = False

    def __repr__(self) -> str:
        state = "discarded" if self._discarded else "live"
        return f"Identity(address={self.address!r}, {state})"

    def __enter__(self) -> Identity:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.discard()

    @property
    def discarded(self) -> bool:
        """Return ``True`` once the private material has been wiped."""

        return self._discarded

    @property
    def private_key(self) -> str:
        """Return the base64 private key in the format algosdk expects.

        Raises:
            IdentityDiscardedError: If the identity has been discarded.
        """

        self._ensure_live()
        return base64.b64encode(bytes(self._secret)).decode("ascii")

    @property
    def recovery_phrase(self) -> str:
        """Return the 25-word recovery phrase for the private key."""

        return mnemonic.from_private_key(self.private_key)

    def sign(self, transaction: Transaction) -> SignedTransaction:
        """Sign ``transaction`` with this identity's private key."""

        signer = AccountTransactionSigner(self.private_key)
        (signed,) = signer.sign_transactions([transaction], [0])
        return signed

    def discard(self) -> None:
        """Zero the private key buffer; safe to call more than once."""

        for index in range(len(self._secret)):
            self._secret[index] = 0
        self._secret = bytearray()
        self._discarded = True

    def _ensure_live(self) -> None:
        if self._discarded:
            raise IdentityDiscardedError(
                f"Private key for {self.address} has already been discarded"
            )


class IdentityProvider(ABC):
    """Source of signing identities for notarization transactions."""

    @abstractmethod
    def create_identity(self) -> Identity:
        """Return a new :class:`Identity` owned by the caller.

        Raises:
            KeyGenerationFailed: If key material cannot be produced.
        """


class EphemeralIdentityProvider(IdentityProvider):
    """Generate a fresh random Algorand account for every call."""

    def create_identity(self) -> Identity:
        try:
            private_key, address = account.generate_account()
        except Exception as exc:
            LOGGER.error(
                "Ledger keypair generation failed",
                extra={"error_type": type(exc).__name__},
            )
            raise KeyGenerationFailed(f"Keypair generation failed: {exc}") from exc
        LOGGER.debug("Generated ephemeral identity", extra={"address": address})
        return Identity(address, private_key)


class MnemonicIdentityProvider(IdentityProvider):
    """Restore a persistent, caller-custodied account from its recovery phrase.

    Each call returns a new :class:`Identity` object; discarding it wipes only
    that copy of the key, the phrase stays with the provider's owner.
    """

    def __init__(self, phrase: str) -> None:
        self._phrase = phrase

    def create_identity(self) -> Identity:
        try:
            private_key = mnemonic.to_private_key(self._phrase)
            address = account.address_from_private_key(private_key)
        except Exception as exc:
            raise KeyGenerationFailed(
                f"Could not restore identity from recovery phrase: {exc}"
            ) from exc
        return Identity(address, private_key)

"""Boundary types for ledger clients used by the submitter and verifier."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from algosdk.transaction import SuggestedParams


@dataclass(frozen=True, slots=True)
class NetworkParams:
    """Suggested transaction parameters reported by the ledger."""

    fee: int
    min_fee: int
    first_valid: int
    last_valid: int
    genesis_id: str
    genesis_hash: str
    consensus_version: str | None = None
    flat_fee: bool = False

    def to_suggested_params(self) -> SuggestedParams:
        """Return the algosdk representation used to build transactions."""

        return SuggestedParams(
            fee=self.fee,
            first=self.first_valid,
            last=self.last_valid,
            gh=self.genesis_hash,
            gen=self.genesis_id,
            flat_fee=self.flat_fee,
            consensus_version=self.consensus_version,
            min_fee=self.min_fee,
        )


@dataclass(frozen=True, slots=True)
class Confirmation:
    """Confirmation details for a submitted transaction."""

    tx_id: str
    confirmed_round: int


@dataclass(frozen=True, slots=True)
class LedgerTransaction:
    """Confirmed transaction as returned by the ledger read index."""

    tx_id: str
    note: bytes | None
    confirmed_round: int | None
    timestamp: int | None
    sender: str | None = None
    receiver: str | None = None
    amount: int | None = None


class LedgerClient(ABC):
    """Asynchronous ledger operations consumed by notarization.

    Implementations raise :class:`~docnotary.errors.LedgerUnavailable` (or a
    subclass) for any transport, configuration or rejection failure, and
    :class:`~docnotary.errors.LedgerNotFound` when a lookup target does not
    exist.
    """

    @abstractmethod
    async def get_network_params(self) -> NetworkParams:
        """Return current suggested transaction parameters."""

    @abstractmethod
    async def submit_transaction(self, signed_bytes: bytes) -> str:
        """Submit a msgpack-encoded signed transaction and return its id."""

    @abstractmethod
    async def await_confirmation(self, tx_id: str, max_rounds: int) -> Confirmation:
        """Wait at most ``max_rounds`` ledger rounds for ``tx_id`` to confirm."""

    @abstractmethod
    async def lookup_transaction(self, tx_id: str) -> LedgerTransaction:
        """Fetch a confirmed transaction from the read index."""

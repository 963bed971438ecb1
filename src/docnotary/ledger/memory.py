"""Process-local ledger used for tests, demos and offline development."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import time
from collections import Counter
from dataclasses import dataclass

from algosdk import constants, encoding
from algosdk.transaction import SignedTransaction
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from docnotary.errors import (
    ConfirmationTimeout,
    LedgerNotFound,
    LedgerUnavailable,
    TransactionRejected,
)
from docnotary.ledger.base import (
    Confirmation,
    LedgerClient,
    LedgerTransaction,
    NetworkParams,
)

LOGGER = logging.getLogger(__name__)

MEMORY_GENESIS_ID = "docnotary-memory-v1"
MEMORY_GENESIS_HASH = base64.b64encode(
    hashlib.sha256(MEMORY_GENESIS_ID.encode("utf-8")).digest()
).decode("ascii")


@dataclass(frozen=True, slots=True)
class _StoredTransaction:
    tx_id: str
    note: bytes | None
    confirmed_round: int
    timestamp: int
    sender: str | None
    receiver: str | None
    amount: int | None


class InMemoryLedgerClient(LedgerClient):
    """Accept signed Algorand transactions and confirm them in-process.

    Signatures are checked against the sender address and each accepted
    transaction is confirmed in its own round. Setting ``available`` to
    ``False`` makes every call raise
    :class:`~docnotary.errors.LedgerUnavailable`; setting ``confirm`` to
    ``False`` leaves submissions pending so confirmation times out.
    ``calls`` counts invocations per operation.
    """

    def __init__(
        self,
        *,
        start_round: int = 1000,
        available: bool = True,
        confirm: bool = True,
    ) -> None:
        self.available = available
        self.confirm = confirm
        self.calls: Counter[str] = Counter()
        self._round = start_round
        self._confirmed: dict[str, _StoredTransaction] = {}
        self._pending: set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def current_round(self) -> int:
        """Return the most recent round produced by the ledger."""

        return self._round

    async def get_network_params(self) -> NetworkParams:
        self._enter("get_network_params")
        return NetworkParams(
            fee=0,
            min_fee=constants.MIN_TXN_FEE,
            first_valid=self._round,
            last_valid=self._round + 1000,
            genesis_id=MEMORY_GENESIS_ID,
            genesis_hash=MEMORY_GENESIS_HASH,
        )

    async def submit_transaction(self, signed_bytes: bytes) -> str:
        self._enter("submit_transaction")
        try:
            decoded = encoding.msgpack_decode(base64.b64encode(signed_bytes).decode("ascii"))
        except Exception as exc:
            raise TransactionRejected(f"Undecodable transaction: {exc}") from exc
        if not isinstance(decoded, SignedTransaction):
            raise TransactionRejected("Submitted payload is not a signed transaction")

        txn = decoded.transaction
        if txn.genesis_hash != MEMORY_GENESIS_HASH:
            raise TransactionRejected("Transaction targets a different network")
        self._verify_signature(decoded)

        tx_id = txn.get_txid()
        async with self._lock:
            if not txn.first_valid_round <= self._round + 1 <= txn.last_valid_round:
                raise TransactionRejected(f"Transaction {tx_id} outside validity window")
            if not self.confirm:
                self._pending.add(tx_id)
                return tx_id
            self._round += 1
            self._confirmed[tx_id] = _StoredTransaction(
                tx_id=tx_id,
                note=txn.note or None,
                confirmed_round=self._round,
                timestamp=int(time.time()),
                sender=txn.sender,
                receiver=getattr(txn, "receiver", None),
                amount=getattr(txn, "amt", None),
            )
        LOGGER.debug(
            "In-memory ledger accepted transaction",
            extra={"tx_id": tx_id, "round": self._round},
        )
        return tx_id

    async def await_confirmation(self, tx_id: str, max_rounds: int) -> Confirmation:
        self._enter("await_confirmation")
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        stored = self._confirmed.get(tx_id)
        if stored is not None:
            return Confirmation(tx_id=tx_id, confirmed_round=stored.confirmed_round)
        if tx_id in self._pending:
            await asyncio.sleep(0)
            raise ConfirmationTimeout(tx_id, max_rounds)
        raise TransactionRejected(f"Transaction {tx_id} unknown to ledger")

    async def lookup_transaction(self, tx_id: str) -> LedgerTransaction:
        self._enter("lookup_transaction")
        stored = self._confirmed.get(tx_id)
        if stored is None:
            raise LedgerNotFound(tx_id)
        return LedgerTransaction(
            tx_id=stored.tx_id,
            note=stored.note,
            confirmed_round=stored.confirmed_round,
            timestamp=stored.timestamp,
            sender=stored.sender,
            receiver=stored.receiver,
            amount=stored.amount,
        )

    def record_external(
        self,
        tx_id: str,
        note: bytes | None,
        *,
        sender: str | None = None,
        amount: int | None = 0,
    ) -> None:
        """Store an arbitrary confirmed transaction, bypassing validation.

        Used to model transactions written by other tools, such as payments
        with unrelated or corrupted notes.
        """

        self._round += 1
        self._confirmed[tx_id] = _StoredTransaction(
            tx_id=tx_id,
            note=note,
            confirmed_round=self._round,
            timestamp=int(time.time()),
            sender=sender,
            receiver=sender,
            amount=amount,
        )

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if not self.available:
            raise LedgerUnavailable(f"In-memory ledger is offline ({operation})")

    @staticmethod
    def _verify_signature(signed: SignedTransaction) -> None:
        txn = signed.transaction
        if not signed.signature:
            raise TransactionRejected("Transaction is not signed")
        message = constants.txid_prefix + base64.b64decode(encoding.msgpack_encode(txn))
        public_key = Ed25519PublicKey.from_public_bytes(encoding.decode_address(txn.sender))
        try:
            public_key.verify(base64.b64decode(signed.signature), message)
        except InvalidSignature as exc:
            raise TransactionRejected("Transaction signature does not match sender") from exc

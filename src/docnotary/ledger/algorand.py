"""Algorand ledger client backed by the algod and indexer v2 REST APIs."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any
from urllib.parse import quote

import httpx

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
from docnotary.settings import (
    DEFAULT_ALGOD_URL,
    DEFAULT_INDEXER_URL,
    NotarySettings,
    get_settings,
)

LOGGER = logging.getLogger(__name__)

TOKEN_HEADER = "X-Algo-API-Token"
# Validity window applied on top of the node's last round, as algosdk does.
VALIDITY_WINDOW_ROUNDS = 1000


def _optional_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


class AlgorandLedgerClient(LedgerClient):
    """Submit and look up notarization transactions on an Algorand network.

    A fresh :class:`httpx.AsyncClient` is opened per operation. Every
    transport failure, non-success status and unparseable payload is mapped to
    :class:`~docnotary.errors.LedgerUnavailable` so that callers only have to
    handle the boundary error types.
    """

    def __init__(
        self,
        algod_url: str | None = DEFAULT_ALGOD_URL,
        indexer_url: str | None = DEFAULT_INDEXER_URL,
        *,
        algod_token: str = "",
        indexer_token: str = "",
        timeout_seconds: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._algod_url = algod_url.rstrip("/") if algod_url else None
        self._indexer_url = indexer_url.rstrip("/") if indexer_url else None
        self._algod_token = algod_token
        self._indexer_token = indexer_token
        self._timeout = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: NotarySettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> AlgorandLedgerClient:
        """Build a client from environment settings."""

        settings_obj = settings or get_settings()
        return cls(
            settings_obj.algod_url,
            settings_obj.indexer_url,
            algod_token=settings_obj.algod_token,
            indexer_token=settings_obj.indexer_token,
            timeout_seconds=settings_obj.request_timeout,
            transport=transport,
        )

    async def get_network_params(self) -> NetworkParams:
        async with self._open(self._algod_url, self._algod_token, "algod") as client:
            response = await self._send(client, "GET", "/v2/transactions/params")
            payload = self._json(response, "params")

        try:
            last_round = int(payload["last-round"])
            return NetworkParams(
                fee=int(payload.get("fee", 0)),
                min_fee=int(payload.get("min-fee", 1000)),
                first_valid=last_round,
                last_valid=last_round + VALIDITY_WINDOW_ROUNDS,
                genesis_id=str(payload["genesis-id"]),
                genesis_hash=str(payload["genesis-hash"]),
                consensus_version=payload.get("consensus-version"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerUnavailable(
                "Algorand node returned malformed transaction parameters"
            ) from exc

    async def submit_transaction(self, signed_bytes: bytes) -> str:
        async with self._open(self._algod_url, self._algod_token, "algod") as client:
            response = await self._send(
                client,
                "POST",
                "/v2/transactions",
                content=signed_bytes,
                headers={"Content-Type": "application/x-binary"},
            )
            if response.status_code == httpx.codes.BAD_REQUEST:
                message = self._error_message(response)
                LOGGER.warning(
                    "Algorand node rejected transaction",
                    extra={"status_code": response.status_code, "detail": message},
                )
                raise TransactionRejected(f"Transaction rejected: {message}")
            payload = self._json(response, "submit")

        tx_id = payload.get("txId")
        if not isinstance(tx_id, str) or not tx_id:
            raise LedgerUnavailable("Algorand node did not return a transaction id")
        return tx_id

    async def await_confirmation(self, tx_id: str, max_rounds: int) -> Confirmation:
        """Poll pending-transaction info one round at a time.

        Args:
            tx_id: Identifier returned by :meth:`submit_transaction`.
            max_rounds: Number of rounds to wait before giving up.

        Returns:
            The round in which the transaction was confirmed.

        Raises:
            ValueError: If ``max_rounds`` is less than one.
            TransactionRejected: If the node reports a pool error.
            ConfirmationTimeout: If the round budget is exhausted.
        """

        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")

        pending_path = f"/v2/transactions/pending/{quote(tx_id, safe='')}"
        async with self._open(self._algod_url, self._algod_token, "algod") as client:
            status = self._json(await self._send(client, "GET", "/v2/status"), "status")
            last_round = _optional_int(status.get("last-round"))
            if last_round is None:
                raise LedgerUnavailable("Algorand node status has no last-round")

            start_round = last_round + 1
            current_round = start_round
            while current_round < start_round + max_rounds:
                response = await self._send(client, "GET", pending_path)
                if response.status_code == httpx.codes.NOT_FOUND:
                    raise TransactionRejected(f"Transaction {tx_id} unknown to node")
                pending = self._json(response, "pending")

                confirmed_round = _optional_int(pending.get("confirmed-round")) or 0
                if confirmed_round > 0:
                    LOGGER.info(
                        "Transaction confirmed",
                        extra={"tx_id": tx_id, "confirmed_round": confirmed_round},
                    )
                    return Confirmation(tx_id=tx_id, confirmed_round=confirmed_round)

                pool_error = pending.get("pool-error")
                if pool_error:
                    raise TransactionRejected(
                        f"Transaction {tx_id} rejected by pool: {pool_error}"
                    )

                self._json(
                    await self._send(
                        client, "GET", f"/v2/status/wait-for-block-after/{current_round}"
                    ),
                    "wait",
                )
                current_round += 1

        raise ConfirmationTimeout(tx_id, max_rounds)

    async def lookup_transaction(self, tx_id: str) -> LedgerTransaction:
        path = f"/v2/transactions/{quote(tx_id, safe='')}"
        async with self._open(
            self._indexer_url, self._indexer_token, "indexer"
        ) as client:
            response = await self._send(client, "GET", path)
            if response.status_code == httpx.codes.NOT_FOUND:
                raise LedgerNotFound(tx_id)
            payload = self._json(response, "lookup")

        txn = payload.get("transaction")
        if not isinstance(txn, dict):
            raise LedgerNotFound(tx_id)

        note_raw = txn.get("note")
        note: bytes | None = None
        if isinstance(note_raw, str) and note_raw:
            try:
                note = base64.b64decode(note_raw, validate=True)
            except (binascii.Error, ValueError):
                note = note_raw.encode("utf-8")

        payment = txn.get("payment-transaction")
        if not isinstance(payment, dict):
            payment = {}
        return LedgerTransaction(
            tx_id=str(txn.get("id") or tx_id),
            note=note,
            confirmed_round=_optional_int(txn.get("confirmed-round")),
            timestamp=_optional_int(txn.get("round-time")),
            sender=txn.get("sender"),
            receiver=payment.get("receiver"),
            amount=_optional_int(payment.get("amount")),
        )

    def _open(self, base_url: str | None, token: str, name: str) -> httpx.AsyncClient:
        if not base_url:
            LOGGER.warning("Algorand endpoint not configured", extra={"endpoint": name})
            raise LedgerUnavailable(f"Algorand {name} endpoint is not configured")
        headers = {TOKEN_HEADER: token} if token else {}
        return httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "Algorand transport error",
                extra={"method": method, "path": path, "error_type": type(exc).__name__},
                exc_info=exc,
            )
            raise LedgerUnavailable(f"Algorand request {method} {path} failed: {exc}") from exc

    def _json(self, response: httpx.Response, operation: str) -> dict[str, Any]:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            LOGGER.warning(
                "Algorand HTTP error",
                extra={
                    "operation": operation,
                    "status_code": response.status_code,
                    "url": str(response.request.url),
                },
            )
            raise LedgerUnavailable(
                f"Algorand {operation} returned HTTP {response.status_code}: "
                f"{self._error_message(response)}"
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise LedgerUnavailable(
                f"Algorand {operation} returned a non-JSON response"
            ) from exc
        if not isinstance(payload, dict):
            raise LedgerUnavailable(f"Algorand {operation} returned a non-object payload")
        return payload

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return body["message"]
        return response.text[:200]

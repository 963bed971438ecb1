"""Tests for the Algorand REST ledger client using a mocked transport."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from docnotary.errors import (
    ConfirmationTimeout,
    LedgerNotFound,
    LedgerUnavailable,
    TransactionRejected,
)
from docnotary.ledger.algorand import TOKEN_HEADER, AlgorandLedgerClient
from docnotary.settings import NotarySettings

ALGOD = "https://algod.test"
INDEXER = "https://indexer.test"


def _client(handler, **kwargs) -> AlgorandLedgerClient:
    return AlgorandLedgerClient(
        ALGOD,
        INDEXER,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_network_params_are_mapped() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.url.path == "/v2/transactions/params"
        return httpx.Response(
            200,
            json={
                "consensus-version": "future",
                "fee": 0,
                "genesis-hash": "SGO1GKSzyE7IEPItTxCByw9x8FmnrCDexi9/cOUJOiI=",
                "genesis-id": "testnet-v1.0",
                "last-round": 42,
                "min-fee": 1000,
            },
        )

    params = await _client(handler, algod_token="secret").get_network_params()

    assert params.first_valid == 42
    assert params.last_valid == 1042
    assert params.genesis_id == "testnet-v1.0"
    assert params.min_fee == 1000
    assert seen[0].headers[TOKEN_HEADER] == "secret"
    suggested = params.to_suggested_params()
    assert suggested.first == 42
    assert suggested.gh == params.genesis_hash


@pytest.mark.asyncio
async def test_malformed_params_raise_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"fee": 0})

    with pytest.raises(LedgerUnavailable):
        await _client(handler).get_network_params()


@pytest.mark.asyncio
async def test_submit_posts_binary_and_returns_tx_id() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["content_type"] = request.headers["Content-Type"]
        captured["body"] = request.content
        return httpx.Response(200, json={"txId": "TXID123"})

    tx_id = await _client(handler).submit_transaction(b"\x82\xa3sig")

    assert tx_id == "TXID123"
    assert captured == {
        "method": "POST",
        "content_type": "application/x-binary",
        "body": b"\x82\xa3sig",
    }


@pytest.mark.asyncio
async def test_submit_rejection_maps_to_transaction_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "overspend"})

    with pytest.raises(TransactionRejected, match="overspend"):
        await _client(handler).submit_transaction(b"raw")


@pytest.mark.asyncio
async def test_server_error_maps_to_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    with pytest.raises(LedgerUnavailable):
        await _client(handler).submit_transaction(b"raw")


@pytest.mark.asyncio
async def test_transport_error_maps_to_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LedgerUnavailable):
        await _client(handler).get_network_params()


@pytest.mark.asyncio
async def test_unconfigured_endpoint_is_unavailable() -> None:
    client = AlgorandLedgerClient(None, None)
    with pytest.raises(LedgerUnavailable, match="not configured"):
        await client.get_network_params()
    with pytest.raises(LedgerUnavailable, match="not configured"):
        await client.lookup_transaction("TX")


@pytest.mark.asyncio
async def test_await_confirmation_polls_rounds_until_confirmed() -> None:
    calls: list[str] = []
    polls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/v2/status":
            return httpx.Response(200, json={"last-round": 100})
        if request.url.path.startswith("/v2/transactions/pending/"):
            polls["count"] += 1
            if polls["count"] < 2:
                return httpx.Response(200, json={"pool-error": ""})
            return httpx.Response(200, json={"confirmed-round": 102, "pool-error": ""})
        if request.url.path.startswith("/v2/status/wait-for-block-after/"):
            return httpx.Response(200, json={"last-round": 101})
        return httpx.Response(404)

    confirmation = await _client(handler).await_confirmation("TXA", 4)

    assert confirmation.confirmed_round == 102
    assert calls == [
        "/v2/status",
        "/v2/transactions/pending/TXA",
        "/v2/status/wait-for-block-after/101",
        "/v2/transactions/pending/TXA",
    ]


@pytest.mark.asyncio
async def test_await_confirmation_times_out_after_round_budget() -> None:
    waits: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/status":
            return httpx.Response(200, json={"last-round": 10})
        if request.url.path.startswith("/v2/status/wait-for-block-after/"):
            waits.append(request.url.path)
            return httpx.Response(200, json={})
        return httpx.Response(200, json={"pool-error": ""})

    with pytest.raises(ConfirmationTimeout) as excinfo:
        await _client(handler).await_confirmation("TXB", 3)

    assert len(waits) == 3
    assert excinfo.value.tx_id == "TXB"
    assert isinstance(excinfo.value, LedgerUnavailable)


@pytest.mark.asyncio
async def test_await_confirmation_pool_error_rejects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/status":
            return httpx.Response(200, json={"last-round": 10})
        return httpx.Response(200, json={"pool-error": "fee too low"})

    with pytest.raises(TransactionRejected, match="fee too low"):
        await _client(handler).await_confirmation("TXC", 4)


@pytest.mark.asyncio
async def test_lookup_decodes_note_and_payment_fields() -> None:
    note = json.dumps({"recordType": "LEGAL_DOCUMENT_NOTARIZATION"}).encode("utf-8")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "indexer.test"
        assert request.url.path == "/v2/transactions/TX123"
        return httpx.Response(
            200,
            json={
                "current-round": 500,
                "transaction": {
                    "id": "TX123",
                    "confirmed-round": 321,
                    "round-time": 1_700_000_000,
                    "sender": "SENDER",
                    "note": base64.b64encode(note).decode("ascii"),
                    "payment-transaction": {"amount": 0, "receiver": "SENDER"},
                },
            },
        )

    txn = await _client(handler).lookup_transaction("TX123")

    assert txn.note == note
    assert txn.confirmed_round == 321
    assert txn.timestamp == 1_700_000_000
    assert txn.sender == txn.receiver == "SENDER"
    assert txn.amount == 0


@pytest.mark.asyncio
async def test_lookup_missing_transaction_raises_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "no transaction found"})

    with pytest.raises(LedgerNotFound) as excinfo:
        await _client(handler).lookup_transaction("nonexistent-ref")
    assert excinfo.value.tx_id == "nonexistent-ref"


def test_from_settings_uses_configured_endpoints() -> None:
    settings = NotarySettings(
        algod_url="https://node.example/",
        indexer_url="https://idx.example",
        request_timeout=3,
    )
    client = AlgorandLedgerClient.from_settings(settings)
    assert client._algod_url == "https://node.example"
    assert client._indexer_url == "https://idx.example"
    assert client._timeout == 3.0

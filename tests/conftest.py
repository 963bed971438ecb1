"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import inspect
import os
import sys
from typing import Any

import pytest

# Ensure src/ is on sys.path for tests so the src layout is used during test runs
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from docnotary.ledger import InMemoryLedgerClient  # noqa: E402
from docnotary.service import NotaryService  # noqa: E402
from docnotary.settings import NotarySettings  # noqa: E402
from docnotary.simulator import FallbackSimulator  # noqa: E402

_NOTARY_ENV = (
    "NOTARY_ALGOD_URL",
    "NOTARY_ALGOD_TOKEN",
    "NOTARY_INDEXER_URL",
    "NOTARY_INDEXER_TOKEN",
    "NOTARY_PLATFORM",
    "NOTARY_CONFIRMATION_ROUNDS",
    "NOTARY_REQUEST_TIMEOUT",
    "NOTARY_FALLBACK_MODE",
    "NOTARY_VERIFY_URL_TEMPLATE",
    "NOTARY_SIGNER_MNEMONIC",
    "NOTARY_JOURNAL_PATH",
    "NOTARY_JOURNAL_KEY",
)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring an event loop")


def pytest_pyfunc_call(pyfuncitem: Any) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
        }

        event_loop = asyncio.new_event_loop()
        try:
            event_loop.run_until_complete(pyfuncitem.obj(**call_kwargs))
        finally:
            event_loop.close()
        return True
    return None


@pytest.fixture(autouse=True)
def _isolate_notary_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer NOTARY_* variables out of the test run."""

    for name in _NOTARY_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> NotarySettings:
    """Settings with no network endpoints and no journal."""

    return NotarySettings(
        algod_url=None,
        indexer_url=None,
        platform="JusticeGPT",
    )


@pytest.fixture
def ledger() -> InMemoryLedgerClient:
    return InMemoryLedgerClient()


@pytest.fixture
def simulator() -> FallbackSimulator:
    return FallbackSimulator(platform="JusticeGPT")


@pytest.fixture
def service(
    ledger: InMemoryLedgerClient,
    settings: NotarySettings,
    simulator: FallbackSimulator,
) -> NotaryService:
    return NotaryService(ledger, settings=settings, simulator=simulator)

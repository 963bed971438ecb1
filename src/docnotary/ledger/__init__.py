"""Ledger client implementations and abstractions."""

from __future__ import annotations

from docnotary.ledger.algorand import AlgorandLedgerClient
from docnotary.ledger.base import (
    Confirmation,
    LedgerClient,
    LedgerTransaction,
    NetworkParams,
)
from docnotary.ledger.memory import InMemoryLedgerClient

__all__ = [
    "AlgorandLedgerClient",
    "Confirmation",
    "InMemoryLedgerClient",
    "LedgerClient",
    "LedgerTransaction",
    "NetworkParams",
]

"""docnotary - document notarization and verification on Algorand."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__all__ = [
    "NotaryService",
    "NotarizationRecord",
    "VerificationResult",
    "NotarySettings",
    "compute_hash",
    "InMemoryLedgerClient",
    "AlgorandLedgerClient",
]

if TYPE_CHECKING:
    from .hashing import compute_hash
    from .ledger import AlgorandLedgerClient, InMemoryLedgerClient
    from .models import NotarizationRecord, VerificationResult
    from .service import NotaryService
    from .settings import NotarySettings


def __getattr__(name: str) -> Any:
    """Lazily import submodules so the ledger stack loads only when used."""

    module_map = {
        "NotaryService": "service",
        "NotarizationRecord": "models",
        "VerificationResult": "models",
        "NotarySettings": "settings",
        "compute_hash": "hashing",
        "InMemoryLedgerClient": "ledger",
        "AlgorandLedgerClient": "ledger",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)

"""Environment-backed settings primitives for :mod:`docnotary`."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "DEFAULT_ALGOD_URL",
    "DEFAULT_INDEXER_URL",
    "DEFAULT_PLATFORM",
    "DEFAULT_VERIFY_URL_TEMPLATE",
    "FallbackMode",
    "NotarySettings",
    "get_settings",
]

DEFAULT_ALGOD_URL = "https://testnet-api.algonode.cloud"
DEFAULT_INDEXER_URL = "https://testnet-idx.algonode.cloud"
DEFAULT_PLATFORM = "JusticeGPT"
DEFAULT_VERIFY_URL_TEMPLATE = "https://justicegpt.ai/verify/{transaction_reference}"

FallbackMode = Literal["simulate", "fail"]


class NotarySettings(BaseSettings):
    """Expose environment-derived configuration knobs for docnotary.

    All environment access goes through this class. Every attribute maps to a
    documented environment variable; numeric values that fail to parse fall
    back to their defaults rather than aborting start-up.

    Attributes:
        algod_url: Base URL of the Algorand node (algod) REST API. An empty
            value leaves the ledger unconfigured, which routes every
            notarization through the simulated fallback.
        algod_token: API token sent as ``X-Algo-API-Token`` to algod.
        indexer_url: Base URL of the Algorand indexer REST API.
        indexer_token: API token sent as ``X-Algo-API-Token`` to the indexer.
        platform: Platform tag injected into every notarization memo.
        confirmation_rounds: Maximum ledger rounds to wait for confirmation.
        request_timeout: HTTP timeout in seconds for ledger requests.
        fallback_mode: ``"simulate"`` to return simulated records when the
            ledger fails, ``"fail"`` to raise
            :class:`~docnotary.errors.NotarizationFailed` instead.
        verify_url_template: Template rendered into verification payloads;
            ``{transaction_reference}`` and ``{document_hash}`` are
            substituted.
        signer_mnemonic: Optional 25-word recovery phrase of a persistent
            signing account. When unset an ephemeral account is generated
            per notarization.
        journal_path: Optional NDJSON path where notarization records are
            journaled.
        journal_key_hex: 32-byte Ed25519 seed (hex) used to sign journal
            entries.
    """

    algod_url: str | None = Field(default=DEFAULT_ALGOD_URL, alias="NOTARY_ALGOD_URL")
    algod_token: str = Field(default="", alias="NOTARY_ALGOD_TOKEN")
    indexer_url: str | None = Field(
        default=DEFAULT_INDEXER_URL, alias="NOTARY_INDEXER_URL"
    )
    indexer_token: str = Field(default="", alias="NOTARY_INDEXER_TOKEN")
    platform: str = Field(default=DEFAULT_PLATFORM, alias="NOTARY_PLATFORM")
    confirmation_rounds: int = Field(default=4, alias="NOTARY_CONFIRMATION_ROUNDS")
    request_timeout: float = Field(default=8.0, alias="NOTARY_REQUEST_TIMEOUT")
    fallback_mode: FallbackMode = Field(
        default="simulate", alias="NOTARY_FALLBACK_MODE"
    )
    verify_url_template: str = Field(
        default=DEFAULT_VERIFY_URL_TEMPLATE, alias="NOTARY_VERIFY_URL_TEMPLATE"
    )
    signer_mnemonic: str | None = Field(default=None, alias="NOTARY_SIGNER_MNEMONIC")
    journal_path: str | None = Field(default=None, alias="NOTARY_JOURNAL_PATH")
    journal_key_hex: str | None = Field(default=None, alias="NOTARY_JOURNAL_KEY")

    model_config = SettingsConfigDict(
        env_file=None, extra="ignore", populate_by_name=True
    )

    @field_validator("confirmation_rounds", mode="before")
    @classmethod
    def _parse_rounds(cls, value: object) -> int:
        """Parse the round budget, falling back to 4 on malformed input.

        Args:
            value: Raw environment value.

        Returns:
            A positive round count.
        """

        parsed: int | None = None
        if isinstance(value, bool):
            parsed = None
        elif isinstance(value, int):
            parsed = value
        elif isinstance(value, float) and value.is_integer():
            parsed = int(value)
        elif isinstance(value, str):
            try:
                parsed = int(value.strip())
            except ValueError:
                parsed = None
        if parsed is None or parsed < 1:
            return 4
        return parsed

    @field_validator("request_timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: object) -> float:
        """Parse the HTTP timeout, falling back to 8 seconds on bad input."""

        parsed: float | None = None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            parsed = float(value)
        elif isinstance(value, str):
            try:
                parsed = float(value.strip())
            except ValueError:
                parsed = None
        if parsed is None or parsed <= 0:
            return 8.0
        return parsed

    @field_validator("fallback_mode", mode="before")
    @classmethod
    def _normalise_fallback_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator(
        "algod_url",
        "indexer_url",
        "signer_mnemonic",
        "journal_path",
        "journal_key_hex",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def ledger_configured(self) -> bool:
        """Return ``True`` when both algod and indexer endpoints are set."""

        return bool(self.algod_url) and bool(self.indexer_url)


def get_settings() -> NotarySettings:
    """Return a :class:`NotarySettings` instance.

    Returns:
        Settings parsed from environment variables.
    """

    return NotarySettings()

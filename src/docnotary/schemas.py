"""Pydantic models describing the public docnotary wire formats."""

from __future__ import annotations

from typing import Any, Final, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .hashing import canonicalize
from .models import NotarizationRecord

RECORD_TYPE: Final[str] = "LEGAL_DOCUMENT_NOTARIZATION"
HASH_PATTERN: Final[str] = r"^[0-9a-f]{64}$"

SchemaVersionLiteral = Literal["0.1.0"]
CURRENT_JOURNAL_SCHEMA_VERSION: SchemaVersionLiteral = "0.1.0"


class NotarizationMemo(BaseModel):
    """Memo carried in the note field of a notarization transaction.

    Serialised (by alias) to the stable wire shape::

        {"recordType": "LEGAL_DOCUMENT_NOTARIZATION",
         "documentHash": "<hex>",
         "metadata": {..., "notarizedAt": "<ISO-8601>", "platform": "<tag>"}}

    Older memos used ``type`` instead of ``recordType``; both are accepted on
    input, only ``recordType`` is written.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    record_type: Literal["LEGAL_DOCUMENT_NOTARIZATION"] = Field(
        ...,
        validation_alias=AliasChoices("recordType", "type"),
        serialization_alias="recordType",
        description="Record type tag identifying docnotary memos.",
    )
    document_hash: str = Field(
        ...,
        alias="documentHash",
        pattern=HASH_PATTERN,
        description="Lowercase SHA-256 hex digest of the notarized document.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Caller metadata plus engine-injected platform and timestamp.",
    )

    def to_wire(self) -> dict[str, object]:
        """Return the JSON-ready memo using wire field names."""

        return self.model_dump(mode="json", by_alias=True)


class VerificationPayload(BaseModel):
    """Compact verification pointer suitable for rendering as a QR code."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    platform: str = Field(..., min_length=1)
    transaction_reference: str = Field(
        ..., alias="transactionReference", min_length=1
    )
    document_hash: str = Field(..., alias="documentHash", min_length=1)
    verification_url_template: str = Field(..., alias="verificationUrlTemplate")
    verify_url: str = Field(..., alias="verifyUrl")
    simulated: bool = Field(
        ...,
        description="True when the reference points at a simulated record.",
    )

    def encode(self) -> str:
        """Return the canonical compact JSON encoding of the payload."""

        return canonicalize(self.model_dump(mode="json", by_alias=True))


class JournalEntry(BaseModel):
    """Immutable, versioned schema for a record journal line (pre-signing)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["docnotary"] = Field(
        default="docnotary",
        description="Canonical namespace for docnotary journal entries.",
    )
    schema_version: SchemaVersionLiteral = Field(
        default=CURRENT_JOURNAL_SCHEMA_VERSION,
        description="Semantic version of the journal entry schema.",
    )
    type: Literal["notarization"] = Field(
        default="notarization",
        description="Event type identifier within the docnotary namespace.",
    )
    document_hash: str = Field(..., pattern=HASH_PATTERN)
    transaction_reference: str = Field(..., min_length=1)
    ledger_position: int = Field(..., ge=0)
    submitted_at_ms: int = Field(..., ge=0)
    hashed_at_ms: int | None = Field(default=None, ge=0)
    simulated: bool = Field(
        ...,
        description="Whether the record was produced by the simulated fallback.",
    )
    prev_hash: str | None = Field(
        default=None,
        description="SHA-256 hash of the previous canonical journal payload.",
        min_length=1,
    )

    @classmethod
    def from_record(cls, record: NotarizationRecord) -> JournalEntry:
        """Build a journal entry from a notarization record."""

        return cls(
            document_hash=record.document_hash,
            transaction_reference=record.transaction_reference,
            ledger_position=record.ledger_position,
            submitted_at_ms=record.submitted_at_ms,
            hashed_at_ms=record.hashed_at_ms,
            simulated=record.simulated,
        )

    def model_dump_json_ready(self) -> dict[str, object]:
        """Return a JSON-serialisable payload with ``None`` values removed."""

        return self.model_dump(mode="json", exclude_none=True)

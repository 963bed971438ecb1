"""Encoding and decoding of notarization memos (transaction note bytes)."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Final

from pydantic import ValidationError

from .errors import InvalidMetadataError, MalformedRecord
from .hashing import canonicalize
from .schemas import RECORD_TYPE, NotarizationMemo

__all__ = ["MAX_MEMO_BYTES", "build_memo", "decode_memo", "encode_memo"]

# Algorand rejects transaction notes longer than 1 KiB.
MAX_MEMO_BYTES: Final[int] = 1024


def build_memo(document_hash: str, metadata: Mapping[str, object]) -> NotarizationMemo:
    """Return a validated memo model for ``document_hash`` and ``metadata``."""

    return NotarizationMemo(
        record_type=RECORD_TYPE,
        document_hash=document_hash,
        metadata=dict(metadata),
    )


def encode_memo(memo: NotarizationMemo) -> bytes:
    """Serialise ``memo`` to canonical UTF-8 JSON note bytes.

    Raises:
        InvalidMetadataError: If the encoded memo exceeds :data:`MAX_MEMO_BYTES`.
    """

    encoded = canonicalize(memo.to_wire()).encode("utf-8")
    if len(encoded) > MAX_MEMO_BYTES:
        raise InvalidMetadataError(
            f"Notarization memo is {len(encoded)} bytes; the ledger note limit "
            f"is {MAX_MEMO_BYTES} bytes. Reduce the metadata."
        )
    return encoded


def decode_memo(note: bytes | None) -> NotarizationMemo:
    """Parse note bytes back into a :class:`NotarizationMemo`.

    Raises:
        MalformedRecord: If the note is missing, not UTF-8 JSON, or does not
            carry the notarization record type and a document hash.
    """

    if not note:
        raise MalformedRecord("No notarization data found")
    try:
        data = json.loads(note.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedRecord("Transaction note is not UTF-8 JSON") from exc
    if not isinstance(data, dict):
        raise MalformedRecord("Transaction note is not a JSON object")
    try:
        return NotarizationMemo.model_validate(data)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise MalformedRecord(
            f"Transaction note is not a notarization record (invalid: {', '.join(fields)})"
        ) from exc

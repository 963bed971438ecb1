"""Deterministic document hashing and canonical JSON helpers.

The hash input is the canonical JSON serialisation of::

    {"content": <trimmed text>, "metadata": {...}, "timestamp": <epoch ms>}

Binary content that is not valid UTF-8 is carried base64-encoded under the
``contentBase64`` key instead, so text and binary documents never share a
hash input. The timestamp is a freshness marker: hashing identical content
at two different instants yields two different digests.
"""

from __future__ import annotations

import base64
import hashlib
import json
import math
import re
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Final, NewType, TypeAlias

from .errors import EmptyDocumentError, InvalidInputError, InvalidMetadataError

__all__ = [
    "DocumentHash",
    "HASH_HEX_LENGTH",
    "Scalar",
    "canonicalize",
    "compute_hash",
    "format_timestamp",
    "is_document_hash",
    "normalise_metadata",
    "now_ms",
    "parse_timestamp",
    "rederive_hash",
]

DocumentHash = NewType("DocumentHash", str)
Scalar: TypeAlias = str | int | float | bool | None

HASH_HEX_LENGTH: Final[int] = 64
NOTARIZED_AT_KEY: Final[str] = "notarizedAt"

_HASH_PATTERN = re.compile(r"^[0-9a-f]{64}$")
_SCALAR_TYPES = (str, int, float, bool, type(None))


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""

    return time.time_ns() // 1_000_000


class _SafeJSONEncoder(json.JSONEncoder):
    """JSON encoder that only accepts plain JSON types."""

    def default(self, o: object) -> object:
        if isinstance(o, (list, tuple)):
            return list(o)
        if isinstance(o, Mapping):
            return dict(o)
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def canonicalize(obj: object) -> str:
    """Return a deterministic JSON serialisation of ``obj``.

    Keys are sorted, separators are compact and non-ASCII characters are kept
    verbatim, so the UTF-8 encoding of the result is stable across runs and
    platforms. NaN and infinities are rejected.

    Raises:
        TypeError: If ``obj`` contains values that are not plain JSON types.
        ValueError: If ``obj`` contains non-finite floats.
    """

    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        cls=_SafeJSONEncoder,
    )


def _is_encodable(text: str) -> bool:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def normalise_metadata(metadata: Mapping[str, object] | None) -> dict[str, Scalar]:
    """Validate caller metadata and return a plain dict copy.

    Args:
        metadata: Flat mapping of string keys to scalar values, or ``None``.

    Returns:
        A new dictionary safe to embed in the hash input and memo.

    Raises:
        InvalidMetadataError: If the mapping has non-string keys, nested or
            non-scalar values, non-finite floats or text that cannot be
            encoded as UTF-8.
    """

    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise InvalidMetadataError(
            f"Metadata must be a mapping, got {type(metadata).__name__}"
        )

    normalised: dict[str, Scalar] = {}
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise InvalidMetadataError(f"Metadata key {key!r} is not a string")
        if not _is_encodable(key):
            raise InvalidMetadataError(f"Metadata key {key!r} is not valid UTF-8 text")
        if not isinstance(value, _SCALAR_TYPES):
            raise InvalidMetadataError(
                f"Metadata value for {key!r} has unsupported type "
                f"{type(value).__name__}"
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidMetadataError(f"Metadata value for {key!r} is not finite")
        if isinstance(value, str) and not _is_encodable(value):
            raise InvalidMetadataError(
                f"Metadata value for {key!r} is not valid UTF-8 text"
            )
        normalised[key] = value
    return normalised


def _content_field(content: str | bytes) -> tuple[str, str]:
    """Return the hash-input key and trimmed value for ``content``."""

    if isinstance(content, (bytes, bytearray, memoryview)):
        raw = bytes(content)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            trimmed = raw.strip()
            if not trimmed:
                raise EmptyDocumentError("Document content is empty")
            return "contentBase64", base64.b64encode(trimmed).decode("ascii")
    elif isinstance(content, str):
        if not _is_encodable(content):
            raise InvalidInputError("Document content is not valid UTF-8 text")
        text = content
    else:
        raise InvalidInputError(
            f"Document content must be str or bytes, got {type(content).__name__}"
        )

    trimmed_text = text.strip()
    if not trimmed_text:
        raise EmptyDocumentError("Document content is empty")
    return "content", trimmed_text


def compute_hash(
    content: str | bytes,
    metadata: Mapping[str, object] | None = None,
    *,
    timestamp_ms: int | None = None,
) -> DocumentHash:
    """Compute the SHA-256 notarization hash of a document.

    Args:
        content: Document text or raw bytes. Leading and trailing whitespace
            is ignored.
        metadata: Flat mapping of scalar metadata covered by the digest.
        timestamp_ms: Freshness marker in epoch milliseconds. Defaults to the
            current time.

    Returns:
        The lowercase hex digest.

    Raises:
        EmptyDocumentError: If the content is empty after trimming.
        InvalidMetadataError: If the metadata cannot be serialised.
    """

    field, value = _content_field(content)
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    elif isinstance(timestamp_ms, bool) or not isinstance(timestamp_ms, int):
        raise InvalidInputError("timestamp_ms must be an integer")

    payload = {
        field: value,
        "metadata": normalise_metadata(metadata),
        "timestamp": timestamp_ms,
    }
    digest = hashlib.sha256(canonicalize(payload).encode("utf-8")).hexdigest()
    return DocumentHash(digest)


def is_document_hash(value: object) -> bool:
    """Return ``True`` when ``value`` looks like a lowercase SHA-256 hex digest."""

    return isinstance(value, str) and _HASH_PATTERN.match(value) is not None


def format_timestamp(timestamp_ms: int) -> str:
    """Render epoch milliseconds as ISO-8601 UTC with a ``Z`` suffix."""

    moment = datetime.fromtimestamp(timestamp_ms // 1000, tz=timezone.utc).replace(
        microsecond=(timestamp_ms % 1000) * 1000
    )
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> int:
    """Parse an ISO-8601 timestamp back into epoch milliseconds.

    Raises:
        InvalidMetadataError: If ``value`` is not a timezone-aware ISO string.
    """

    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as exc:
        raise InvalidMetadataError(f"Invalid ISO-8601 timestamp: {value!r}") from exc
    if moment.tzinfo is None:
        raise InvalidMetadataError(f"Timestamp {value!r} has no timezone")
    whole_seconds = int(moment.replace(microsecond=0).timestamp())
    return whole_seconds * 1000 + moment.microsecond // 1000


def rederive_hash(
    content: str | bytes, memo_metadata: Mapping[str, object]
) -> DocumentHash:
    """Recompute a notarization hash from content and decoded memo metadata.

    The freshness marker is recovered from the ``notarizedAt`` field that the
    submitter stamps into every memo.

    Raises:
        InvalidMetadataError: If ``notarizedAt`` is missing or malformed.
    """

    stamp = memo_metadata.get(NOTARIZED_AT_KEY)
    if not isinstance(stamp, str):
        raise InvalidMetadataError("Memo metadata carries no notarizedAt timestamp")
    return compute_hash(content, memo_metadata, timestamp_ms=parse_timestamp(stamp))

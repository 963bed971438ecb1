"""Ed25519 signing of canonical JSON payloads for the record journal.

Provides:
- Signer(private_key): Ed25519 signer producing signature envelopes
- verify_json(signed, public_key_hex): verify an envelope created by Signer
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .hashing import canonicalize

__all__ = ["SIGNATURE_FIELDS", "Signer", "verify_json"]

# Fields excluded from the signed payload
SIGNATURE_FIELDS = ("signature", "signing_key", "signature_algorithm")


def verify_json(
    signed: dict[str, object], public_key_hex: str | None
) -> tuple[bool, dict[str, object] | None]:
    """Verify a signed JSON object created by :meth:`Signer.sign`.

    Returns ``(ok, original_payload)`` where ``original_payload`` is the
    envelope without signature fields when verification succeeds, otherwise
    ``(False, None)``.
    """

    if not isinstance(signed, dict):
        return False, None
    sig_hex = signed.get("signature")
    if not isinstance(sig_hex, str):
        return False, None
    if not public_key_hex or not isinstance(public_key_hex, str):
        return False, None

    pk = public_key_hex[2:] if public_key_hex[:2].lower() == "0x" else public_key_hex
    # 64 hex chars = 32-byte Ed25519 public key
    if len(pk) != 64:
        return False, None

    original = {k: v for k, v in signed.items() if k not in SIGNATURE_FIELDS}
    try:
        data = canonicalize(original).encode("utf-8")
        pub = Ed25519PublicKey.from_public_bytes(bytes.fromhex(pk))
        pub.verify(bytes.fromhex(sig_hex), data)
    except (InvalidSignature, TypeError, ValueError):
        return False, None
    return True, original


class Signer:
    """Ed25519 signer for journal entries.

    Args:
        private_key: 32-byte Ed25519 seed. When ``None`` a random seed is
            generated if ``ephemeral=True``; otherwise :class:`ValueError` is
            raised.
        ephemeral: Allow a throwaway key, for tests and local demos.

    Attributes:
        algorithm: Always ``"ed25519"``.
        signing_key: Hex encoding of the Ed25519 public key.
    """

    def __init__(self, private_key: bytes | None = None, ephemeral: bool = False) -> None:
        self.algorithm = "ed25519"
        if private_key is None:
            if not ephemeral:
                raise ValueError(
                    "private_key is required for journal signing. Configure "
                    "NOTARY_JOURNAL_KEY or pass ephemeral=True for testing."
                )
            private_key = os.urandom(32)
        if len(private_key) != 32:
            raise ValueError("private_key must be exactly 32 bytes for Ed25519")

        self._priv = Ed25519PrivateKey.from_private_bytes(bytes(private_key))
        self.signing_key = (
            self._priv.public_key()
            .public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
            .hex()
        )

    @classmethod
    def from_hex(cls, seed_hex: str) -> Signer:
        """Build a signer from a hex-encoded 32-byte seed."""

        try:
            seed = bytes.fromhex(seed_hex.strip())
        except ValueError as exc:
            raise ValueError("Journal key must be hex encoded") from exc
        return cls(seed)

    def sign(self, payload: dict[str, object]) -> dict[str, object]:
        """Return a copy of ``payload`` with signature metadata attached."""

        data = canonicalize(payload).encode("utf-8")
        out = dict(payload)
        out["signature"] = self._priv.sign(data).hex()
        out["signing_key"] = self.signing_key
        out["signature_algorithm"] = self.algorithm
        return out

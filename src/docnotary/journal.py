"""Append-only, hash-chained journal of notarization records (NDJSON).

Each line is an Ed25519-signed :class:`~docnotary.schemas.JournalEntry`.
``prev_hash`` equals the SHA-256 of the previous entry's canonical payload
(pre-signing), so removing or editing a line breaks the chain. Simulated
records are journaled like anchored ones and reported separately by
:meth:`RecordJournal.summarize`.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO

import portalocker

from .hashing import canonicalize
from .models import NotarizationRecord
from .schemas import JournalEntry
from .signing import Signer, verify_json

__all__ = ["JournalSummary", "RecordJournal"]

LOGGER = logging.getLogger(__name__)


def _hash_payload(payload: dict[str, object]) -> str:
    return hashlib.sha256(canonicalize(payload).encode("utf-8")).hexdigest()


@contextmanager
def _acquire_journal_lock(journal_path: Path) -> Iterator[IO[bytes]]:
    """Hold an exclusive advisory lock on ``<journal>.lock``."""

    lock_path = journal_path.with_suffix(journal_path.suffix + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+b") as lock_fp:
        portalocker.lock(lock_fp, portalocker.LOCK_EX)
        try:
            yield lock_fp
        finally:
            portalocker.unlock(lock_fp)


def _fsync_directory(path: Path) -> None:
    if os.name == "nt":  # pragma: no cover - Windows does not need dir fsync
        return
    flags = getattr(os, "O_DIRECTORY", None)
    if flags is None:  # pragma: no cover - platform without O_DIRECTORY
        return
    fd = os.open(str(path), flags)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


@dataclass(frozen=True, slots=True)
class JournalSummary:
    """Counts of journaled records split by trust level."""

    total: int
    anchored: int
    simulated: int
    simulated_references: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        """Return the summary as a JSON-ready dictionary."""

        return {
            "total": self.total,
            "anchored": self.anchored,
            "simulated": self.simulated,
            "simulatedReferences": list(self.simulated_references),
        }


class RecordJournal:
    """Signed NDJSON journal of :class:`NotarizationRecord` instances."""

    def __init__(self, path: str | Path, signer: Signer | None = None) -> None:
        self.path = Path(path)
        self.signer = signer

    def append(self, record: NotarizationRecord) -> dict[str, object]:
        """Sign ``record`` and append it, chaining it to the previous entry.

        The journal is rewritten through a temporary file and atomically
        replaced while holding the lock.

        Returns:
            The signed envelope written to the journal.

        Raises:
            ValueError: If the journal was opened without a signer.
        """

        if self.signer is None:
            raise ValueError("RecordJournal needs a Signer to append entries")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = JournalEntry.from_record(record).model_dump_json_ready()

        with _acquire_journal_lock(self.path):
            temp_path: Path | None = None
            signed_entry: dict[str, object]
            try:
                with tempfile.NamedTemporaryFile(
                    "w+b", dir=str(self.path.parent), delete=False
                ) as tmp:
                    temp_path = Path(tmp.name)
                    last_line: bytes | None = None
                    if self.path.exists():
                        with self.path.open("rb") as src:
                            for line in src:
                                tmp.write(line)
                                if line.strip():
                                    last_line = line.strip()

                    if last_line is not None:
                        prev = self._prev_hash_from_line(last_line)
                        if prev:
                            payload["prev_hash"] = prev

                    signed_entry = self.signer.sign(payload)
                    tmp.write(json.dumps(signed_entry).encode("utf-8") + b"\n")
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(temp_path, self.path)
            except Exception:
                if temp_path is not None and temp_path.exists():
                    temp_path.unlink(missing_ok=True)
                raise

            try:
                _fsync_directory(self.path.parent)
            except OSError as exc:
                LOGGER.warning(
                    "Failed to fsync journal directory", extra={"error": str(exc)}
                )

        LOGGER.debug(
            "Journaled notarization record",
            extra={
                "transaction_reference": record.transaction_reference,
                "simulated": record.simulated,
            },
        )
        return signed_entry

    def entries(self) -> Iterator[dict[str, object]]:
        """Yield parsed journal lines; unparseable lines are skipped."""

        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    LOGGER.warning("Skipping unparseable journal line")
                    continue
                if isinstance(entry, dict):
                    yield entry

    def validate(self, public_key_hex: str | None = None) -> tuple[bool, int]:
        """Check every signature and the ``prev_hash`` chain.

        Args:
            public_key_hex: Expected signer public key. Defaults to the
                journal's own signer.

        Returns:
            ``(ok, first_bad_line_number)``; the line number is 1-based, and
            ``-1`` when the journal is valid or does not exist.
        """

        if not self.path.exists():
            return False, -1
        key = public_key_hex or (self.signer.signing_key if self.signer else None)

        prev_hash: str | None = None
        with self.path.open("r", encoding="utf-8") as handle:
            for idx, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    signed = json.loads(line)
                except json.JSONDecodeError:
                    return False, idx

                ok, original = verify_json(signed, key)
                if not ok or original is None:
                    return False, idx
                if prev_hash is not None and original.get("prev_hash") != prev_hash:
                    return False, idx
                prev_hash = _hash_payload(original)

        return True, -1

    def summarize(self) -> JournalSummary:
        """Count anchored and simulated records in the journal."""

        total = anchored = simulated = 0
        simulated_refs: list[str] = []
        for entry in self.entries():
            total += 1
            if entry.get("simulated") is True:
                simulated += 1
                simulated_refs.append(str(entry.get("transaction_reference")))
            else:
                anchored += 1
        return JournalSummary(
            total=total,
            anchored=anchored,
            simulated=simulated,
            simulated_references=tuple(simulated_refs),
        )

    @staticmethod
    def _prev_hash_from_line(line: bytes) -> str | None:
        try:
            signed_last = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(signed_last, dict):
            return None
        public_key_hex = signed_last.get("signing_key")
        if not isinstance(public_key_hex, str):
            return None
        ok, original = verify_json(signed_last, public_key_hex)
        if not ok or original is None:
            return None
        return _hash_payload(original)

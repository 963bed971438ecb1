"""Command-line utilities for docnotary."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .errors import NotaryError
from .hashing import now_ms
from .journal import RecordJournal
from .logging_pipeline import (
    BoundedQueueHandler,
    configure_structured_logging,
    shutdown_listeners,
)
from .service import NotaryService
from .settings import get_settings
from .signing import Signer

SIMULATED_NOTICE = (
    "SIMULATED: this record was not anchored on a ledger and carries no "
    "trust guarantee."
)


def _emit(payload: dict[str, object], quiet: bool) -> None:
    if not quiet:
        print(json.dumps(payload, separators=(",", ":"), sort_keys=True))


def _read_content(path: str | None) -> bytes:
    """Read document bytes from ``path`` or, when omitted, from stdin."""

    if path:
        return Path(path).read_bytes()
    try:
        if sys.stdin and not sys.stdin.isatty():
            return sys.stdin.buffer.read()
    except OSError as e:
        print(f"Error reading stdin: {e}", file=sys.stderr)
    raise ValueError("No input provided. Use --input or pipe the document via stdin.")


def _parse_metadata(pairs: list[str] | None) -> dict[str, object]:
    metadata: dict[str, object] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Metadata must be given as key=value, got {pair!r}")
        metadata[key] = value
    return metadata


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docnotary", description="Notarize and verify documents on Algorand."
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Verbosity of the JSON log stream written to stderr.",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Quiet mode: suppress output, just return exit code.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def _add_document_args(cmd: argparse.ArgumentParser) -> None:
        cmd.add_argument(
            "--input",
            "-i",
            help="Path to the document. If omitted, reads from stdin.",
        )
        cmd.add_argument(
            "--metadata",
            "-m",
            action="append",
            metavar="KEY=VALUE",
            help="Metadata entry; may be repeated.",
        )

    hash_cmd = sub.add_parser("hash", help="Compute a document hash.")
    _add_document_args(hash_cmd)
    hash_cmd.add_argument(
        "--timestamp-ms",
        type=int,
        help="Freshness marker in epoch milliseconds. Defaults to now.",
    )

    notarize_cmd = sub.add_parser("notarize", help="Anchor a document hash.")
    _add_document_args(notarize_cmd)

    verify_cmd = sub.add_parser("verify", help="Verify a transaction reference.")
    verify_cmd.add_argument("reference", help="Transaction reference to check.")
    verify_cmd.add_argument("document_hash", help="Expected document hash.")

    payload_cmd = sub.add_parser("payload", help="Render a verification payload.")
    payload_cmd.add_argument("reference", help="Transaction reference.")
    payload_cmd.add_argument("document_hash", help="Document hash.")

    audit_cmd = sub.add_parser("audit", help="Validate and summarize a journal.")
    audit_cmd.add_argument(
        "--journal",
        "-j",
        help="Journal path. Defaults to NOTARY_JOURNAL_PATH.",
    )
    audit_cmd.add_argument(
        "--public-key",
        "-k",
        help=(
            "Journal signer public key hex. Defaults to the key derived from "
            "NOTARY_JOURNAL_KEY, then to the key embedded in the journal, which "
            "only proves the chain is internally consistent."
        ),
    )
    return parser


def _run_hash(args: argparse.Namespace) -> int:
    content = _read_content(args.input)
    stamp = args.timestamp_ms if args.timestamp_ms is not None else now_ms()
    service = NotaryService.from_settings(get_settings())
    digest = service.compute_hash(
        content, _parse_metadata(args.metadata), timestamp_ms=stamp
    )
    _emit({"documentHash": digest, "hashedAtEpochMillis": stamp}, args.quiet)
    return 0


async def _run_notarize(args: argparse.Namespace) -> int:
    content = _read_content(args.input)
    service = NotaryService.from_settings(get_settings())
    record = await service.notarize(content, _parse_metadata(args.metadata))
    _emit(record.to_dict(), args.quiet)
    if record.simulated:
        print(SIMULATED_NOTICE, file=sys.stderr)
    return 0


async def _run_verify(args: argparse.Namespace) -> int:
    service = NotaryService.from_settings(get_settings())
    result = await service.verify(args.reference, args.document_hash)
    _emit(result.to_dict(), args.quiet)
    if result.simulated:
        print(SIMULATED_NOTICE, file=sys.stderr)
    return 0 if result.verified else 1


def _run_payload(args: argparse.Namespace) -> int:
    service = NotaryService.from_settings(get_settings())
    payload = service.generate_verification_payload(args.reference, args.document_hash)
    if not args.quiet:
        print(payload.encode())
    if payload.simulated:
        print(SIMULATED_NOTICE, file=sys.stderr)
    return 0


def _run_audit(args: argparse.Namespace) -> int:
    settings = get_settings()
    journal_path = args.journal or settings.journal_path
    if not journal_path:
        raise ValueError("Missing --journal and NOTARY_JOURNAL_PATH is not set.")

    journal = RecordJournal(Path(journal_path))
    public_key_hex: str | None = args.public_key
    if not public_key_hex and settings.journal_key_hex:
        public_key_hex = Signer.from_hex(settings.journal_key_hex).signing_key
    if not public_key_hex:
        # Only proves the chain is internally consistent.
        for entry in journal.entries():
            candidate = entry.get("signing_key")
            if isinstance(candidate, str):
                public_key_hex = candidate
            break

    ok, bad_line = journal.validate(public_key_hex)
    summary = journal.summarize()
    report: dict[str, object] = {"valid": ok, **summary.to_dict()}
    if not ok and bad_line > 0:
        report["firstInvalidLine"] = bad_line
    _emit(report, args.quiet)
    if summary.simulated:
        print(
            f"SIMULATED: {summary.simulated} of {summary.total} journaled records "
            "were not anchored on a ledger.",
            file=sys.stderr,
        )
    return 0 if ok else 1


def main(argv: list[str] | None = None) -> int:
    """Run the docnotary command line and return its exit code."""

    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - controlled via tests
        exit_code = int(exc.code) if isinstance(exc.code, int) else 1
        return 0 if exit_code == 0 else 1

    package_logger = logging.getLogger("docnotary")
    listener = configure_structured_logging(
        package_logger, level=getattr(logging, args.log_level)
    )
    try:
        if args.command == "hash":
            return _run_hash(args)
        if args.command == "notarize":
            return asyncio.run(_run_notarize(args))
        if args.command == "verify":
            return asyncio.run(_run_verify(args))
        if args.command == "payload":
            return _run_payload(args)
        return _run_audit(args)
    except (NotaryError, ValueError, OSError) as exc:
        if not args.quiet:
            print(str(exc), file=sys.stderr)
        return 1
    finally:
        shutdown_listeners([listener])
        for handler in list(package_logger.handlers):
            if isinstance(handler, BoundedQueueHandler):
                package_logger.removeHandler(handler)


if __name__ == "__main__":
    raise SystemExit(main())

"""Export the docnotary wire-format JSON Schemas."""

from __future__ import annotations

import json
from pathlib import Path

from docnotary.schemas import (
    CURRENT_JOURNAL_SCHEMA_VERSION,
    JournalEntry,
    NotarizationMemo,
)


def main() -> None:
    """Write JSON Schemas for the journal entry and ledger memo to the repo root."""

    root = Path(__file__).resolve().parent.parent
    outputs = {
        f"journal_schema_v{CURRENT_JOURNAL_SCHEMA_VERSION}.json": JournalEntry.model_json_schema(),
        "memo_schema.json": NotarizationMemo.model_json_schema(by_alias=True),
    }
    for name, schema in outputs.items():
        (root / name).write_text(json.dumps(schema, indent=2), encoding="utf-8")


if __name__ == "__main__":
    main()

"""
Export the local card store as a snapshot.

Writes `{words, cards, reviews}` JSON in the same wire format the remote
exchanges, optionally with a CSV word list for spreadsheets.

Usage:
    python -m scripts.export_snapshot [--output data/snapshot.json] [--words-csv data/word_list.csv]
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import pandas as pd

from enforcer import config
from enforcer.card_store import CardStore

DEFAULT_OUTPUT = config.DATA_DIR / "snapshot.json"

WORD_CSV_COLUMNS = ["id", "text", "translation", "language", "chapter", "group_name", "sentence", "created_at"]


def export_snapshot(output: Path, words_csv: Path | None = None) -> dict:
    """
    Dump the configured store.

    Args:
        output: JSON file to write
        words_csv: Optional CSV file for the word list

    Returns:
        The exported snapshot
    """
    store = CardStore.open()
    snapshot = store.snapshot()

    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as handle:
        json.dump(snapshot, handle, ensure_ascii=False, indent=2)
    print(f"✓ Wrote {output}")

    if words_csv is not None:
        df = pd.DataFrame(snapshot["words"], columns=WORD_CSV_COLUMNS)
        df = df.sort_values(["chapter", "group_name", "created_at"], na_position="last")
        words_csv.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(words_csv, index=False)
        print(f"✓ Wrote {words_csv} ({len(df)} words)")

    print(
        f"Words: {len(snapshot['words'])}  "
        f"Cards: {len(snapshot['cards'])}  "
        f"Reviews: {len(snapshot['reviews'])}"
    )
    return snapshot


def main():
    parser = argparse.ArgumentParser(description="Export the local card store as a snapshot")
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help=f"Snapshot JSON file (default: {DEFAULT_OUTPUT})"
    )
    parser.add_argument(
        "--words-csv",
        type=Path,
        help="Also write the word list as CSV"
    )

    args = parser.parse_args()
    config.configure_logging()
    export_snapshot(args.output, args.words_csv)


if __name__ == "__main__":
    main()

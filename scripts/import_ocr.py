"""
Import one OCR'd vocabulary page into the local card store.

Reads the JSON emitted by the OCR provider (a list of
`{text, bbox: {x, y, w, h}, confidence}` objects), groups the lines, and
creates a word + card pair for every new item.

Usage:
    python -m scripts.import_ocr page.json --chapter "Hoofdstuk 3" [--group Familie]
        [--translate] [--min-confidence 0.5] [--dry-run]
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from enforcer import config
from enforcer.card_store import CardStore
from enforcer.importer import ImportAdapter, parse_grouped_items
from enforcer.schemas import OcrLine
from enforcer.translation import OpenAITranslator


def load_lines(path: Path) -> list[OcrLine]:
    """Load and validate OCR lines from a JSON file."""
    with path.open(encoding="utf-8") as handle:
        raw = json.load(handle)
    return [OcrLine.model_validate(line) for line in raw]


def import_page(
    path: Path,
    chapter: str,
    group: str | None = None,
    translate: bool = False,
    min_confidence: float = 0.0,
    dry_run: bool = False
) -> None:
    """
    Import one page.

    Args:
        path: OCR JSON file
        chapter: Chapter label for the new words
        group: Group before the first heading (default: last group of the chapter)
        translate: Fill translations through the OpenAI API
        min_confidence: Drop OCR lines below this confidence
        dry_run: Only print the parsed items
    """
    lines = load_lines(path)
    print(f"Loaded {len(lines)} OCR lines from {path}")

    if dry_run:
        kept = [line for line in lines if line.confidence >= min_confidence]
        items = parse_grouped_items(kept, group)
        for item in items:
            print(f"  [{item.group}] {item.text}")
        print(f"\n⚠ DRY RUN MODE - {len(items)} items parsed, nothing stored")
        return

    store = CardStore.open()
    translator = OpenAITranslator() if translate else None
    adapter = ImportAdapter(store, translator, min_confidence=min_confidence)
    report = adapter.import_lines(lines, chapter, initial_group=group)

    print(f"\n{'='*60}")
    print("Import complete!")
    print(f"{'='*60}")
    print(f"Inserted:           {report.inserted}")
    print(f"Duplicates skipped: {report.skipped}")


def main():
    parser = argparse.ArgumentParser(description="Import an OCR'd vocabulary page")
    parser.add_argument("path", type=Path, help="OCR JSON file")
    parser.add_argument("--chapter", required=True, help="Chapter label for the new words")
    parser.add_argument(
        "--group",
        help="Group in effect before the first heading (default: last group of the chapter)"
    )
    parser.add_argument(
        "--translate",
        action="store_true",
        help="Translate new words with the OpenAI API (needs OPENAI_API_KEY)"
    )
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=0.0,
        help="Drop OCR lines below this confidence (0-1)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the parsed items without storing anything"
    )

    args = parser.parse_args()
    config.configure_logging()

    import_page(
        args.path,
        args.chapter,
        group=args.group,
        translate=args.translate,
        min_confidence=args.min_confidence,
        dry_run=args.dry_run
    )


if __name__ == "__main__":
    main()

"""
Import Adapter - turn OCR output of a vocabulary page into words.

The OCR provider emits recognized spans with a normalized bounding box
(origin bottom-left) and a confidence. A vocabulary page is laid out in one
or more columns of items, interrupted by short group headings ("Familie",
"Eten en drinken"). The adapter:

1. drops chapter titles and page numbers,
2. clusters spans into columns and reads each column top to bottom,
3. tracks the current group heading,
4. translates items in batches and creates word + card pairs, skipping
   words that already exist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from statistics import median
from typing import Callable, Iterable, Optional, Sequence, Union

from enforcer.card_store import CardStore
from enforcer.schemas import OcrLine
from enforcer.types import Language

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "Ungrouped"
COLUMN_THRESHOLD = 0.08        # max x-distance from a column's center
HEADING_HEIGHT_RATIO = 0.8     # single-word heading vs median line height
PHRASE_HEADING_HEIGHT_RATIO = 1.15
TRANSLATE_CHUNK_SIZE = 25

# Batch translator: list of source texts -> list of translations (same order)
Translator = Callable[[list[str]], list[str]]


@dataclass(frozen=True)
class ImportItem:
    """One vocabulary item read from the page."""
    text: str
    group: str


@dataclass
class ImportReport:
    inserted: int = 0
    skipped: int = 0
    words: list = field(default_factory=list)


@dataclass
class _LineEntry:
    text: str
    x: float
    y_top: float
    height: float


@dataclass
class _Column:
    center: float
    lines: list = field(default_factory=list)

    def add(self, entry: _LineEntry) -> None:
        count = len(self.lines)
        self.center = (self.center * count + entry.x) / (count + 1)
        self.lines.append(entry)


# ---- Line classification ----

def looks_like_chapter_line(text: str) -> bool:
    """Chapter titles, including common OCR misreads of "hoofdstuk"."""
    lowered = text.lower()
    if "hoofdstuk" in lowered or "chapter" in lowered or "hoolastuk" in lowered:
        return True
    return lowered.startswith("hoo") and "stuk" in lowered


def looks_like_page_number(text: str) -> bool:
    stripped = text.strip()
    return bool(stripped) and stripped.isascii() and stripped.isdigit()


def normalize_item_text(text: str) -> str:
    """Strip list bullets; OCR reads the separator comma as a period."""
    stripped = text.strip()
    if stripped.startswith("- "):
        stripped = stripped[2:]
    return stripped.strip().replace(".", ",")


def normalize_heading(text: str) -> str:
    return text.rstrip(":").strip()


def is_heading(entry: _LineEntry, median_height: float) -> bool:
    """
    Group headings are a capitalized word (or short phrase) without list
    punctuation, printed at least as tall as the surrounding items.
    """
    text = entry.text.strip()
    if not text:
        return False
    if any(char in text for char in ",-()"):
        return False
    if not text[0].isupper() or any(char.isupper() for char in text[1:]):
        return False
    if median_height <= 0:
        return False
    if " " in text:
        return entry.height >= median_height * PHRASE_HEADING_HEIGHT_RATIO
    return entry.height >= median_height * HEADING_HEIGHT_RATIO


# ---- Layout ----

def split_into_columns(entries: Sequence[_LineEntry]) -> list[list[_LineEntry]]:
    """Greedy left-to-right clustering on x; columns returned left to right."""
    columns: list[_Column] = []
    for entry in sorted(entries, key=lambda e: e.x):
        best = min(columns, key=lambda column: abs(entry.x - column.center), default=None)
        if best is not None and abs(entry.x - best.center) <= COLUMN_THRESHOLD:
            best.add(entry)
        else:
            columns.append(_Column(center=entry.x, lines=[entry]))

    columns.sort(key=lambda column: column.center)
    return [column.lines for column in columns]


def parse_grouped_items(
    lines: Iterable[OcrLine],
    initial_group: Optional[str] = None
) -> list[ImportItem]:
    """
    Read vocabulary items and their groups from OCR lines.

    Args:
        lines: OCR spans of one page
        initial_group: Group in effect before the first heading (e.g. the
            last group of the previous page)

    Returns:
        Items in reading order: column by column, top to bottom
    """
    entries = []
    for line in lines:
        text = line.text.strip()
        if not text or looks_like_chapter_line(text) or looks_like_page_number(text):
            continue
        entries.append(_LineEntry(
            text=text,
            x=line.bbox.x,
            y_top=1.0 - (line.bbox.y + line.bbox.h),
            height=line.bbox.h,
        ))

    if not entries:
        return []

    median_height = median(entry.height for entry in entries)
    current_group = initial_group
    items = []
    for column in split_into_columns(entries):
        for entry in sorted(column, key=lambda e: e.y_top):
            normalized = normalize_item_text(entry.text)
            if not normalized:
                continue
            if is_heading(entry, median_height):
                current_group = normalize_heading(normalized)
                continue
            items.append(ImportItem(text=normalized, group=current_group or DEFAULT_GROUP))

    return items


def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ImportAdapter:
    """
    Creates words (with their cards) from OCR output.
    """

    def __init__(
        self,
        store: CardStore,
        translator: Optional[Translator] = None,
        *,
        language: Language = Language.DUTCH,
        min_confidence: float = 0.0
    ):
        self.store = store
        self.translator = translator
        self.language = language
        self.min_confidence = min_confidence

    def _translate(self, texts: list[str]) -> list[Optional[str]]:
        if self.translator is None or not texts:
            return [None] * len(texts)
        translations = self.translator(texts)
        if len(translations) != len(texts):
            raise ValueError(
                f"Translator returned {len(translations)} translations for {len(texts)} texts"
            )
        return translations

    def import_lines(
        self,
        lines: Iterable[Union[OcrLine, dict]],
        chapter: str,
        *,
        initial_group: Optional[str] = None
    ) -> ImportReport:
        """
        Parse, translate and store one page of OCR lines.

        Args:
            lines: OcrLine values or their dict form
            chapter: Chapter label for every created word
            initial_group: Group before the first heading; defaults to the
                last group used in this chapter

        Returns:
            ImportReport with inserted/skipped counts and the new words
        """
        parsed = [line if isinstance(line, OcrLine) else OcrLine.model_validate(line) for line in lines]
        kept = [line for line in parsed if line.confidence >= self.min_confidence]
        if len(kept) < len(parsed):
            logger.info("Dropped %d low-confidence OCR line(s)", len(parsed) - len(kept))

        if initial_group is None:
            initial_group = self.store.last_group_for_chapter(chapter)

        report = ImportReport()
        items = parse_grouped_items(kept, initial_group)
        seen: set[str] = set()

        fresh = []
        for item in items:
            key = item.text.lower()
            if key in seen or self.store.word_exists(item.text, self.language):
                report.skipped += 1
                continue
            seen.add(key)
            fresh.append(item)

        # Translate the whole page before storing, so a failed batch stores nothing
        translations: list[Optional[str]] = []
        for chunk in _chunks(fresh, TRANSLATE_CHUNK_SIZE):
            translations.extend(self._translate([item.text for item in chunk]))

        for item, translation in zip(fresh, translations):
            word, _card = self.store.create(
                item.text,
                translation,
                language=self.language,
                chapter=chapter,
                group=item.group,
            )
            report.words.append(word)
            report.inserted += 1

        if report.skipped:
            logger.info("Skipped %d duplicate word(s)", report.skipped)
        logger.info("Imported %d word(s) into chapter %r", report.inserted, chapter)
        return report

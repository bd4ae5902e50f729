"""
Value types shared by the store, the session manager and the service layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class Language(str, Enum):
    """Language of a word's source text."""
    DUTCH = "Dutch"
    ENGLISH = "English"


class Unchanged(Enum):
    """Marker for a correction field that must be left as is."""
    UNCHANGED = "unchanged"


UNCHANGED = Unchanged.UNCHANGED

FieldUpdate = Union[str, Unchanged]


@dataclass(frozen=True)
class WordEntry:
    """
    A vocabulary entry (content only, no scheduling state).
    """
    id: str
    text: str
    language: Language
    translation: Optional[str]
    chapter: Optional[str]
    group: Optional[str]
    sentence: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class DueCard:
    """
    A due card joined with its word, as handed to the front end.
    """
    card_id: str
    word_id: str
    text: str
    translation: Optional[str]
    language: Language
    chapter: Optional[str]
    group: Optional[str]
    due_at: datetime
    is_new: bool = False


# The front end calls it a card view
CardView = DueCard


@dataclass(frozen=True)
class ReviewEntry:
    """One immutable grading event."""
    id: str
    card_id: str
    grade: int
    reviewed_at: datetime


@dataclass(frozen=True)
class ContentCorrection:
    """
    A partial edit of a word's content.

    Each field is either a new value or UNCHANGED, so an empty string is a
    legitimate correction rather than "no change".
    """
    text: FieldUpdate = UNCHANGED
    translation: FieldUpdate = UNCHANGED

    def is_empty(self) -> bool:
        return not self.changes()

    def changes(self) -> dict[str, str]:
        """Field name -> new value, for the fields that change."""
        return {
            name: value
            for name, value in (("text", self.text), ("translation", self.translation))
            if value is not UNCHANGED
        }

    @classmethod
    def from_optional(
        cls,
        text: Optional[str] = None,
        translation: Optional[str] = None
    ) -> "ContentCorrection":
        """Build from nullable inputs where None means "leave unchanged"."""
        return cls(
            text=UNCHANGED if text is None else text,
            translation=UNCHANGED if translation is None else translation,
        )

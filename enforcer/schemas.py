"""
Pydantic models for inbound and outbound payloads.

- Snapshot rows exchanged with the remote copy (words / cards / reviews)
- OCR lines produced by the text-recognition provider
- Issue reports written to the feedback log
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from enforcer.srs.memory_state import ensure_utc
from enforcer.types import Language


# Naive timestamps are read as UTC
UTCDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


# ---- Snapshot (remote wire format) ----

class WordRow(BaseModel):
    """One row of the remote `words` table."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    text: str
    language: Language = Language.DUTCH
    translation: Optional[str] = None
    chapter: Optional[str] = None
    group_name: Optional[str] = None
    sentence: Optional[str] = None
    created_at: UTCDatetime


class CardRow(BaseModel):
    """One row of the remote `cards` table."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    word_id: str = Field(..., min_length=1)
    due_at: UTCDatetime
    interval_days: float = Field(..., ge=0)
    ease: float = Field(..., gt=0)
    reps: int = Field(..., ge=0)
    lapses: int = Field(..., ge=0)


class ReviewRow(BaseModel):
    """One row of the remote `reviews` table."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    card_id: str = Field(..., min_length=1)
    grade: int = Field(..., ge=1, le=4)
    reviewed_at: UTCDatetime


class DataApiSnapshot(BaseModel):
    """
    Full remote snapshot: `{words: [...], cards: [...], reviews: [...]}`.

    Row-level shape is checked here; cross-row references are checked by the
    reconciliation engine against the snapshot plus the local store.
    """
    words: list[WordRow] = Field(default_factory=list)
    cards: list[CardRow] = Field(default_factory=list)
    reviews: list[ReviewRow] = Field(default_factory=list)


# ---- OCR ----

class OcrBBox(BaseModel):
    """Normalized bounding box, origin bottom-left (Vision convention)."""
    x: float
    y: float
    w: float
    h: float


class OcrLine(BaseModel):
    """One recognized text span."""
    text: str
    bbox: OcrBBox
    confidence: float = Field(1.0, ge=0.0, le=1.0)


# ---- Issue reports ----

class IssueReport(BaseModel):
    """Learner feedback about a card (wrong translation, typo, ...)."""
    card_id: str
    word_id: str
    text: Optional[str] = None
    translation: Optional[str] = None
    note: Optional[str] = None
    reported_at: UTCDatetime

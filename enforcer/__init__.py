"""
Language Enforcer - vocabulary review engine.

Quick start:
    from enforcer import ReviewService, Grade

    service = ReviewService.open()
    service.start_session()
    card = service.next_due_card()
    service.grade_card(card.card_id, Grade.GOOD)
"""

from enforcer.errors import (
    EnforcerError,
    NotFound,
    Conflict,
    AuthRequired,
    ValidationError,
    Transient,
)
from enforcer.srs.constants import Grade
from enforcer.types import UNCHANGED, ContentCorrection, CardView, Language
from enforcer.card_store import CardStore
from enforcer.session import SessionManager, SessionState
from enforcer.reconciliation import AuthContext, IngestResult, ReconciliationEngine
from enforcer.service import ReviewService


__all__ = [
    "EnforcerError",
    "NotFound",
    "Conflict",
    "AuthRequired",
    "ValidationError",
    "Transient",
    "Grade",
    "UNCHANGED",
    "ContentCorrection",
    "CardView",
    "Language",
    "CardStore",
    "SessionManager",
    "SessionState",
    "AuthContext",
    "IngestResult",
    "ReconciliationEngine",
    "ReviewService",
]

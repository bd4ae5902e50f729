"""
Error kinds raised by the review engine.

The engine never formats user-facing messages; callers map these types to
whatever the front end shows.
"""

from __future__ import annotations

from typing import Optional


class EnforcerError(Exception):
    """Base class for all engine errors."""


class NotFound(EnforcerError):
    """Unknown word or card id. Not retryable."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class Conflict(EnforcerError):
    """Concurrent mutation of the same card. Reload and retry."""

    def __init__(self, card_id: str, reason: str = "grade already in flight"):
        super().__init__(f"Conflict on card {card_id}: {reason}")
        self.card_id = card_id


class AuthRequired(EnforcerError):
    """A remote-touching operation was called without a signed-in session."""

    def __init__(self, operation: str):
        super().__init__(f"{operation} requires an authenticated session")
        self.operation = operation


class ValidationError(EnforcerError):
    """
    A snapshot (or another inbound payload) failed validation.

    The whole batch is rejected; nothing is applied.
    """

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class Transient(EnforcerError):
    """Network or storage I/O failure. Safe to retry the whole operation."""

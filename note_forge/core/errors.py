"""
Domain errors for the generation and billing pipeline.

InvalidRequest, InsufficientFunds and QuotaExceeded are raised before any
costly call. GenerationFailed is raised only after the retry budget is
spent or on a non-transient upstream failure. Reconciliation problems are
never raised; they travel as a ReconciliationWarning on the outcome.
"""

from enum import Enum
from typing import Optional


class NoteForgeError(Exception):
    """Base class for pipeline errors."""


class InvalidRequest(NoteForgeError):
    """Raised when request input is rejected before any downstream call."""


class AccountNotFound(NoteForgeError):
    """Raised when a ledger operation targets an unknown account."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No coin account for user {user_id}")


class InsufficientFunds(NoteForgeError):
    """Raised when the balance does not cover the coins a request needs."""

    def __init__(self, user_id: str, required: int, available: int):
        self.user_id = user_id
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient coins for {user_id}: required {required}, available {available}"
        )


class QuotaExceeded(NoteForgeError):
    """Raised when the account's tier monthly note limit has been reached."""

    def __init__(self, user_id: str, limit: int, current: int):
        self.user_id = user_id
        self.limit = limit
        self.current = current
        super().__init__(
            f"Monthly quota reached for {user_id}: {current}/{limit} notes"
        )


class GenerationFailed(NoteForgeError):
    """Raised when the upstream generation service could not produce a document."""

    def __init__(self, message: str, status: Optional[int] = None, attempts: int = 1):
        self.status = status
        self.attempts = attempts
        super().__init__(message)


class ReconciliationWarning(Enum):
    """Warnings attached to a delivered note whose bookkeeping partially failed."""
    BILLING = (
        "Your note was generated, but we could not charge coins for it. "
        "Your balance will be reconciled later."
    )
    PERSISTENCE = (
        "Your note was generated and charged, but it could not be saved to your history. "
        "Download it now to keep a copy."
    )

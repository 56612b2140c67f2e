"""
Data models for storage layer.

Defines ledger and note history records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class TransactionKind(Enum):
    """Kinds of ledger entries."""
    DEDUCTION = "deduction"
    BONUS = "bonus"
    REFUND = "refund"


@dataclass(frozen=True)
class Transaction:
    """Immutable ledger entry.

    Append-only: once written, a transaction is never edited. Every entry
    satisfies ``new_balance == previous_balance + amount``.
    """
    user_id: str
    amount: int
    kind: TransactionKind
    previous_balance: int
    new_balance: int
    description: str
    timestamp: datetime
    id: Optional[int] = None

    def __post_init__(self):
        if self.new_balance != self.previous_balance + self.amount:
            raise ValueError(
                f"Transaction balance mismatch: {self.previous_balance} + {self.amount} "
                f"!= {self.new_balance}"
            )
        if self.new_balance < 0:
            raise ValueError("Transaction would leave a negative balance")


@dataclass(frozen=True)
class CoinAccount:
    """Snapshot of a user's coin balance and usage counters."""
    user_id: str
    tier: str
    balance: int
    total_spent: int
    total_generated: int
    monthly_count: int
    monthly_limit: Optional[int]
    last_transaction: Optional[Transaction] = None


@dataclass(frozen=True)
class DeductionResult:
    """Outcome of a compare-and-deduct request against the ledger."""
    ok: bool
    transaction: Optional[Transaction] = None
    reason: Optional[str] = None
    available: Optional[int] = None


INSUFFICIENT_BALANCE = "insufficient_balance"


@dataclass(frozen=True)
class GenerationRequest:
    """A note generation request as received from a caller."""
    topic: str
    template_id: str
    page_count: int


@dataclass(frozen=True)
class GenerationArtifact:
    """A generated note document and its billing metadata."""
    id: str
    user_id: Optional[str]
    title: str
    template_id: str
    page_count: int
    coins_spent: int
    html_content: str
    created_at: datetime
    warning: Optional[str] = None


@dataclass(frozen=True)
class NoteSummary:
    """History listing entry (no document body)."""
    id: str
    title: str
    template_id: str
    page_count: int
    coins_spent: int
    created_at: datetime


@dataclass(frozen=True)
class NotePage:
    """One page of a paginated history listing."""
    items: List[NoteSummary] = field(default_factory=list)
    total: int = 0
    limit: int = 20
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return self.total > self.offset + self.limit

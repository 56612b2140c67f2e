"""
Billing ledger protocol.

The orchestrator never touches balances directly; it reads accounts and
asks the ledger for compare-and-deduct and compensating refunds.
"""

import asyncio
from abc import ABC, abstractmethod

from note_forge.storage.ledger import LedgerRepository
from note_forge.storage.models import CoinAccount, DeductionResult, Transaction


class BillingLedger(ABC):
    """Operations the generation pipeline requires from the coin ledger."""

    @abstractmethod
    async def get_account(self, user_id: str) -> CoinAccount:
        """Return the account, raising AccountNotFound when missing."""

    @abstractmethod
    async def try_deduct(self, user_id: str, amount: int, description: str) -> DeductionResult:
        """Atomically deduct when the balance covers the amount."""

    @abstractmethod
    async def refund(self, user_id: str, amount: int, description: str) -> Transaction:
        """Append a compensating credit for an earlier deduction."""


class SqliteBillingLedger(BillingLedger):
    """BillingLedger backed by LedgerRepository.

    SQLite calls block, so each one runs in a worker thread to keep the
    event loop free while waiting on the database lock.
    """

    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def get_account(self, user_id: str) -> CoinAccount:
        return await asyncio.to_thread(self.repository.get_account, user_id)

    async def try_deduct(self, user_id: str, amount: int, description: str) -> DeductionResult:
        return await asyncio.to_thread(self.repository.try_deduct, user_id, amount, description)

    async def refund(self, user_id: str, amount: int, description: str) -> Transaction:
        return await asyncio.to_thread(self.repository.refund, user_id, amount, description)

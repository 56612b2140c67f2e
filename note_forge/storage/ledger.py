"""
Coin ledger storage.

SQLite-backed account balances plus an append-only transaction log.
Balance checks and updates happen inside a single ``BEGIN IMMEDIATE``
transaction so concurrent deductions against one account are serialized
by the database write lock.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional

from note_forge.config.loader import DEFAULT_DB_PATH, BillingSettings
from note_forge.core.errors import AccountNotFound
from .db import get_connection
from .models import (
    INSUFFICIENT_BALANCE,
    CoinAccount,
    DeductionResult,
    Transaction,
    TransactionKind,
)

logger = logging.getLogger(__name__)

_TRANSACTION_COLUMNS = (
    "id, user_id, amount, kind, previous_balance, new_balance, description, timestamp"
)


def _month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def _row_to_transaction(row) -> Transaction:
    return Transaction(
        id=row[0],
        user_id=row[1],
        amount=row[2],
        kind=TransactionKind(row[3]),
        previous_balance=row[4],
        new_balance=row[5],
        description=row[6],
        timestamp=datetime.fromisoformat(row[7])
    )


class LedgerRepository:
    """Repository for coin accounts and their transaction log.

    Every balance mutation writes exactly one Transaction row in the same
    database transaction as the balance update.
    """

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        billing: Optional[BillingSettings] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize the repository.

        Args:
            db_path: Path to SQLite database file
            billing: Billing settings (tiers, signup bonus)
            clock: Source of the current time, injectable for tests
        """
        self.db_path = db_path
        self.billing = billing or BillingSettings()
        self._clock = clock

    def initialize_schema(self) -> None:
        """Create the account and transaction tables if they don't exist."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS coin_account (
                    user_id TEXT PRIMARY KEY,
                    tier TEXT NOT NULL,
                    balance INTEGER NOT NULL CHECK (balance >= 0),
                    total_spent INTEGER NOT NULL DEFAULT 0,
                    total_generated INTEGER NOT NULL DEFAULT 0,
                    monthly_count INTEGER NOT NULL DEFAULT 0,
                    month_key TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS coin_transaction (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL REFERENCES coin_account(user_id),
                    amount INTEGER NOT NULL,
                    kind TEXT NOT NULL CHECK (kind IN ('deduction', 'bonus', 'refund')),
                    previous_balance INTEGER NOT NULL,
                    new_balance INTEGER NOT NULL CHECK (new_balance >= 0),
                    description TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    CHECK (new_balance = previous_balance + amount)
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def open_account(
        self,
        user_id: str,
        tier: Optional[str] = None,
        initial_coins: Optional[int] = None
    ) -> CoinAccount:
        """Create an account credited with the signup bonus.

        Args:
            user_id: Identity-provider user id
            tier: Tier name (defaults to the billing default tier)
            initial_coins: Opening bonus (defaults to the configured signup bonus)

        Returns:
            The new account

        Raises:
            ValueError: If the account already exists or values are invalid
        """
        if not user_id or not user_id.strip():
            raise ValueError("user_id is required and cannot be empty")
        tier = tier or self.billing.default_tier
        if tier not in self.billing.tiers:
            raise ValueError(f"Unknown tier: {tier}")
        coins = self.billing.signup_bonus if initial_coins is None else initial_coins
        if coins < 0:
            raise ValueError("initial_coins must be >= 0")

        now = self._clock()
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            exists = conn.execute(
                "SELECT 1 FROM coin_account WHERE user_id = ?", (user_id,)
            ).fetchone()
            if exists:
                raise ValueError(f"Account already exists: {user_id}")

            conn.execute("""
                INSERT INTO coin_account
                (user_id, tier, balance, month_key, created_at, updated_at)
                VALUES (?, ?, 0, ?, ?, ?)
            """, (user_id, tier, _month_key(now), now.isoformat(), now.isoformat()))

            if coins > 0:
                self._apply(conn, user_id, 0, coins, TransactionKind.BONUS, "Signup bonus", now)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info("Opened account user=%s tier=%s coins=%s", user_id, tier, coins)
        return self.get_account(user_id)

    def get_account(self, user_id: str) -> CoinAccount:
        """Fetch the current account snapshot.

        Raises:
            AccountNotFound: If no account exists for user_id
        """
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("""
                SELECT user_id, tier, balance, total_spent, total_generated,
                       monthly_count, month_key
                FROM coin_account WHERE user_id = ?
            """, (user_id,)).fetchone()
            if row is None:
                raise AccountNotFound(user_id)

            last = conn.execute(
                f"SELECT {_TRANSACTION_COLUMNS} FROM coin_transaction "
                "WHERE user_id = ? ORDER BY id DESC LIMIT 1",
                (user_id,)
            ).fetchone()
        finally:
            conn.close()

        tier = row[1]
        monthly_count = row[5] if row[6] == _month_key(self._clock()) else 0
        return CoinAccount(
            user_id=row[0],
            tier=tier,
            balance=row[2],
            total_spent=row[3],
            total_generated=row[4],
            monthly_count=monthly_count,
            monthly_limit=self.billing.get_tier(tier).monthly_limit,
            last_transaction=_row_to_transaction(last) if last else None
        )

    def try_deduct(self, user_id: str, amount: int, description: str) -> DeductionResult:
        """Atomically deduct coins if the balance covers the amount.

        The balance read and the update run under one write lock, so two
        concurrent callers can never both succeed when their combined amount
        exceeds the balance.

        Args:
            user_id: Account owner
            amount: Positive number of coins to deduct
            description: Human-readable reason stored on the transaction

        Returns:
            DeductionResult with ok=False and reason=INSUFFICIENT_BALANCE when
            the balance is too low; nothing is written in that case

        Raises:
            AccountNotFound: If no account exists for user_id
            ValueError: If amount is not positive
        """
        if amount <= 0:
            raise ValueError("amount must be > 0")

        now = self._clock()
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT balance, monthly_count, month_key FROM coin_account WHERE user_id = ?",
                (user_id,)
            ).fetchone()
            if row is None:
                raise AccountNotFound(user_id)

            balance, monthly_count, month_key = row
            if balance < amount:
                conn.rollback()
                logger.warning(
                    "Insufficient coins: user=%s requested=%s available=%s",
                    user_id, amount, balance,
                )
                return DeductionResult(ok=False, reason=INSUFFICIENT_BALANCE, available=balance)

            current_month = _month_key(now)
            if month_key != current_month:
                monthly_count = 0

            transaction = self._apply(
                conn, user_id, balance, -amount, TransactionKind.DEDUCTION, description, now
            )
            conn.execute("""
                UPDATE coin_account
                SET total_spent = total_spent + ?,
                    total_generated = total_generated + 1,
                    monthly_count = ?,
                    month_key = ?
                WHERE user_id = ?
            """, (amount, monthly_count + 1, current_month, user_id))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info(
            "Deducted coins: user=%s amount=%s balance=%s->%s",
            user_id, amount, transaction.previous_balance, transaction.new_balance,
        )
        return DeductionResult(ok=True, transaction=transaction, available=transaction.new_balance)

    def refund(self, user_id: str, amount: int, description: str) -> Transaction:
        """Credit back coins taken by an earlier deduction.

        Compensating entry, not a rollback: the original deduction stays in
        the log and a REFUND entry is appended.

        Raises:
            AccountNotFound: If no account exists for user_id
            ValueError: If amount is not positive
        """
        transaction = self._credit(user_id, amount, TransactionKind.REFUND, description)
        logger.info("Refunded coins: user=%s amount=%s", user_id, amount)
        return transaction

    def grant(self, user_id: str, amount: int, description: str) -> Transaction:
        """Credit bonus coins (purchases settled out-of-band, support credits)."""
        transaction = self._credit(user_id, amount, TransactionKind.BONUS, description)
        logger.info("Granted coins: user=%s amount=%s", user_id, amount)
        return transaction

    def set_tier(self, user_id: str, tier: str) -> CoinAccount:
        """Move an account to another tier."""
        if tier not in self.billing.tiers:
            raise ValueError(f"Unknown tier: {tier}")

        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "UPDATE coin_account SET tier = ?, updated_at = ? WHERE user_id = ?",
                (tier, self._clock().isoformat(), user_id)
            )
            if cursor.rowcount == 0:
                raise AccountNotFound(user_id)
            conn.commit()
        finally:
            conn.close()
        return self.get_account(user_id)

    def list_transactions(self, user_id: str, limit: int = 20) -> List[Transaction]:
        """Return the most recent transactions for an account, newest first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_TRANSACTION_COLUMNS} FROM coin_transaction "
                "WHERE user_id = ? ORDER BY id DESC LIMIT ?",
                (user_id, limit)
            )
            return [_row_to_transaction(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def _credit(
        self,
        user_id: str,
        amount: int,
        kind: TransactionKind,
        description: str
    ) -> Transaction:
        if amount <= 0:
            raise ValueError("amount must be > 0")

        now = self._clock()
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT balance FROM coin_account WHERE user_id = ?", (user_id,)
            ).fetchone()
            if row is None:
                raise AccountNotFound(user_id)

            transaction = self._apply(conn, user_id, row[0], amount, kind, description, now)
            if kind == TransactionKind.REFUND:
                conn.execute(
                    "UPDATE coin_account SET total_spent = MAX(total_spent - ?, 0) WHERE user_id = ?",
                    (amount, user_id)
                )
            conn.commit()
            return transaction
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _apply(
        self,
        conn,
        user_id: str,
        previous_balance: int,
        amount: int,
        kind: TransactionKind,
        description: str,
        now: datetime
    ) -> Transaction:
        """Write the balance change and its transaction row on an open connection."""
        transaction = Transaction(
            user_id=user_id,
            amount=amount,
            kind=kind,
            previous_balance=previous_balance,
            new_balance=previous_balance + amount,
            description=description,
            timestamp=now
        )
        conn.execute(
            "UPDATE coin_account SET balance = ?, updated_at = ? WHERE user_id = ?",
            (transaction.new_balance, now.isoformat(), user_id)
        )
        cursor = conn.execute("""
            INSERT INTO coin_transaction
            (user_id, amount, kind, previous_balance, new_balance, description, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            transaction.user_id,
            transaction.amount,
            transaction.kind.value,
            transaction.previous_balance,
            transaction.new_balance,
            transaction.description,
            transaction.timestamp.isoformat()
        ))
        return replace(transaction, id=cursor.lastrowid)

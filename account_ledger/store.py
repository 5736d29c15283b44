import logging
import threading
from datetime import datetime
from decimal import Decimal
from typing import Mapping, Optional
from uuid import UUID

from .models import TransactionStatus, WithdrawalTransaction

logger = logging.getLogger(__name__)


class LedgerStore:
    """In-memory balances and the ordered withdrawal log.

    Every read and write goes through one lock, so ``debit`` is a single
    check-and-decrement step for concurrent callers. Stored transactions are
    copied on the way in and out; callers never hold a reference to a record.
    """

    def __init__(self):
        self.balances: dict[str, Decimal] = {}
        self.transactions: list[WithdrawalTransaction] = []
        self._index: dict[UUID, int] = {}
        self._lock = threading.Lock()

    def get_balance(self, account_id: str) -> Decimal:
        with self._lock:
            return self.balances.get(account_id, Decimal("0"))

    def set_balance(self, account_id: str, amount: Decimal) -> None:
        with self._lock:
            self.balances[account_id] = amount

    def seed(self, balances: Mapping[str, Decimal]) -> None:
        with self._lock:
            self.balances.update(balances)

    def debit(self, account_id: str, amount: Decimal) -> tuple[Decimal, bool]:
        with self._lock:
            current = self.balances.get(account_id, Decimal("0"))
            if amount > current:
                return current, False
            new_balance = current - amount
            self.balances[account_id] = new_balance
            return new_balance, True

    def append_transaction(self, transaction: WithdrawalTransaction) -> None:
        with self._lock:
            self._index[transaction.id] = len(self.transactions)
            self.transactions.append(transaction.model_copy())

    def update_transaction_status(
        self,
        transaction_id: UUID,
        status: TransactionStatus,
        completed_at: Optional[datetime] = None,
    ) -> bool:
        with self._lock:
            position = self._index.get(transaction_id)
            if position is None:
                logger.warning(
                    "Transaction %s not found, status update skipped",
                    transaction_id,
                    extra={"transaction_id": str(transaction_id)},
                )
                return False
            record = self.transactions[position]
            record.status = status
            if completed_at is not None:
                record.completed_at = completed_at
            return True

    def get_transaction(self, transaction_id: UUID) -> Optional[WithdrawalTransaction]:
        with self._lock:
            position = self._index.get(transaction_id)
            if position is None:
                return None
            return self.transactions[position].model_copy()

    def list_transactions(self) -> list[WithdrawalTransaction]:
        with self._lock:
            return [tx.model_copy() for tx in self.transactions]

    def reset(self) -> None:
        with self._lock:
            self.balances.clear()
            self.transactions.clear()
            self._index.clear()

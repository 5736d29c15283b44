"""
Account Ledger Service

This module provides:
- In-memory account balances with atomic debits
- Withdrawal validation and processing
- Settlement lifecycle: processing → completed
- Deferred completion for instant-channel (mobile money) withdrawals
- Administrative balance override
"""

from .models import (
    TransactionStatus,
    WithdrawalTransaction,
    WithdrawRequest,
    UpdateBalanceRequest,
)
from .store import LedgerStore
from .service import (
    WithdrawalService,
    LedgerServiceError,
    ValidationError,
    InsufficientFundsError,
    InternalError,
)

__all__ = [
    "TransactionStatus",
    "WithdrawalTransaction",
    "WithdrawRequest",
    "UpdateBalanceRequest",
    "LedgerStore",
    "WithdrawalService",
    "LedgerServiceError",
    "ValidationError",
    "InsufficientFundsError",
    "InternalError",
]

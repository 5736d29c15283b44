import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID, uuid4

from .config import Settings, get_settings
from .models import (
    TransactionStatus,
    WithdrawalTransaction,
    WithdrawRequest,
    WithdrawResponse,
    AccountBalance,
    WithdrawalsResponse,
    UpdateBalanceRequest,
    UpdateBalanceResponse,
)
from .scheduler import CompletionScheduler
from .store import LedgerStore

logger = logging.getLogger(__name__)


class LedgerServiceError(Exception):
    pass


class ValidationError(LedgerServiceError):
    pass


class InsufficientFundsError(LedgerServiceError):
    def __init__(self, account_id: str, requested: Decimal, available: Decimal):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__("insufficient funds")


class InternalError(LedgerServiceError):
    pass


def _parse_amount(value: Any) -> Decimal:
    """Parse to Decimal; anything unparseable becomes NaN."""
    if isinstance(value, bool):
        return Decimal("NaN")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("NaN")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


CENTS = Decimal("0.01")


def _check_money(value: Decimal, name: str, limit: Decimal) -> None:
    """Bounded and whole cents, so balance arithmetic stays exact."""
    if abs(value) > limit:
        raise ValidationError(f"{name} exceeds maximum of {limit}")
    if value.quantize(CENTS) != value:
        raise ValidationError(f"{name} must have at most 2 decimal places")


class WithdrawalService:
    def __init__(
        self,
        store: Optional[LedgerStore] = None,
        settings: Optional[Settings] = None,
        scheduler: Optional[CompletionScheduler] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or LedgerStore()
        self.scheduler = scheduler or CompletionScheduler(self.settings.completion_delay_seconds)
        self.instant_methods = {m.lower() for m in self.settings.instant_methods}

    def _validate_withdrawal(self, request: WithdrawRequest) -> Decimal:
        if _is_blank(request.account_id) or _is_blank(request.amount) or _is_blank(request.method):
            raise ValidationError("missing required fields")

        amount = _parse_amount(request.amount)
        if amount.is_nan() or amount <= 0:
            raise ValidationError("amount must be greater than 0")

        _check_money(amount, "amount", self.settings.max_amount)

        minimum = self.settings.min_withdrawal_amount
        if amount < minimum:
            raise ValidationError(f"minimum withdrawal amount is {minimum}")
        return amount

    def process_withdrawal(self, request: WithdrawRequest) -> WithdrawResponse:
        try:
            amount = self._validate_withdrawal(request)
        except ValidationError as exc:
            logger.info(
                "Withdrawal rejected for %s: %s", request.account_id, exc,
                extra={"account_id": request.account_id},
            )
            raise

        new_balance, ok = self.store.debit(request.account_id, amount)
        if not ok:
            logger.info(
                "Withdrawal of %s rejected for %s: insufficient funds",
                amount, request.account_id,
                extra={"account_id": request.account_id},
            )
            raise InsufficientFundsError(request.account_id, amount, new_balance)

        now = datetime.now(timezone.utc)
        transaction = WithdrawalTransaction(
            id=uuid4(),
            account_id=request.account_id,
            amount=amount,
            currency=self.settings.currency,
            method=request.method,
            mobile=request.mobile,
            provider=request.provider,
            status=TransactionStatus.PROCESSING,
            reference=self._new_reference(now),
            created_at=now,
        )
        self.store.append_transaction(transaction)

        if self.is_instant(request.method, request.mobile):
            try:
                self._settle_instantly(transaction)
            except Exception as exc:
                logger.exception(
                    "Instant settlement of %s failed", transaction.reference,
                    extra={"transaction_id": str(transaction.id)},
                )
                raise InternalError("withdrawal recorded but settlement failed") from exc

        logger.info(
            "Withdrawal %s accepted: %s from %s via %s",
            transaction.reference, amount, request.account_id, request.method,
            extra={
                "transaction_id": str(transaction.id),
                "account_id": request.account_id,
                "status": transaction.status.value,
            },
        )

        return WithdrawResponse(transaction=transaction, new_balance=new_balance)

    def is_instant(self, method: Optional[str], mobile: Optional[str]) -> bool:
        if _is_blank(method) or _is_blank(mobile):
            return False
        return method.strip().lower() in self.instant_methods

    def _settle_instantly(self, transaction: WithdrawalTransaction) -> None:
        transaction.status = TransactionStatus.COMPLETED
        self.store.update_transaction_status(transaction.id, TransactionStatus.COMPLETED)
        transaction_id = transaction.id
        self.scheduler.schedule(transaction_id, lambda: self.complete_transaction(transaction_id))

    def complete_transaction(self, transaction_id: UUID) -> bool:
        completed = self.store.update_transaction_status(
            transaction_id,
            TransactionStatus.COMPLETED,
            completed_at=datetime.now(timezone.utc),
        )
        if completed:
            logger.info(
                "Transaction %s settled", transaction_id,
                extra={"transaction_id": str(transaction_id)},
            )
        return completed

    def get_account_balance(self, account_id: str) -> AccountBalance:
        return AccountBalance(
            account_id=account_id,
            balance=self.store.get_balance(account_id),
            currency=self.settings.currency,
        )

    def list_withdrawals(self) -> WithdrawalsResponse:
        return WithdrawalsResponse(transactions=self.store.list_transactions())

    def set_account_balance(self, request: UpdateBalanceRequest) -> UpdateBalanceResponse:
        if _is_blank(request.account_id) or _is_blank(request.new_balance):
            raise ValidationError("accountId and newBalance are required")

        new_balance = _parse_amount(request.new_balance)
        if not new_balance.is_finite():
            raise ValidationError("newBalance must be a number")
        _check_money(new_balance, "newBalance", self.settings.max_amount)

        self.store.set_balance(request.account_id, new_balance)
        logger.warning(
            "Balance for %s overridden to %s", request.account_id, new_balance,
            extra={"account_id": request.account_id},
        )
        return UpdateBalanceResponse(account_id=request.account_id, new_balance=new_balance)

    def shutdown(self, drain: bool = False) -> None:
        self.scheduler.shutdown(drain=drain)

    @staticmethod
    def _new_reference(now: datetime) -> str:
        return f"WD-{now:%Y%m%d%H%M%S}-{uuid4().hex[:6].upper()}"

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class TransactionStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WithdrawRequest(CamelModel):
    account_id: Optional[str] = None
    amount: Optional[Union[int, float, str]] = None
    method: Optional[str] = None
    mobile: Optional[str] = None
    provider: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "accountId": "demo-001",
            "amount": 500,
            "method": "mobile_money",
            "mobile": "+256700000000",
            "provider": "mtn"
        }
    })


class UpdateBalanceRequest(CamelModel):
    account_id: Optional[str] = None
    new_balance: Optional[Union[int, float, str]] = None


class WithdrawalTransaction(CamelModel):
    id: UUID
    account_id: str
    amount: Decimal
    currency: str = "USD"
    method: str
    mobile: Optional[str] = None
    provider: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PROCESSING
    reference: str
    created_at: datetime
    completed_at: Optional[datetime] = None

    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED


class WithdrawResponse(CamelModel):
    success: bool = True
    transaction: WithdrawalTransaction
    new_balance: Decimal


class AccountBalance(CamelModel):
    success: bool = True
    account_id: str
    balance: Decimal
    currency: str = "USD"


class WithdrawalsResponse(CamelModel):
    success: bool = True
    transactions: list[WithdrawalTransaction] = Field(default_factory=list)


class UpdateBalanceResponse(CamelModel):
    success: bool = True
    account_id: str
    new_balance: Decimal


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None

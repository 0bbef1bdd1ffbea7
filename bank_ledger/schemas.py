"""
Pydantic schemas for API requests and responses

Responses use the camelCase field names the web client expects.
"""

from datetime import datetime
from typing import List, Union
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from .engine import TransactionPage
from .models import Account, Transaction


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateTransactionRequest(BaseModel):
    type: StrictStr = Field(..., description="DEPOSIT, WITHDRAWAL or TRANSFER")
    amount: Union[StrictInt, StrictFloat, StrictStr] = Field(..., description="Positive amount, at most 2 decimals")
    description: StrictStr = Field(..., description="3 to 100 characters")


class AccountResponse(CamelModel):
    id: str
    account_number: str
    account_holder: str
    account_type: str
    balance: float
    created_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> 'AccountResponse':
        return cls(
            id=account.id,
            account_number=account.account_number,
            account_holder=account.account_holder,
            account_type=account.account_type.value,
            balance=float(account.balance),
            created_at=account.created_at,
        )


class TransactionResponse(CamelModel):
    id: int
    account_id: str
    type: str
    amount: float
    description: str
    created_at: datetime

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'TransactionResponse':
        return cls(
            id=transaction.id,
            account_id=transaction.account_id,
            type=transaction.type.value,
            amount=float(transaction.amount),
            description=transaction.description,
            created_at=transaction.created_at,
        )


class TransactionPageResponse(CamelModel):
    transactions: List[TransactionResponse]
    total: int
    page: int
    limit: int

    @classmethod
    def from_page(cls, page: TransactionPage) -> 'TransactionPageResponse':
        return cls(
            transactions=[TransactionResponse.from_transaction(t) for t in page.transactions],
            total=page.total,
            page=page.page,
            limit=page.limit,
        )


class ErrorResponse(BaseModel):
    error: str

"""
Ledger Records Module

Account and transaction records plus the enums that classify them.
Records are frozen: every change to an account goes through the store,
which hands out fresh snapshots.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict

from .amounts import quantize_amount


class AccountType(Enum):
    """Deposit product types"""
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"


class TransactionType(Enum):
    """Types of ledger transactions"""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"  # Unilateral debit, no counterparty credit

    @property
    def is_debit(self) -> bool:
        """Check if this type takes money out of the account"""
        return self in (TransactionType.WITHDRAWAL, TransactionType.TRANSFER)

    @property
    def sign(self) -> int:
        """+1 for credits, -1 for debits"""
        return -1 if self.is_debit else 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class Account:
    """
    Bank account snapshot
    """
    id: str
    account_number: str
    account_holder: str
    account_type: AccountType
    balance: Decimal
    created_at: datetime

    def __post_init__(self):
        if not isinstance(self.balance, Decimal):
            object.__setattr__(self, 'balance', Decimal(str(self.balance)))
        object.__setattr__(self, 'balance', quantize_amount(self.balance))

    def with_balance(self, balance: Decimal) -> 'Account':
        """Copy of this snapshot carrying a new balance"""
        return Account(
            id=self.id,
            account_number=self.account_number,
            account_holder=self.account_holder,
            account_type=self.account_type,
            balance=balance,
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            "id": self.id,
            "account_number": self.account_number,
            "account_holder": self.account_holder,
            "account_type": self.account_type.value,
            "balance": str(self.balance),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Create instance from dictionary"""
        return cls(
            id=str(data["id"]),
            account_number=str(data["account_number"]),
            account_holder=data["account_holder"],
            account_type=AccountType(data["account_type"]),
            balance=Decimal(str(data["balance"])),
            created_at=_parse_datetime(data["created_at"]),
        )


@dataclass(frozen=True)
class Transaction:
    """
    Immutable ledger entry against a single account
    """
    id: int
    account_id: str
    type: TransactionType
    amount: Decimal
    description: str
    created_at: datetime

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the direction applied"""
        return self.amount * self.type.sign

    @property
    def sort_key(self):
        """Newest first ordering key (created_at, id)"""
        return (self.created_at, self.id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "type": self.type.value,
            "amount": str(self.amount),
            "description": self.description,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create instance from dictionary"""
        return cls(
            id=int(data["id"]),
            account_id=str(data["account_id"]),
            type=TransactionType(data["type"]),
            amount=Decimal(str(data["amount"])),
            description=data["description"],
            created_at=_parse_datetime(data["created_at"]),
        )

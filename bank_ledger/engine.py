"""
Transaction Engine Module

Validates transaction requests, applies them to an account under its lock
and serves paginated transaction history. Deposits credit the account,
withdrawals and transfers debit it; no request may drive a balance below
zero.
"""

from dataclasses import dataclass
from decimal import Decimal, DecimalException
from typing import Any, List, Optional, Union
import math

from .amounts import add_amounts, format_amount, parse_amount
from .config import LedgerConfig, get_config
from .exceptions import InsufficientFunds, LedgerError, ValidationError
from .logging_config import get_logger, log_action
from .models import Account, Transaction, TransactionType, utc_now
from .storage import Commit, LedgerStore


@dataclass(frozen=True)
class TransactionPage:
    """One page of an account's transaction history"""
    transactions: List[Transaction]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        """Number of non-empty pages"""
        return math.ceil(self.total / self.limit) if self.total else 0


class TransactionEngine:
    """
    Applies ledger transactions with one atomic commit per request
    """

    def __init__(self, store: LedgerStore, config: Optional[LedgerConfig] = None):
        self.store = store
        self.config = config or get_config()
        self.logger = get_logger("bank_ledger.engine")

    def _validate_type(self, transaction_type: Union[TransactionType, str]) -> TransactionType:
        if isinstance(transaction_type, TransactionType):
            return transaction_type
        if isinstance(transaction_type, str):
            try:
                return TransactionType(transaction_type.strip().upper())
            except ValueError:
                pass
        valid = ", ".join(t.value for t in TransactionType)
        raise ValidationError(f"Valid type ({valid}) is required")

    def _validate_amount(self, amount: Any) -> Decimal:
        value = parse_amount(amount)
        if value <= Decimal('0'):
            raise ValidationError("Amount must be greater than zero")
        if value > self.config.max_transaction_amount:
            raise ValidationError(
                f"Amount exceeds the maximum of {format_amount(self.config.max_transaction_amount)}"
            )
        return value

    def _validate_description(self, description: Any) -> str:
        if not isinstance(description, str):
            raise ValidationError("Description is required")
        text = description.strip()
        low = self.config.description_min_length
        high = self.config.description_max_length
        if not low <= len(text) <= high:
            raise ValidationError(f"Description must be between {low} and {high} characters")
        return text

    @staticmethod
    def _require_int(name: str, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{name} must be an integer")
        return value

    async def create_transaction(
        self,
        account_id: str,
        transaction_type: Union[TransactionType, str],
        amount: Any,
        description: str
    ) -> Transaction:
        """
        Validate and commit a transaction against one account

        Args:
            account_id: Account to post against
            transaction_type: DEPOSIT, WITHDRAWAL or TRANSFER
            amount: Positive amount with at most two decimal places
            description: 3 to 100 characters after trimming

        Returns:
            The committed Transaction

        Raises:
            ValidationError: If any input is malformed
            AccountNotFound: If the account does not exist
            InsufficientFunds: If a debit exceeds the balance
            StorageError: If the commit cannot be written
        """
        try:
            tx_type = self._validate_type(transaction_type)
            value = self._validate_amount(amount)
            text = self._validate_description(description)

            def apply(account: Account) -> Commit:
                # Runs under the account lock, so the balance cannot go stale
                if tx_type.is_debit and value > account.balance:
                    raise InsufficientFunds(account.id, value, account.balance)

                try:
                    new_balance = add_amounts(account.balance, value * tx_type.sign)
                except DecimalException:
                    raise ValidationError(f"Resulting balance for account {account.id} is too large")

                transaction = Transaction(
                    id=self.store.next_transaction_id(),
                    account_id=account.id,
                    type=tx_type,
                    amount=value,
                    description=text,
                    created_at=utc_now(),
                )
                return Commit(new_balance, transaction)

            transaction = await self.store.with_account_lock(account_id, apply)

        except LedgerError as e:
            log_action(
                self.logger, "warning", f"Transaction rejected: {e.message}",
                action="create_transaction", resource=f"account:{account_id}",
                extra={
                    "error": type(e).__name__,
                    "type": str(getattr(transaction_type, "value", transaction_type)),
                    "amount": str(amount),
                }
            )
            raise

        log_action(
            self.logger, "info", f"Transaction committed: {transaction.type.value}",
            action="create_transaction", resource=f"transaction:{transaction.id}",
            extra={
                "transaction_id": transaction.id,
                "account_id": account_id,
                "type": transaction.type.value,
                "amount": format_amount(transaction.amount),
            }
        )
        return transaction

    async def list_transactions(self, account_id: str, page: int = 1, limit: Optional[int] = None) -> TransactionPage:
        """
        Get one page of an account's transactions, newest first

        A page past the end is empty but still reports the total.
        """
        if limit is None:
            limit = self.config.default_page_size
        page = self._require_int("page", page)
        limit = self._require_int("limit", limit)
        if page < 1 or limit < 1 or limit > self.config.max_page_size:
            raise ValidationError("Invalid page or limit")

        await self.store.get_account(account_id)

        offset = (page - 1) * limit
        total = await self.store.count_transactions(account_id)
        transactions = await self.store.list_transactions(account_id, offset, limit)

        self.logger.debug(
            "Listed %d of %d transactions for account %s (page %d)",
            len(transactions), total, account_id, page
        )
        return TransactionPage(transactions=transactions, total=total, page=page, limit=limit)

    async def get_account(self, account_id: str) -> Account:
        """Get account by ID"""
        return await self.store.get_account(account_id)

    async def list_accounts(self) -> List[Account]:
        """Get all accounts"""
        return await self.store.list_accounts()

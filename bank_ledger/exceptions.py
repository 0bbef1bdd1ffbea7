"""
Error Taxonomy Module

Every failure the ledger reports to its callers derives from LedgerError.
None of these errors leave a partially applied commit behind.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Raised when a request is malformed (type, amount, description, page, limit)"""


class AccountNotFound(LedgerError):
    """Raised when a referenced account does not exist"""

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class InsufficientFunds(LedgerError):
    """Raised when a debit exceeds the available balance"""

    def __init__(self, account_id: str, requested: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"requested {requested}, available {available}"
        )
        self.account_id = account_id
        self.requested = requested
        self.available = available


class StorageError(LedgerError):
    """Raised when the underlying storage fails; state is left unchanged"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class LockTimeout(StorageError):
    """Raised when an account lock cannot be acquired in time"""

    def __init__(self, account_id: str, timeout: float):
        super().__init__(f"Timed out after {timeout}s waiting for lock on account {account_id}")
        self.account_id = account_id
        self.timeout = timeout

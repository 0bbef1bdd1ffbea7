"""
Ledger Storage Module

Provides the ledger store interface and implementations for in-memory
(default, process lifetime) and SQLite. All monetary values are stored as
Decimal strings.

The store is the only path that mutates an account balance. Mutations run
under a per-account lock and apply the balance update together with the
transaction append as one atomic commit.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union
import asyncio
import itertools
import sqlite3
import threading

from .amounts import is_ledger_amount
from .exceptions import AccountNotFound, LockTimeout, StorageError, ValidationError
from .logging_config import get_logger, log_action
from .models import Account, Transaction


@dataclass(frozen=True)
class Commit:
    """Instruction returned from a locked section: new balance plus the entry to append"""
    new_balance: Decimal
    transaction: Transaction


class AccountLocks:
    """
    Lazily created asyncio locks keyed by account id.

    Locks for different accounts are independent, so work on one account
    never waits on another.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    def locked(self, account_id: str) -> bool:
        """Check if an account lock is currently held"""
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, account_id: str):
        """Hold the lock for one account for the duration of the block"""
        lock = self._lock_for(account_id)
        if self.timeout is None:
            await lock.acquire()
        else:
            try:
                async with asyncio.timeout(self.timeout):
                    await lock.acquire()
            except TimeoutError:
                raise LockTimeout(account_id, self.timeout)
        try:
            yield
        finally:
            lock.release()


class LedgerStore(ABC):
    """Abstract interface for ledger storage backends"""

    def __init__(self, lock_timeout: Optional[float] = None):
        self._locks = AccountLocks(lock_timeout)
        self.logger = get_logger("bank_ledger.storage")

    @abstractmethod
    async def get_account(self, account_id: str) -> Account:
        """Load an account snapshot, raising AccountNotFound if missing"""
        pass

    @abstractmethod
    async def list_accounts(self) -> List[Account]:
        """Load every account, ordered by account number"""
        pass

    @abstractmethod
    async def add_account(self, account: Account) -> None:
        """Insert a new account (seed or provisioning path)"""
        pass

    @abstractmethod
    def next_transaction_id(self) -> int:
        """Allocate the next transaction id from a monotonic sequence"""
        pass

    @abstractmethod
    async def count_transactions(self, account_id: str) -> int:
        """Count transactions recorded against an account"""
        pass

    @abstractmethod
    async def list_transactions(self, account_id: str, offset: int, limit: int) -> List[Transaction]:
        """Fetch a window of an account's transactions, newest first"""
        pass

    @abstractmethod
    async def _apply_commit(self, account: Account, commit: Commit) -> Transaction:
        """Write the balance and append the transaction as one unit"""
        pass

    async def close(self) -> None:
        """Close storage (default no-op)"""
        pass

    async def with_account_lock(
        self,
        account_id: str,
        fn: Callable[[Account], Commit]
    ) -> Transaction:
        """
        Run a read-check-write step against one account under its lock.

        Args:
            account_id: Account to lock
            fn: Receives the account snapshot read under the lock. Returns a
                Commit to apply, or raises to abort without writing anything.

        Returns:
            The committed Transaction

        Raises:
            AccountNotFound: If the account does not exist
            LockTimeout: If the lock is not acquired within the timeout
            StorageError: If the commit is invalid or the write fails
        """
        async with self._locks.hold(account_id):
            account = await self.get_account(account_id)
            commit = fn(account)
            self._check_commit(account, commit)
            return await self._apply_commit(account, commit)

    def _check_commit(self, account: Account, commit: Commit) -> None:
        if not isinstance(commit, Commit):
            raise StorageError(f"Invalid commit instruction for account {account.id}")
        if commit.transaction.account_id != account.id:
            raise StorageError(
                f"Transaction {commit.transaction.id} targets account "
                f"{commit.transaction.account_id}, not {account.id}"
            )
        if not is_ledger_amount(commit.new_balance):
            raise StorageError(f"Refusing balance {commit.new_balance!r} for account {account.id}: not exact in cents")
        if commit.new_balance < Decimal('0'):
            raise StorageError(f"Refusing negative balance for account {account.id}")


class InMemoryLedgerStore(LedgerStore):
    """In-memory ledger store; data lives for the process lifetime"""

    def __init__(self, lock_timeout: Optional[float] = None):
        super().__init__(lock_timeout)
        self._accounts: Dict[str, Account] = {}
        self._account_numbers: Dict[str, str] = {}
        self._transactions: Dict[str, List[Transaction]] = {}
        self._sequence = itertools.count(1)

    async def get_account(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    async def list_accounts(self) -> List[Account]:
        return sorted(self._accounts.values(), key=lambda a: a.account_number)

    async def add_account(self, account: Account) -> None:
        if account.id in self._accounts:
            raise ValidationError(f"Account {account.id} already exists")
        if account.account_number in self._account_numbers:
            raise ValidationError(f"Account number {account.account_number} already in use")
        if account.balance < Decimal('0'):
            raise ValidationError("Opening balance cannot be negative")

        self._accounts[account.id] = account
        self._account_numbers[account.account_number] = account.id
        self._transactions[account.id] = []

    def next_transaction_id(self) -> int:
        return next(self._sequence)

    async def count_transactions(self, account_id: str) -> int:
        return len(self._transactions.get(account_id, []))

    async def list_transactions(self, account_id: str, offset: int, limit: int) -> List[Transaction]:
        entries = sorted(
            self._transactions.get(account_id, []),
            key=lambda t: t.sort_key,
            reverse=True
        )
        return entries[offset:offset + limit]

    async def _apply_commit(self, account: Account, commit: Commit) -> Transaction:
        # No await between the two writes: readers see both or neither
        self._accounts[account.id] = account.with_balance(commit.new_balance)
        self._transactions[account.id].append(commit.transaction)
        return commit.transaction


class SQLiteLedgerStore(LedgerStore):
    """SQLite ledger store; blocking calls run in worker threads"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", lock_timeout: Optional[float] = None):
        super().__init__(lock_timeout)
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()

        with self._lock:
            self._connection.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
            self._create_schema()
            row = self._connection.execute("SELECT COALESCE(MAX(id), 0) AS last_id FROM transactions").fetchone()
        self._sequence = itertools.count(row['last_id'] + 1)

    def _create_schema(self) -> None:
        self._connection.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                account_number TEXT NOT NULL UNIQUE,
                account_holder TEXT NOT NULL,
                account_type TEXT NOT NULL CHECK(account_type IN ('CHECKING', 'SAVINGS')),
                balance TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        self._connection.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY,
                account_id TEXT NOT NULL REFERENCES accounts (id),
                type TEXT NOT NULL CHECK(type IN ('DEPOSIT', 'WITHDRAWAL', 'TRANSFER')),
                amount TEXT NOT NULL,
                description TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_transactions_account_created
            ON transactions (account_id, created_at, id)
        """)
        self._connection.commit()

    def _execute(self, operation: str, func: Callable, *args):
        """Run func under the connection lock, reporting sqlite errors as StorageError"""
        with self._lock:
            if self._connection is None:
                raise StorageError("Storage is closed")
            try:
                return func(*args)
            except sqlite3.Error as e:
                log_action(
                    self.logger, "error", f"Storage failure during {operation}: {e}",
                    action=operation, extra={"db_path": self.db_path}
                )
                raise StorageError(f"Database error during {operation}", cause=e) from e

    async def _run(self, operation: str, func: Callable, *args):
        return await asyncio.to_thread(self._execute, operation, func, *args)

    async def _run_to_completion(self, operation: str, func: Callable, *args):
        """Like _run, but a cancelled caller still waits for the write to finish"""
        task = asyncio.ensure_future(self._run(operation, func, *args))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            await task
            raise

    @staticmethod
    def _timestamp(transaction: Transaction) -> str:
        return transaction.created_at.isoformat(timespec="microseconds")

    def _select_account(self, account_id: str) -> Optional[sqlite3.Row]:
        return self._connection.execute(
            "SELECT * FROM accounts WHERE id = ?", (account_id,)
        ).fetchone()

    async def get_account(self, account_id: str) -> Account:
        row = await self._run("get_account", self._select_account, account_id)
        if row is None:
            raise AccountNotFound(account_id)
        return Account.from_dict(dict(row))

    def _select_accounts(self) -> List[sqlite3.Row]:
        return self._connection.execute(
            "SELECT * FROM accounts ORDER BY account_number"
        ).fetchall()

    async def list_accounts(self) -> List[Account]:
        rows = await self._run("list_accounts", self._select_accounts)
        return [Account.from_dict(dict(row)) for row in rows]

    def _insert_account(self, account: Account) -> None:
        data = account.to_dict()
        try:
            self._connection.execute("""
                INSERT INTO accounts (id, account_number, account_holder, account_type, balance, created_at)
                VALUES (:id, :account_number, :account_holder, :account_type, :balance, :created_at)
            """, data)
            self._connection.commit()
        except sqlite3.IntegrityError:
            self._connection.rollback()
            raise ValidationError(
                f"Account {account.id} or account number {account.account_number} already exists"
            )

    async def add_account(self, account: Account) -> None:
        if account.balance < Decimal('0'):
            raise ValidationError("Opening balance cannot be negative")
        await self._run("add_account", self._insert_account, account)

    def next_transaction_id(self) -> int:
        return next(self._sequence)

    def _count_transactions(self, account_id: str) -> int:
        row = self._connection.execute(
            "SELECT COUNT(*) AS total FROM transactions WHERE account_id = ?", (account_id,)
        ).fetchone()
        return row['total']

    async def count_transactions(self, account_id: str) -> int:
        return await self._run("count_transactions", self._count_transactions, account_id)

    def _select_transactions(self, account_id: str, offset: int, limit: int) -> List[sqlite3.Row]:
        return self._connection.execute("""
            SELECT * FROM transactions WHERE account_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
        """, (account_id, limit, offset)).fetchall()

    async def list_transactions(self, account_id: str, offset: int, limit: int) -> List[Transaction]:
        rows = await self._run("list_transactions", self._select_transactions, account_id, offset, limit)
        return [Transaction.from_dict(dict(row)) for row in rows]

    def _write_commit(self, account: Account, commit: Commit) -> None:
        transaction = commit.transaction
        try:
            cursor = self._connection.execute(
                "UPDATE accounts SET balance = ? WHERE id = ?",
                (str(commit.new_balance), account.id)
            )
            if cursor.rowcount != 1:
                raise sqlite3.OperationalError(f"account {account.id} vanished during commit")
            data = transaction.to_dict()
            data["created_at"] = self._timestamp(transaction)
            self._connection.execute("""
                INSERT INTO transactions (id, account_id, type, amount, description, created_at)
                VALUES (:id, :account_id, :type, :amount, :description, :created_at)
            """, data)
            self._connection.commit()
        except sqlite3.Error:
            self._connection.rollback()
            raise

    async def _apply_commit(self, account: Account, commit: Commit) -> Transaction:
        await self._run_to_completion("commit", self._write_commit, account, commit)
        return commit.transaction

    async def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_store(config) -> LedgerStore:
    """Build the store selected by configuration"""
    if config.storage_backend == "sqlite":
        return SQLiteLedgerStore(config.database_path, lock_timeout=config.lock_timeout_seconds)
    if config.storage_backend == "memory":
        return InMemoryLedgerStore(lock_timeout=config.lock_timeout_seconds)
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")

"""
Sample accounts inserted at startup so the API has something to serve.
"""

from decimal import Decimal

from .logging_config import get_logger
from .models import Account, AccountType, utc_now
from .storage import LedgerStore

logger = get_logger("bank_ledger.seed")

SAMPLE_ACCOUNTS = [
    {
        "id": "1",
        "account_number": "1001",
        "account_type": AccountType.CHECKING,
        "balance": Decimal("5000.00"),
        "account_holder": "John Doe",
    },
    {
        "id": "2",
        "account_number": "1002",
        "account_type": AccountType.SAVINGS,
        "balance": Decimal("10000.00"),
        "account_holder": "Jane Smith",
    },
]


async def seed_sample_accounts(store: LedgerStore) -> int:
    """Insert the sample accounts that are not present yet; returns how many were added"""
    existing = {account.id for account in await store.list_accounts()}
    added = 0
    for data in SAMPLE_ACCOUNTS:
        if data["id"] in existing:
            continue
        await store.add_account(Account(created_at=utc_now(), **data))
        added += 1

    logger.info("Seeded %d sample accounts", added)
    return added

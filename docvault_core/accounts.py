"""Serialized account updates.

Accounts are read, changed and written back as a whole, so concurrent appends
to the same account within one process are funneled through a per-account lock.
"""

import asyncio
from collections import defaultdict
from collections.abc import Callable

from docvault_core.exceptions import AccountNotFoundError
from docvault_core.metadata_store import MetadataStore
from docvault_core.models import Account


class AccountUpdater:
    """Loads accounts and applies read-modify-write changes one at a time per account."""

    def __init__(self, metadata: MetadataStore) -> None:
        self._metadata = metadata
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, account_id: str) -> Account:
        """Load an account.

        Raises:
            AccountNotFoundError: No account has this id.
        """
        account = await self._metadata.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account not found: {account_id}")
        return account

    async def update(self, account_id: str, change: Callable[[Account], Account]) -> Account:
        """Apply change to the freshly loaded account, persist and return the result."""
        async with self._locks[account_id]:
            account = await self.get(account_id)
            updated = change(account)
            await self._metadata.save_account(updated)
            return updated

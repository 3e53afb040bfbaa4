"""Tests for AccountUpdater."""

import asyncio
from pathlib import Path

import pytest

from docvault_core.accounts import AccountUpdater
from docvault_core.exceptions import AccountNotFoundError
from docvault_core.metadata_store.local import LocalMetadataStore
from docvault_core.models import Account


class TestAccountUpdater:
    @pytest.mark.asyncio
    async def test_get_missing_account(self, accounts):
        with pytest.raises(AccountNotFoundError, match="nobody"):
            await accounts.get("nobody")

    @pytest.mark.asyncio
    async def test_update_persists_change(self, accounts, metadata, owner):
        updated = await accounts.update(owner.id, lambda a: a.model_copy(update={"role": "admin"}))
        assert updated.role == "admin"
        assert (await metadata.get_account(owner.id)).role == "admin"

    @pytest.mark.asyncio
    async def test_update_missing_account(self, accounts):
        with pytest.raises(AccountNotFoundError):
            await accounts.update("nobody", lambda a: a)

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_not_lost(self, tmp_path: Path):
        """Every append survives when updates interleave on a store that yields between read and write."""
        store = LocalMetadataStore(base_path=tmp_path)
        updater = AccountUpdater(store)
        account = Account(username="SallyOwner")
        await store.save_account(account)

        await asyncio.gather(
            *(updater.update(account.id, lambda a, i=i: a.model_copy(update={"documents": (*a.documents, f"doc-{i}")})) for i in range(10))
        )

        stored = await store.get_account(account.id)
        assert sorted(stored.documents) == sorted(f"doc-{i}" for i in range(10))

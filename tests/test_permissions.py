"""Tests for PermissionTableStore and PermissionCache."""

import asyncio
from pathlib import Path

import pytest

from docvault_core.exceptions import VaultValidationError
from docvault_core.metadata_store.local import LocalMetadataStore
from docvault_core.permissions import PermissionCache, PermissionTableStore

OWNER_TABLE = {"owner": {"document": ["read", "share"]}, "notary": {"document": ["sign"]}}


@pytest.fixture
def permissions(metadata) -> PermissionTableStore:
    return PermissionTableStore(metadata)


class TestPermissionTableStore:
    @pytest.mark.asyncio
    async def test_latest_empty_when_nothing_inserted(self, permissions):
        assert await permissions.get_latest() == {}

    @pytest.mark.asyncio
    async def test_insert_then_read_round_trip(self, permissions):
        snapshot = await permissions.insert(OWNER_TABLE)

        assert snapshot.table == OWNER_TABLE
        assert await permissions.get_latest() == OWNER_TABLE
        assert permissions.cache.read() == OWNER_TABLE

    @pytest.mark.asyncio
    async def test_empty_table_is_a_valid_version(self, permissions):
        await permissions.insert(OWNER_TABLE)
        await permissions.insert({})

        assert await permissions.get_latest() == {}
        assert permissions.cache.read() == {}

    @pytest.mark.asyncio
    async def test_second_insert_replaces_not_merges(self, permissions):
        await permissions.insert({"notary": ["read"]})
        assert await permissions.get_latest() == {"notary": ["read"]}

        await permissions.insert({"owner": ["read", "write"]})

        assert await permissions.get_latest() == {"owner": ["read", "write"]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("table", [["owner"], "owner", None])
    async def test_non_mapping_rejected(self, permissions, table):
        with pytest.raises(VaultValidationError):
            await permissions.insert(table)
        assert await permissions.get_latest() == {}

    @pytest.mark.asyncio
    async def test_unserializable_rejected(self, permissions):
        with pytest.raises(VaultValidationError, match="JSON-serializable"):
            await permissions.insert({"owner": {"read"}})

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "table",
        [
            {1: {"document": ["read"]}},
            {"owner": {"document": ("read", "share")}},
            {"owner": {"weight": float("nan")}},
        ],
        ids=["int-key", "tuple-value", "nan"],
    )
    async def test_tables_that_would_change_shape_rejected(self, permissions, table):
        with pytest.raises(VaultValidationError, match="JSON-serializable"):
            await permissions.insert(table)
        assert await permissions.get_latest() == {}

    @pytest.mark.asyncio
    async def test_concurrent_inserts_cache_matches_store(self, tmp_path: Path):
        permissions = PermissionTableStore(LocalMetadataStore(base_path=tmp_path))
        await permissions.cache.init()

        await asyncio.gather(*(permissions.insert({"role": {"version": [str(i)]}}) for i in range(8)))

        assert permissions.cache.read() == await permissions.get_latest()

    @pytest.mark.asyncio
    async def test_catalog(self, permissions):
        await permissions.create_role("owner")
        await permissions.create_role("notary")
        read = await permissions.create_permission("document.read", paired="document.list")

        assert {r.name for r in await permissions.list_roles()} == {"owner", "notary"}
        assert await permissions.list_permissions() == [read]


class TestPermissionCache:
    @pytest.mark.asyncio
    async def test_read_before_init_is_empty(self, permissions):
        assert permissions.cache.initialized is False
        assert permissions.cache.read() == {}

    @pytest.mark.asyncio
    async def test_init_loads_existing_table(self, metadata):
        await PermissionTableStore(metadata).insert(OWNER_TABLE)

        other_process = PermissionTableStore(metadata)
        assert other_process.cache.read() == {}
        await other_process.cache.init()

        assert other_process.cache.initialized is True
        assert other_process.cache.read() == OWNER_TABLE

    @pytest.mark.asyncio
    async def test_read_returns_copy(self, permissions):
        await permissions.insert(OWNER_TABLE)

        table = permissions.cache.read()
        table["owner"]["document"].append("delete")
        table["intruder"] = {}

        assert permissions.cache.read() == OWNER_TABLE

    @pytest.mark.asyncio
    async def test_read_never_touches_store(self):
        calls = 0

        async def load_latest():
            nonlocal calls
            calls += 1
            return {"owner": ["read"]}

        cache = PermissionCache(load_latest)
        await cache.init()
        for _ in range(5):
            cache.read()

        assert calls == 1

    @pytest.mark.asyncio
    async def test_refresh_picks_up_new_version(self):
        versions = iter([{"v": 1}, {"v": 2}])

        async def load_latest():
            return next(versions)

        cache = PermissionCache(load_latest)
        await cache.init()
        assert cache.read() == {"v": 1}
        assert await cache.refresh() == {"v": 2}
        assert cache.read() == {"v": 2}

"""Versioned role-permission table and its in-process cache.

Every table write appends a new immutable snapshot; the most recently appended
snapshot is authoritative. PermissionCache mirrors that snapshot in memory so
authorization checks never wait on the store. insert() refreshes the cache
before it returns.
"""

import asyncio
import copy
import json
from collections.abc import Awaitable, Callable

from docvault_core.exceptions import VaultValidationError
from docvault_core.logging import get_vault_logger
from docvault_core.metadata_store import MetadataStore
from docvault_core.models import Permission, PermissionTable, PermissionTableSnapshot, Role

logger = get_vault_logger(__name__)

_JSON_SCALARS = (str, int, float, bool, type(None))


def _check_exact_json(value: object, path: str = "table") -> None:
    """Reject values that json.dumps would coerce into a different shape."""
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise VaultValidationError(f"Permission table is not JSON-serializable: key {key!r} at {path} is not a string")
            _check_exact_json(item, f"{path}.{key}")
    elif isinstance(value, list):
        for index, item in enumerate(value):
            _check_exact_json(item, f"{path}[{index}]")
    elif not isinstance(value, _JSON_SCALARS):
        raise VaultValidationError(f"Permission table is not JSON-serializable: {type(value).__name__} at {path}")


class PermissionCache:
    """Process-scoped copy of the latest permission table.

    Lifecycle: init() once at startup, refresh() after every table write, read()
    anywhere. Refreshes are serialized so the last refresh to finish also read
    last; readers never wait. Until init() runs, read() returns an empty table.
    """

    def __init__(self, load_latest: Callable[[], Awaitable[PermissionTable]]) -> None:
        self._load_latest = load_latest
        self._table: PermissionTable = {}
        self._initialized = False
        self._refresh_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self) -> PermissionTable:
        """Load the latest table from the store."""
        table = await self.refresh()
        logger.info("Permission cache initialized")
        return table

    async def refresh(self) -> PermissionTable:
        """Re-read the latest table and swap it in."""
        async with self._refresh_lock:
            table = await self._load_latest()
            self._table = table
            self._initialized = True
        logger.debug("Permission cache refreshed")
        return copy.deepcopy(table)

    def read(self) -> PermissionTable:
        """Return the cached table. Never touches the store.

        The result is a copy; mutating it does not affect other readers.
        """
        return copy.deepcopy(self._table)


class PermissionTableStore:
    """Append-only permission table versions plus the role/permission catalog.

    Owns the PermissionCache it keeps up to date; hand ``cache`` to components
    that make authorization decisions.
    """

    def __init__(self, metadata: MetadataStore) -> None:
        self._metadata = metadata
        self.cache = PermissionCache(self.get_latest)

    async def get_latest(self) -> PermissionTable:
        """Most recently inserted table, or {} when no table was ever inserted.

        An empty table means no rules are configured; what that implies for an
        access decision is up to the caller.
        """
        snapshot = await self._metadata.latest_snapshot()
        if snapshot is None:
            return {}
        return snapshot.table

    async def insert(self, table: PermissionTable) -> PermissionTableSnapshot:
        """Append table as the new latest version and refresh the cache.

        Raises:
            VaultValidationError: table is not a mapping that survives a JSON
                round trip unchanged.
            StoreError: The snapshot could not be stored.
        """
        if not isinstance(table, dict):
            raise VaultValidationError(f"Permission table must be a mapping, got {type(table).__name__}")
        _check_exact_json(table)
        try:
            serialized = json.dumps(table, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise VaultValidationError(f"Permission table is not JSON-serializable: {e}") from e

        snapshot = await self._metadata.append_snapshot(serialized)
        await self.cache.refresh()
        logger.info(f"Inserted permission table snapshot {snapshot.id}")
        return snapshot

    async def create_role(self, name: str) -> Role:
        role = Role(name=name)
        await self._metadata.save_role(role)
        return role

    async def list_roles(self) -> list[Role]:
        return await self._metadata.list_roles()

    async def create_permission(self, name: str, paired: str = "") -> Permission:
        permission = Permission(name=name, paired=paired)
        await self._metadata.save_permission(permission)
        return permission

    async def list_permissions(self) -> list[Permission]:
        return await self._metadata.list_permissions()

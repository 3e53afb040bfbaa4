"""ClickHouse-backed metadata store for production use.

Two-table schema: vault_records (every mutable collection, one JSON payload per
row, versioned by ReplacingMergeTree) and permission_table_snapshots (append-only
MergeTree). Record versions and snapshot ordering are assigned by the server at
insert time, so concurrent writers resolve to whichever row landed last.
"""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

import clickhouse_connect
from clickhouse_connect.driver.exceptions import ClickHouseError
from pydantic import BaseModel

from docvault_core.exceptions import StoreError
from docvault_core.logging import get_vault_logger
from docvault_core.models import (
    Account,
    Document,
    DocumentType,
    Permission,
    PermissionTableSnapshot,
    Role,
    VerifiableCredential,
    VerifiablePresentation,
)

logger = get_vault_logger(__name__)

_M = TypeVar("_M", bound=BaseModel)

TABLE_RECORDS = "vault_records"
TABLE_SNAPSHOTS = "permission_table_snapshots"

COLLECTION_DOCUMENTS = "documents"
COLLECTION_ACCOUNTS = "accounts"
COLLECTION_DOCUMENT_TYPES = "document_types"
COLLECTION_ROLES = "roles"
COLLECTION_PERMISSIONS = "permissions"
COLLECTION_CREDENTIALS = "credentials"
COLLECTION_PRESENTATIONS = "presentations"

_DDL_RECORDS = f"""
CREATE TABLE IF NOT EXISTS {TABLE_RECORDS}
(
    collection         LowCardinality(String),
    record_id          String,
    lookup_key         String DEFAULT '',
    payload            String CODEC(ZSTD(3)),
    version            UInt64,
    is_deleted         UInt8 DEFAULT 0,
    INDEX lookup_key_idx lookup_key TYPE bloom_filter GRANULARITY 1
)
ENGINE = ReplacingMergeTree(version, is_deleted)
ORDER BY (collection, record_id)
SETTINGS index_granularity = 8192
"""

_DDL_SNAPSHOTS = f"""
CREATE TABLE IF NOT EXISTS {TABLE_SNAPSHOTS}
(
    snapshot_id        String,
    serialized_table   String CODEC(ZSTD(3)),
    inserted_at        DateTime64(9, 'UTC') DEFAULT now64(9)
)
ENGINE = MergeTree()
ORDER BY (inserted_at, snapshot_id)
"""

_INSERT_RECORD = (
    f"INSERT INTO {TABLE_RECORDS} (collection, record_id, lookup_key, payload, version, is_deleted) "
    "SELECT {collection:String}, {record_id:String}, {lookup_key:String}, {payload:String}, "
    "toUnixTimestamp64Nano(now64(9)), {is_deleted:UInt8}"
)


class ClickHouseMetadataStore:
    """ClickHouse-backed metadata store.

    All sync operations run on a single-thread executor (max_workers=1), so the
    client needs no locking. Async methods dispatch to this executor via
    loop.run_in_executor(). Driver errors surface as StoreError; nothing is
    buffered or retried.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int = 8443,
        database: str = "default",
        username: str = "default",
        password: str = "",
        secure: bool = True,
    ) -> None:
        self._params = {
            "host": host,
            "port": port,
            "database": database,
            "username": username,
            "password": password,
            "secure": secure,
        }
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ch-metadata")
        self._client: Any = None
        self._tables_initialized = False

    async def _run(self, fn: Any, *args: Any) -> Any:
        """Run a sync function on the dedicated executor."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, fn, *args)
        except (ClickHouseError, OSError) as e:
            self._client = None
            self._tables_initialized = False
            raise StoreError(f"ClickHouse metadata store failed: {e}") from e

    # --- Connection management (sync, executor thread only) ---

    def _connect(self) -> None:
        self._client = clickhouse_connect.get_client(  # pyright: ignore[reportUnknownMemberType]
            **self._params,  # pyright: ignore[reportArgumentType]
        )
        logger.info(f"Metadata store connected to ClickHouse at {self._params['host']}:{self._params['port']}")

    def _ensure_tables(self) -> None:
        if self._tables_initialized:
            return
        if self._client is None:
            self._connect()
        self._client.command(_DDL_RECORDS)
        self._client.command(_DDL_SNAPSHOTS)
        self._tables_initialized = True
        logger.info("Metadata store tables verified/created")

    # --- Generic record access (executor thread only) ---

    def _put_sync(self, collection: str, record_id: str, payload: dict[str, Any], lookup_key: str = "") -> None:
        self._ensure_tables()
        self._client.command(
            _INSERT_RECORD,
            parameters={
                "collection": collection,
                "record_id": record_id,
                "lookup_key": lookup_key,
                "payload": json.dumps(payload),
                "is_deleted": 0,
            },
        )

    def _select_sync(self, collection: str, where: str = "", parameters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        self._ensure_tables()
        query = f"SELECT payload FROM {TABLE_RECORDS} FINAL WHERE collection = {{collection:String}}"
        if where:
            query += f" AND {where}"
        query += " ORDER BY record_id"
        result = self._client.query(query, parameters={"collection": collection, **(parameters or {})})
        return [json.loads(_decode(row[0])) for row in result.result_rows]

    def _delete_document_by_key_sync(self, storage_key: str) -> Document | None:
        rows = self._select_sync(COLLECTION_DOCUMENTS, "lookup_key = {lookup_key:String}", {"lookup_key": storage_key})
        if not rows:
            return None
        document = Document.model_validate(rows[0])
        self._client.command(
            _INSERT_RECORD,
            parameters={
                "collection": COLLECTION_DOCUMENTS,
                "record_id": document.id,
                "lookup_key": storage_key,
                "payload": json.dumps(rows[0]),
                "is_deleted": 1,
            },
        )
        return document

    def _append_snapshot_sync(self, snapshot: PermissionTableSnapshot) -> None:
        self._ensure_tables()
        self._client.command(
            f"INSERT INTO {TABLE_SNAPSHOTS} (snapshot_id, serialized_table) SELECT {{snapshot_id:String}}, {{serialized_table:String}}",
            parameters={"snapshot_id": snapshot.id, "serialized_table": snapshot.serialized_table},
        )

    def _latest_snapshot_sync(self) -> PermissionTableSnapshot | None:
        self._ensure_tables()
        result = self._client.query(
            f"SELECT snapshot_id, serialized_table FROM {TABLE_SNAPSHOTS} ORDER BY inserted_at DESC, snapshot_id DESC LIMIT 1"
        )
        if not result.result_rows:
            return None
        row = result.result_rows[0]
        return PermissionTableSnapshot(id=_decode(row[0]), serialized_table=_decode(row[1]))

    async def _put(self, collection: str, record_id: str, payload: dict[str, Any], lookup_key: str = "") -> None:
        await self._run(self._put_sync, collection, record_id, payload, lookup_key)

    async def _select(self, collection: str, model: type[_M], where: str = "", parameters: dict[str, Any] | None = None) -> list[_M]:
        rows = await self._run(self._select_sync, collection, where, parameters)
        return [model.model_validate(row) for row in rows]

    # --- Documents ---

    async def insert_document(self, document: Document) -> None:
        await self._put(COLLECTION_DOCUMENTS, document.id, document.model_dump(mode="json"), document.storage_key)

    async def update_document(self, document: Document) -> None:
        await self._put(COLLECTION_DOCUMENTS, document.id, document.model_dump(mode="json"), document.storage_key)

    async def get_documents(self, document_ids: list[str]) -> dict[str, Document]:
        if not document_ids:
            return {}
        documents = await self._select(COLLECTION_DOCUMENTS, Document, "record_id IN {ids:Array(String)}", {"ids": document_ids})
        return {doc.id: doc for doc in documents}

    async def list_documents(self) -> list[Document]:
        return await self._select(COLLECTION_DOCUMENTS, Document)

    async def find_document_by_key(self, storage_key: str) -> Document | None:
        documents = await self._select(COLLECTION_DOCUMENTS, Document, "lookup_key = {lookup_key:String}", {"lookup_key": storage_key})
        return documents[0] if documents else None

    async def delete_document_by_key(self, storage_key: str) -> Document | None:
        return await self._run(self._delete_document_by_key_sync, storage_key)

    # --- Accounts ---

    async def get_account(self, account_id: str) -> Account | None:
        accounts = await self._select(COLLECTION_ACCOUNTS, Account, "record_id = {id:String}", {"id": account_id})
        return accounts[0] if accounts else None

    async def save_account(self, account: Account) -> None:
        await self._put(COLLECTION_ACCOUNTS, account.id, account.to_storage_dict())

    async def list_accounts(self) -> list[Account]:
        return await self._select(COLLECTION_ACCOUNTS, Account)

    # --- Document types ---

    async def save_document_type(self, document_type: DocumentType) -> None:
        await self._put(COLLECTION_DOCUMENT_TYPES, document_type.id, document_type.model_dump(mode="json"), document_type.name)

    async def find_document_type_by_name(self, name: str) -> DocumentType | None:
        types = await self._select(COLLECTION_DOCUMENT_TYPES, DocumentType, "lookup_key = {name:String}", {"name": name})
        return types[0] if types else None

    async def list_document_types(self) -> list[DocumentType]:
        types = await self._select(COLLECTION_DOCUMENT_TYPES, DocumentType)
        return sorted(types, key=lambda dt: dt.name)

    # --- Permission table snapshots ---

    async def append_snapshot(self, serialized_table: str) -> PermissionTableSnapshot:
        snapshot = PermissionTableSnapshot(serialized_table=serialized_table)
        await self._run(self._append_snapshot_sync, snapshot)
        return snapshot

    async def latest_snapshot(self) -> PermissionTableSnapshot | None:
        return await self._run(self._latest_snapshot_sync)

    # --- Catalog ---

    async def save_role(self, role: Role) -> None:
        await self._put(COLLECTION_ROLES, role.id, role.model_dump(mode="json"), role.name)

    async def list_roles(self) -> list[Role]:
        roles = await self._select(COLLECTION_ROLES, Role)
        return sorted(roles, key=lambda r: r.name)

    async def save_permission(self, permission: Permission) -> None:
        await self._put(COLLECTION_PERMISSIONS, permission.id, permission.model_dump(mode="json"), permission.name)

    async def list_permissions(self) -> list[Permission]:
        permissions = await self._select(COLLECTION_PERMISSIONS, Permission)
        return sorted(permissions, key=lambda p: p.name)

    # --- Credentials ---

    async def save_credential(self, credential: VerifiableCredential) -> None:
        await self._put(COLLECTION_CREDENTIALS, credential.id, credential.model_dump(mode="json"), credential.document_id)

    async def list_credentials(self, document_id: str) -> list[VerifiableCredential]:
        return await self._select(COLLECTION_CREDENTIALS, VerifiableCredential, "lookup_key = {doc:String}", {"doc": document_id})

    async def save_presentation(self, presentation: VerifiablePresentation) -> None:
        await self._put(COLLECTION_PRESENTATIONS, presentation.id, presentation.model_dump(mode="json"), presentation.document_id)

    async def list_presentations(self, document_id: str) -> list[VerifiablePresentation]:
        return await self._select(COLLECTION_PRESENTATIONS, VerifiablePresentation, "lookup_key = {doc:String}", {"doc": document_id})

    def shutdown(self) -> None:
        """Release the executor and close the client."""
        self._executor.shutdown(wait=True)
        if self._client is not None:
            self._client.close()
            self._client = None


def _decode(value: bytes | str) -> str:
    """Decode bytes to str if needed (strings_as_bytes=True mode)."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value

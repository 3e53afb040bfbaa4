"""Local filesystem metadata store for CLI/debug mode.

Layout:
    {base_path}/{collection}/{record_id}.json   <- one JSON file per record
    {base_path}/permission_tables.jsonl         <- append-only snapshot log
"""

import asyncio
import json
import os
import threading
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from docvault_core.exceptions import StoreError, VaultValidationError
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

COLLECTION_DOCUMENTS = "documents"
COLLECTION_ACCOUNTS = "accounts"
COLLECTION_DOCUMENT_TYPES = "document_types"
COLLECTION_ROLES = "roles"
COLLECTION_PERMISSIONS = "permissions"
COLLECTION_CREDENTIALS = "credentials"
COLLECTION_PRESENTATIONS = "presentations"
SNAPSHOT_LOG = "permission_tables.jsonl"


class LocalMetadataStore:
    """Filesystem-backed metadata store for local development and debugging.

    Records are browsable JSON files written via a temporary file and rename.
    Snapshots are appended as lines to a single log, so file order is insertion
    order. A process-wide lock serializes writes and read-modify-write deletes.
    """

    def __init__(self, base_path: Path | None = None) -> None:
        self._base_path = base_path or Path.cwd()
        self._lock = threading.Lock()

    @property
    def base_path(self) -> Path:
        """Root directory for all stored records."""
        return self._base_path

    async def _run(self, fn: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except OSError as e:
            raise StoreError(f"Local metadata store failed: {e}") from e

    # --- Documents ---

    async def insert_document(self, document: Document) -> None:
        await self._run(self._write_record, COLLECTION_DOCUMENTS, document.id, document.model_dump(mode="json"))

    async def update_document(self, document: Document) -> None:
        await self._run(self._write_record, COLLECTION_DOCUMENTS, document.id, document.model_dump(mode="json"))

    async def get_documents(self, document_ids: list[str]) -> dict[str, Document]:
        def _load() -> dict[str, Document]:
            result: dict[str, Document] = {}
            for doc_id in document_ids:
                data = self._read_record(COLLECTION_DOCUMENTS, doc_id)
                if data is not None:
                    result[doc_id] = Document.model_validate(data)
            return result

        return await self._run(_load)

    async def list_documents(self) -> list[Document]:
        return await self._run(self._load_all, COLLECTION_DOCUMENTS, Document)

    async def find_document_by_key(self, storage_key: str) -> Document | None:
        documents: list[Document] = await self.list_documents()
        return next((doc for doc in documents if doc.storage_key == storage_key), None)

    async def delete_document_by_key(self, storage_key: str) -> Document | None:
        return await self._run(self._delete_document_by_key_sync, storage_key)

    # --- Accounts ---

    async def get_account(self, account_id: str) -> Account | None:
        data = await self._run(self._read_record, COLLECTION_ACCOUNTS, account_id)
        return Account.model_validate(data) if data is not None else None

    async def save_account(self, account: Account) -> None:
        await self._run(self._write_record, COLLECTION_ACCOUNTS, account.id, account.to_storage_dict())

    async def list_accounts(self) -> list[Account]:
        return await self._run(self._load_all, COLLECTION_ACCOUNTS, Account)

    # --- Document types ---

    async def save_document_type(self, document_type: DocumentType) -> None:
        await self._run(self._write_record, COLLECTION_DOCUMENT_TYPES, document_type.id, document_type.model_dump(mode="json"))

    async def find_document_type_by_name(self, name: str) -> DocumentType | None:
        types: list[DocumentType] = await self.list_document_types()
        return next((dt for dt in types if dt.name == name), None)

    async def list_document_types(self) -> list[DocumentType]:
        types: list[DocumentType] = await self._run(self._load_all, COLLECTION_DOCUMENT_TYPES, DocumentType)
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
        await self._run(self._write_record, COLLECTION_ROLES, role.id, role.model_dump(mode="json"))

    async def list_roles(self) -> list[Role]:
        roles: list[Role] = await self._run(self._load_all, COLLECTION_ROLES, Role)
        return sorted(roles, key=lambda r: r.name)

    async def save_permission(self, permission: Permission) -> None:
        await self._run(self._write_record, COLLECTION_PERMISSIONS, permission.id, permission.model_dump(mode="json"))

    async def list_permissions(self) -> list[Permission]:
        permissions: list[Permission] = await self._run(self._load_all, COLLECTION_PERMISSIONS, Permission)
        return sorted(permissions, key=lambda p: p.name)

    # --- Credentials ---

    async def save_credential(self, credential: VerifiableCredential) -> None:
        await self._run(self._write_record, COLLECTION_CREDENTIALS, credential.id, credential.model_dump(mode="json"))

    async def list_credentials(self, document_id: str) -> list[VerifiableCredential]:
        records: list[VerifiableCredential] = await self._run(self._load_all, COLLECTION_CREDENTIALS, VerifiableCredential)
        return [vc for vc in records if vc.document_id == document_id]

    async def save_presentation(self, presentation: VerifiablePresentation) -> None:
        await self._run(self._write_record, COLLECTION_PRESENTATIONS, presentation.id, presentation.model_dump(mode="json"))

    async def list_presentations(self, document_id: str) -> list[VerifiablePresentation]:
        records: list[VerifiablePresentation] = await self._run(self._load_all, COLLECTION_PRESENTATIONS, VerifiablePresentation)
        return [vp for vp in records if vp.document_id == document_id]

    def shutdown(self) -> None:
        """Nothing to release."""

    # --- Sync implementation (called via asyncio.to_thread) ---

    @staticmethod
    def _valid_id(record_id: str) -> bool:
        return bool(record_id) and not any(part in record_id for part in ("/", "\\", ".."))

    def _record_path(self, collection: str, record_id: str) -> Path:
        if not self._valid_id(record_id):
            raise VaultValidationError(f"Invalid record id: {record_id!r}")
        return self._base_path / collection / f"{record_id}.json"

    def _write_record(self, collection: str, record_id: str, data: dict[str, Any]) -> None:
        path = self._record_path(collection, record_id)
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp, path)

    def _read_record(self, collection: str, record_id: str) -> dict[str, Any] | None:
        # No file can exist under an id that is not a plain filename.
        if not self._valid_id(record_id):
            return None
        path = self._record_path(collection, record_id)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

    def _load_all(self, collection: str, model: type[_M]) -> list[_M]:
        directory = self._base_path / collection
        if not directory.is_dir():
            return []
        records: list[_M] = []
        for path in sorted(directory.glob("*.json")):
            try:
                records.append(model.model_validate_json(path.read_text(encoding="utf-8")))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable record {path}: {e}")
        return records

    def _delete_document_by_key_sync(self, storage_key: str) -> Document | None:
        with self._lock:
            for document in self._load_all(COLLECTION_DOCUMENTS, Document):
                if document.storage_key == storage_key:
                    self._record_path(COLLECTION_DOCUMENTS, document.id).unlink(missing_ok=True)
                    return document
        return None

    def _append_snapshot_sync(self, snapshot: PermissionTableSnapshot) -> None:
        path = self._base_path / SNAPSHOT_LOG
        line = snapshot.model_dump_json() + "\n"
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())

    def _latest_snapshot_sync(self) -> PermissionTableSnapshot | None:
        path = self._base_path / SNAPSHOT_LOG
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return None
        for line in reversed(lines):
            if line.strip():
                return PermissionTableSnapshot.model_validate_json(line)
        return None

"""Metadata store protocol.

Defines the MetadataStore protocol that all metadata backends must implement:
document records, accounts, document types, permission-table snapshots, the
role/permission catalog and issued credential records.
"""

from typing import Protocol, runtime_checkable

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


@runtime_checkable
class MetadataStore(Protocol):
    """Protocol for metadata storage backends.

    Implementations: ClickHouseMetadataStore (production), LocalMetadataStore (CLI/debug),
    MemoryMetadataStore (testing). Backend failures raise StoreError.
    """

    async def insert_document(self, document: Document) -> None:
        """Persist a new document record."""
        ...

    async def update_document(self, document: Document) -> None:
        """Replace the stored record with the same id."""
        ...

    async def get_documents(self, document_ids: list[str]) -> dict[str, Document]:
        """Batch-load documents by id. Missing ids are omitted."""
        ...

    async def list_documents(self) -> list[Document]:
        """Load every document record."""
        ...

    async def find_document_by_key(self, storage_key: str) -> Document | None:
        """Look up the record stored under a storage key."""
        ...

    async def delete_document_by_key(self, storage_key: str) -> Document | None:
        """Remove the record with this storage key and return it, or None if none matched."""
        ...

    async def get_account(self, account_id: str) -> Account | None:
        """Load one account by id."""
        ...

    async def save_account(self, account: Account) -> None:
        """Insert or replace an account."""
        ...

    async def list_accounts(self) -> list[Account]:
        """Load every account."""
        ...

    async def save_document_type(self, document_type: DocumentType) -> None:
        """Insert or replace a document type."""
        ...

    async def find_document_type_by_name(self, name: str) -> DocumentType | None:
        """Look up a document type by exact name."""
        ...

    async def list_document_types(self) -> list[DocumentType]:
        """Load every document type."""
        ...

    async def append_snapshot(self, serialized_table: str) -> PermissionTableSnapshot:
        """Append a permission-table snapshot. The store's insertion order defines recency."""
        ...

    async def latest_snapshot(self) -> PermissionTableSnapshot | None:
        """Return the most recently appended snapshot, or None when there is none."""
        ...

    async def save_role(self, role: Role) -> None:
        """Insert or replace a catalog role."""
        ...

    async def list_roles(self) -> list[Role]:
        """Load every catalog role."""
        ...

    async def save_permission(self, permission: Permission) -> None:
        """Insert or replace a catalog permission."""
        ...

    async def list_permissions(self) -> list[Permission]:
        """Load every catalog permission."""
        ...

    async def save_credential(self, credential: VerifiableCredential) -> None:
        """Persist an issued verifiable credential record."""
        ...

    async def list_credentials(self, document_id: str) -> list[VerifiableCredential]:
        """Load credential records bound to a document."""
        ...

    async def save_presentation(self, presentation: VerifiablePresentation) -> None:
        """Persist an issued verifiable presentation record."""
        ...

    async def list_presentations(self, document_id: str) -> list[VerifiablePresentation]:
        """Load presentation records bound to a document."""
        ...

    def shutdown(self) -> None:
        """Release connections and background resources."""
        ...

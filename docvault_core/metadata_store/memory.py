"""In-memory metadata store for testing.

Simple dict-based storage implementing the full MetadataStore protocol.
Not for production use; all data is lost when the process exits.
"""

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


class MemoryMetadataStore:
    """Dict-based metadata store for unit tests.

    Models are frozen, so records are stored and returned without copying.
    Snapshots live in a list whose order is the insertion order.
    """

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._accounts: dict[str, Account] = {}
        self._document_types: dict[str, DocumentType] = {}
        self._snapshots: list[PermissionTableSnapshot] = []
        self._roles: dict[str, Role] = {}
        self._permissions: dict[str, Permission] = {}
        self._credentials: dict[str, VerifiableCredential] = {}
        self._presentations: dict[str, VerifiablePresentation] = {}

    async def insert_document(self, document: Document) -> None:
        self._documents[document.id] = document

    async def update_document(self, document: Document) -> None:
        self._documents[document.id] = document

    async def get_documents(self, document_ids: list[str]) -> dict[str, Document]:
        return {doc_id: self._documents[doc_id] for doc_id in document_ids if doc_id in self._documents}

    async def list_documents(self) -> list[Document]:
        return list(self._documents.values())

    async def find_document_by_key(self, storage_key: str) -> Document | None:
        return next((doc for doc in self._documents.values() if doc.storage_key == storage_key), None)

    async def delete_document_by_key(self, storage_key: str) -> Document | None:
        for doc_id, doc in self._documents.items():
            if doc.storage_key == storage_key:
                return self._documents.pop(doc_id)
        return None

    async def get_account(self, account_id: str) -> Account | None:
        return self._accounts.get(account_id)

    async def save_account(self, account: Account) -> None:
        self._accounts[account.id] = account

    async def list_accounts(self) -> list[Account]:
        return list(self._accounts.values())

    async def save_document_type(self, document_type: DocumentType) -> None:
        self._document_types[document_type.id] = document_type

    async def find_document_type_by_name(self, name: str) -> DocumentType | None:
        return next((dt for dt in self._document_types.values() if dt.name == name), None)

    async def list_document_types(self) -> list[DocumentType]:
        return list(self._document_types.values())

    async def append_snapshot(self, serialized_table: str) -> PermissionTableSnapshot:
        snapshot = PermissionTableSnapshot(serialized_table=serialized_table)
        self._snapshots.append(snapshot)
        return snapshot

    async def latest_snapshot(self) -> PermissionTableSnapshot | None:
        return self._snapshots[-1] if self._snapshots else None

    async def save_role(self, role: Role) -> None:
        self._roles[role.id] = role

    async def list_roles(self) -> list[Role]:
        return list(self._roles.values())

    async def save_permission(self, permission: Permission) -> None:
        self._permissions[permission.id] = permission

    async def list_permissions(self) -> list[Permission]:
        return list(self._permissions.values())

    async def save_credential(self, credential: VerifiableCredential) -> None:
        self._credentials[credential.id] = credential

    async def list_credentials(self, document_id: str) -> list[VerifiableCredential]:
        return [vc for vc in self._credentials.values() if vc.document_id == document_id]

    async def save_presentation(self, presentation: VerifiablePresentation) -> None:
        self._presentations[presentation.id] = presentation

    async def list_presentations(self, document_id: str) -> list[VerifiablePresentation]:
        return [vp for vp in self._presentations.values() if vp.document_id == document_id]

    def shutdown(self) -> None:
        """Nothing to release."""

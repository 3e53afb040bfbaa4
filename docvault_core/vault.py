"""Composition root wiring storage, metadata, verification and permissions together."""

import httpx

from docvault_core.accounts import AccountUpdater
from docvault_core.logging import get_vault_logger
from docvault_core.metadata_store import MetadataStore, create_metadata_store
from docvault_core.models import Account, DocumentField, DocumentType
from docvault_core.permissions import PermissionCache, PermissionTableStore
from docvault_core.registry import DocumentRegistry
from docvault_core.settings import Settings
from docvault_core.sharing import ShareRequestWorkflow
from docvault_core.storage import Storage
from docvault_core.verification import HashVerifier

logger = get_vault_logger(__name__)


class DocumentVault:
    """One process's view of the vault.

    Components share a single MetadataStore and AccountUpdater. Call start()
    before serving authorization checks so the permission cache holds the
    latest stored table.

    Example:
        >>> vault = DocumentVault.from_settings(settings)
        >>> await vault.start()
        >>> result = await vault.registry.upload(uploader_id, owner_id, data, FileMetadata(original_name="id.png"), "Passport")
        >>> vault.permission_cache.read()
    """

    def __init__(self, storage: Storage, metadata: MetadataStore, verifier: HashVerifier) -> None:
        self.storage = storage
        self.metadata = metadata
        self.accounts = AccountUpdater(metadata)
        self.registry = DocumentRegistry(storage, metadata, verifier, self.accounts)
        self.sharing = ShareRequestWorkflow(metadata, self.accounts)
        self.permissions = PermissionTableStore(metadata)

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> "DocumentVault":
        """Build a vault from configuration. ``transport`` overrides the retrieval HTTP transport."""
        return cls(
            storage=Storage.from_uri(settings.blob_storage_uri),
            metadata=create_metadata_store(settings),
            verifier=HashVerifier.from_settings(settings, transport=transport),
        )

    @property
    def permission_cache(self) -> PermissionCache:
        return self.permissions.cache

    async def start(self) -> None:
        """Load the latest permission table into the cache."""
        await self.permission_cache.init()
        logger.info(f"Document vault started ({self.storage.scheme} blob storage, {type(self.metadata).__name__})")

    def shutdown(self) -> None:
        self.metadata.shutdown()

    async def get_account(self, account_id: str) -> Account:
        return await self.accounts.get(account_id)

    async def create_document_type(self, name: str, fields: list[DocumentField] | None = None) -> DocumentType:
        """Register a document type. Names are expected to be unique but this is not enforced."""
        document_type = DocumentType(name=name, fields=tuple(fields or ()))
        await self.metadata.save_document_type(document_type)
        return document_type

    async def list_document_types(self) -> list[DocumentType]:
        return await self.metadata.list_document_types()

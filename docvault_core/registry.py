"""Document registry: upload, listing, retrieval and deletion of stored documents.

Upload is two-phase. The blob and its metadata record are stored first, then
the content hash is computed through the retrieval path. A failed hash leaves
the document stored but unverified, reported via UploadResult.

Deletion removes the blob before the metadata record. The two steps are not
atomic: if the record cannot be removed after the blob is gone, the record is
orphaned and logged; find_orphans()/reconcile_orphans() clean these up.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from pathlib import PurePosixPath
from typing import Any

from docvault_core.accounts import AccountUpdater
from docvault_core.exceptions import (
    BlobNotFoundError,
    DocumentNotFoundError,
    InvalidStorageKeyError,
    RetrievalError,
    StoreError,
    UnknownDocumentTypeError,
)
from docvault_core.logging import get_vault_logger
from docvault_core.metadata_store import MetadataStore
from docvault_core.models import (
    NOT_FOUND,
    Document,
    DocumentType,
    FileMetadata,
    HashStatus,
    NotFound,
    UploadResult,
    VerifiableCredential,
    VerifiablePresentation,
    new_id,
)
from docvault_core.storage import ByteSource, Storage
from docvault_core.verification import HashVerifier

logger = get_vault_logger(__name__)


def storage_key_for(original_name: str) -> str:
    """Derive the storage key from an uploaded file's original name.

    The key is the bare filename. DocumentRegistry.upload() falls back to a
    variant of it when the key is already taken.

    Raises:
        InvalidStorageKeyError: The name has no usable filename component.
    """
    key = PurePosixPath(original_name.replace("\\", "/")).name.strip()
    if not key or key in (".", ".."):
        raise InvalidStorageKeyError(f"Cannot derive a storage key from filename {original_name!r}")
    return key


class DocumentRegistry:
    """Document metadata and blob lifecycle on top of Storage and a MetadataStore."""

    def __init__(
        self,
        storage: Storage,
        metadata: MetadataStore,
        verifier: HashVerifier,
        accounts: AccountUpdater | None = None,
    ) -> None:
        self._storage = storage
        self._metadata = metadata
        self._verifier = verifier
        self._accounts = accounts or AccountUpdater(metadata)
        self._key_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def upload(
        self,
        uploaded_by: str,
        recipient_account_id: str,
        content: ByteSource,
        file_metadata: FileMetadata,
        document_type: DocumentType | str,
    ) -> UploadResult:
        """Store a document for recipient_account_id on behalf of uploaded_by.

        document_type is either a DocumentType or a registered type name.

        Raises:
            AccountNotFoundError: The recipient account does not exist.
            UnknownDocumentTypeError: The type name is not registered.
            InvalidStorageKeyError: No storage key can be derived from the filename.
            StoreError: Blob or metadata storage failed.
        """
        await self._accounts.get(recipient_account_id)
        doc_type = await self._resolve_document_type(document_type)
        base_key = storage_key_for(file_metadata.original_name)
        document_id = new_id()

        async with self._key_locks[base_key]:
            storage_key = await self._free_storage_key(base_key, document_id)
            await self._storage.put(storage_key, content)
        document = Document(
            id=document_id,
            name=file_metadata.original_name,
            storage_key=storage_key,
            uploaded_by=uploaded_by,
            document_type_id=doc_type.id,
        )
        await self._metadata.insert_document(document)

        result = await self.verify(document)

        await self._accounts.update(
            recipient_account_id,
            lambda account: account.model_copy(update={"documents": (*account.documents, document.id)}),
        )
        logger.info(f"Uploaded '{storage_key}' for account {recipient_account_id} ({result.status})")
        return result

    async def verify(self, document: Document) -> UploadResult:
        """Hash the document through the retrieval path and record the digest.

        Safe to call again for a document left unverified by upload(). Only the
        stored record's content_hash changes; other fields are reloaded first.

        Raises:
            DocumentNotFoundError: The record was deleted in the meantime.
        """
        try:
            content_hash = await self._verifier.compute_digest(document.storage_key)
        except RetrievalError as e:
            logger.warning(f"Hash verification failed for '{document.storage_key}', document left unverified: {e}")
            return UploadResult(document=document, status=HashStatus.UNVERIFIED, failure=str(e))

        verified = await self._set_fields(document, content_hash=content_hash)
        return UploadResult(document=verified, status=HashStatus.VERIFIED)

    async def list_documents(self, account_id: str) -> list[Document]:
        """Documents referenced by the account, in the account's stored order.

        Raises:
            AccountNotFoundError: The account does not exist.
        """
        account = await self._accounts.get(account_id)
        by_id = await self._metadata.get_documents(list(account.documents))
        return [by_id[doc_id] for doc_id in account.documents if doc_id in by_id]

    async def retrieve(self, storage_key: str) -> AsyncIterator[bytes] | NotFound:
        """Open the stored blob for streaming, or return NOT_FOUND when absent."""
        try:
            return await self._storage.get(storage_key)
        except BlobNotFoundError:
            return NOT_FOUND

    async def delete(self, storage_key: str) -> Document | NotFound | None:
        """Delete the blob, then its metadata record.

        Returns:
            The removed record; None when the blob was deleted but no record
            matched; NOT_FOUND when neither a blob nor a record existed.

        Raises:
            StoreError: A backing store failed. If this happens after the blob
                was removed, the metadata record is left orphaned.
        """
        try:
            await self._storage.delete(storage_key)
            blob_deleted = True
        except BlobNotFoundError:
            blob_deleted = False

        try:
            document = await self._metadata.delete_document_by_key(storage_key)
        except StoreError:
            if blob_deleted:
                logger.error(f"Blob '{storage_key}' was deleted but its metadata record could not be removed; record is orphaned")
            raise

        if not blob_deleted:
            if document is None:
                return NOT_FOUND
            logger.warning(f"Removed metadata for '{storage_key}' whose blob was already missing")
        return document

    async def attach_credential(
        self,
        document: Document,
        token: str,
        verified_payload: dict[str, Any],
        issuer: str,
    ) -> VerifiableCredential:
        """Record an issued credential and set the document's credential token.

        Raises:
            DocumentNotFoundError: The document record no longer exists.
        """
        await self._current(document)
        credential = VerifiableCredential(token=token, verified_payload=verified_payload, issuer=issuer, document_id=document.id)
        await self._metadata.save_credential(credential)
        await self._set_fields(document, credential_token=token)
        return credential

    async def attach_presentation(
        self,
        document: Document,
        token: str,
        verified_payload: dict[str, Any],
        issuer: str,
    ) -> VerifiablePresentation:
        """Record an issued presentation and set the document's presentation token.

        Raises:
            DocumentNotFoundError: The document record no longer exists.
        """
        await self._current(document)
        presentation = VerifiablePresentation(token=token, verified_payload=verified_payload, issuer=issuer, document_id=document.id)
        await self._metadata.save_presentation(presentation)
        await self._set_fields(document, presentation_token=token)
        return presentation

    async def find_orphans(self) -> list[Document]:
        """Document records whose blob no longer exists."""
        documents = await self._metadata.list_documents()
        stored = {item.key for item in await self._storage.list()}
        return [doc for doc in documents if doc.storage_key not in stored]

    async def reconcile_orphans(self) -> list[Document]:
        """Remove orphaned document records and return them."""
        removed: list[Document] = []
        for orphan in await self.find_orphans():
            document = await self._metadata.delete_document_by_key(orphan.storage_key)
            if document is not None:
                removed.append(document)
        if removed:
            logger.info(f"Removed {len(removed)} orphaned document record(s)")
        return removed

    async def _free_storage_key(self, base_key: str, document_id: str) -> str:
        if not await self._storage.exists(base_key) and await self._metadata.find_document_by_key(base_key) is None:
            return base_key
        path = PurePosixPath(base_key)
        key = f"{path.stem}-{document_id[:8]}{path.suffix}"
        logger.info(f"Storage key '{base_key}' is taken, storing as '{key}'")
        return key

    async def _current(self, document: Document) -> Document:
        current = (await self._metadata.get_documents([document.id])).get(document.id)
        if current is None:
            raise DocumentNotFoundError(f"Document not found: {document.id}")
        return current

    async def _set_fields(self, document: Document, **changes: Any) -> Document:
        current = await self._current(document)
        updated = current.model_copy(update=changes)
        await self._metadata.update_document(updated)
        return updated

    async def _resolve_document_type(self, document_type: DocumentType | str) -> DocumentType:
        if isinstance(document_type, DocumentType):
            return document_type
        resolved = await self._metadata.find_document_type_by_name(document_type)
        if resolved is None:
            raise UnknownDocumentTypeError(f"Unknown document type: {document_type!r}")
        return resolved

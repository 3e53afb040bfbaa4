"""Document Vault Core - identity-linked document storage for a credentialing platform.

@public

Document Vault Core stores uploaded identity documents, verifies their content
hash through the same retrieval path consumers use, records cross-account share
requests and keeps a versioned role-permission table mirrored in an in-process
cache for authorization checks. All I/O operations are async.

Core Capabilities:
    - **Blob Storage**: Streamed put/get/delete on local disk or Google Cloud Storage
    - **Hash Verification**: MD5 digest of the content as served over HTTP
    - **Document Registry**: Upload, list, retrieve, delete, credential attachment
    - **Share Requests**: Append-only record of access requests per account
    - **Permissions**: Append-only permission table snapshots with a cached latest view

Quick Start:
    >>> from docvault_core import DocumentVault, FileMetadata, settings
    >>>
    >>> vault = DocumentVault.from_settings(settings)
    >>> await vault.start()
    >>> result = await vault.registry.upload(
    ...     uploaded_by=caseworker.id,
    ...     recipient_account_id=owner.id,
    ...     content=png_bytes,
    ...     file_metadata=FileMetadata(original_name="license.png"),
    ...     document_type="Driver's License",
    ... )
    >>> result.verified

Environment Variables:
    - BLOB_STORAGE_URI: Blob storage location
    - CLICKHOUSE_HOST: ClickHouse metadata backend (local JSON files when unset)
    - RETRIEVAL_BASE_URL: Endpoint serving stored documents for hash verification
"""

from .exceptions import (
    AccountNotFoundError,
    BlobNotFoundError,
    DocumentNotFoundError,
    InvalidStorageKeyError,
    NotFoundError,
    RetrievalError,
    StoreError,
    UnknownDocumentTypeError,
    VaultError,
    VaultValidationError,
)
from .logging import get_vault_logger, setup_logging
from .metadata_store import MemoryMetadataStore, MetadataStore, create_metadata_store
from .models import (
    NOT_FOUND,
    Account,
    Document,
    DocumentField,
    DocumentType,
    FileMetadata,
    HashStatus,
    NotFound,
    Permission,
    PermissionTable,
    PermissionTableSnapshot,
    Role,
    ShareRequest,
    UploadResult,
    VerifiableCredential,
    VerifiablePresentation,
)
from .permissions import PermissionCache, PermissionTableStore
from .registry import DocumentRegistry, storage_key_for
from .settings import Settings, settings
from .sharing import ShareRequestWorkflow
from .storage import ObjectInfo, Storage
from .vault import DocumentVault
from .verification import HashVerifier, retrieval_url_builder

__version__ = "0.1.0"

__all__ = [
    # Config/Settings
    "Settings",
    "settings",
    # Logging
    "get_vault_logger",
    "setup_logging",
    # Errors
    "VaultError",
    "NotFoundError",
    "BlobNotFoundError",
    "AccountNotFoundError",
    "DocumentNotFoundError",
    "RetrievalError",
    "VaultValidationError",
    "UnknownDocumentTypeError",
    "InvalidStorageKeyError",
    "StoreError",
    # Models
    "NOT_FOUND",
    "NotFound",
    "Account",
    "Document",
    "DocumentField",
    "DocumentType",
    "FileMetadata",
    "HashStatus",
    "UploadResult",
    "ShareRequest",
    "Permission",
    "PermissionTable",
    "PermissionTableSnapshot",
    "Role",
    "VerifiableCredential",
    "VerifiablePresentation",
    # Components
    "Storage",
    "ObjectInfo",
    "MetadataStore",
    "MemoryMetadataStore",
    "create_metadata_store",
    "HashVerifier",
    "retrieval_url_builder",
    "DocumentRegistry",
    "storage_key_for",
    "ShareRequestWorkflow",
    "PermissionCache",
    "PermissionTableStore",
    "DocumentVault",
]

"""Exception hierarchy for Document Vault Core.

All exceptions inherit from VaultError, providing a consistent error handling interface.
Missing blobs on retrieve/delete are reported as a NotFound value, not raised; see models.NotFound.
"""


class VaultError(Exception):
    """Base exception for all Document Vault Core errors."""


class NotFoundError(VaultError):
    """Raised when a blob or metadata record does not exist."""


class BlobNotFoundError(NotFoundError):
    """Raised when no blob is stored under the requested key."""


class AccountNotFoundError(NotFoundError):
    """Raised when an account id does not resolve to a stored account."""


class DocumentNotFoundError(NotFoundError):
    """Raised when a document record no longer exists."""


class RetrievalError(VaultError):
    """Raised when content could not be fetched through the retrieval URL for hashing."""


class VaultValidationError(VaultError):
    """Raised when caller input is malformed."""


class UnknownDocumentTypeError(VaultValidationError):
    """Raised when a document type name is not registered."""


class InvalidStorageKeyError(VaultValidationError):
    """Raised when a storage key cannot be derived from a filename."""


class StoreError(VaultError):
    """Raised when a durable backing store fails. Never retried by this package."""

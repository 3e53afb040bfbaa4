"""Share requests: one account asking to see another account's documents of a type.

Requests are only recorded. Nothing here grants access, deduplicates requests
or removes them once recorded.
"""

from docvault_core.accounts import AccountUpdater
from docvault_core.exceptions import UnknownDocumentTypeError
from docvault_core.logging import get_vault_logger
from docvault_core.metadata_store import MetadataStore
from docvault_core.models import Account, ShareRequest

logger = get_vault_logger(__name__)


class ShareRequestWorkflow:
    """Appends share requests to the target account's pending list."""

    def __init__(self, metadata: MetadataStore, accounts: AccountUpdater | None = None) -> None:
        self._metadata = metadata
        self._accounts = accounts or AccountUpdater(metadata)

    async def request_share(self, requesting_account_id: str, target_account_id: str, document_type_name: str) -> Account:
        """Record that requesting_account_id wants target_account_id's documents of a type.

        Returns:
            The updated target account.

        Raises:
            AccountNotFoundError: Either account does not exist.
            UnknownDocumentTypeError: The type name is not registered.
        """
        await self._accounts.get(requesting_account_id)
        document_type = await self._metadata.find_document_type_by_name(document_type_name)
        if document_type is None:
            raise UnknownDocumentTypeError(f"Unknown document type: {document_type_name!r}")

        request = ShareRequest(requesting_account_id=requesting_account_id, document_type_id=document_type.id)
        account = await self._accounts.update(
            target_account_id,
            lambda account: account.model_copy(update={"share_requests": (*account.share_requests, request)}),
        )
        logger.info(f"Account {requesting_account_id} requested '{document_type_name}' documents of account {target_account_id}")
        return account

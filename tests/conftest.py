"""Common test fixtures for the document vault."""

from pathlib import Path

import httpx
import pytest

from docvault_core.accounts import AccountUpdater
from docvault_core.metadata_store import MemoryMetadataStore
from docvault_core.models import Account, DocumentField, DocumentType
from docvault_core.registry import DocumentRegistry
from docvault_core.storage import Storage
from docvault_core.verification import HashVerifier, retrieval_url_builder

RETRIEVAL_BASE_URL = "http://vault.test/api/documents/"
RETRIEVAL_PREFIX = "/api/documents/"


def serve_blobs(root: Path) -> httpx.MockTransport:
    """Transport that answers retrieval URLs with the blob files under root."""

    def handler(request: httpx.Request) -> httpx.Response:
        key = request.url.path.removeprefix(RETRIEVAL_PREFIX)
        path = root / key
        if not path.is_file():
            return httpx.Response(404, json={"error": "No file exists"})
        return httpx.Response(200, content=path.read_bytes())

    return httpx.MockTransport(handler)


@pytest.fixture
def blob_root(tmp_path: Path) -> Path:
    root = tmp_path / "blobs"
    root.mkdir()
    return root


@pytest.fixture
def storage(blob_root: Path) -> Storage:
    return Storage.from_uri(str(blob_root))


@pytest.fixture
def metadata() -> MemoryMetadataStore:
    return MemoryMetadataStore()


@pytest.fixture
def blob_transport(blob_root: Path) -> httpx.MockTransport:
    return serve_blobs(blob_root)


@pytest.fixture
def verifier(blob_transport: httpx.MockTransport) -> HashVerifier:
    return HashVerifier(retrieval_url_builder(RETRIEVAL_BASE_URL), timeout=5.0, transport=blob_transport)


@pytest.fixture
def accounts(metadata: MemoryMetadataStore) -> AccountUpdater:
    return AccountUpdater(metadata)


@pytest.fixture
def registry(storage: Storage, metadata: MemoryMetadataStore, verifier: HashVerifier, accounts: AccountUpdater) -> DocumentRegistry:
    return DocumentRegistry(storage, metadata, verifier, accounts)


@pytest.fixture
async def owner(metadata: MemoryMetadataStore) -> Account:
    account = Account(
        username="SallyOwner",
        role="owner",
        did_address="0x6efedeaec20e79071251fffa655F1bdDCa65c027",
        did_private_key="owner-private-key",
    )
    await metadata.save_account(account)
    return account


@pytest.fixture
async def caseworker(metadata: MemoryMetadataStore) -> Account:
    account = Account(username="BillyCaseWorker", role="notary", did_address="0x2a6F1D5083fb19b9f2C653B598abCb5705eD0439")
    await metadata.save_account(account)
    return account


@pytest.fixture
async def drivers_license(metadata: MemoryMetadataStore) -> DocumentType:
    document_type = DocumentType(
        name="Driver's License",
        fields=(DocumentField(field_name="name", required=True), DocumentField(field_name="dateofbirth")),
    )
    await metadata.save_document_type(document_type)
    return document_type

"""End-to-end tests for DocumentVault wired from settings."""

import hashlib
from pathlib import Path

import pytest

from docvault_core import DocumentVault, FileMetadata, NOT_FOUND, Settings
from docvault_core.metadata_store.local import LocalMetadataStore
from docvault_core.models import Account, DocumentField


@pytest.fixture
def vault(tmp_path: Path, blob_root: Path, blob_transport):
    settings = Settings(
        blob_storage_uri=str(blob_root),
        metadata_path=str(tmp_path / "metadata"),
        clickhouse_host="",
        retrieval_base_url="http://vault.test/api/documents/",
        hash_timeout_seconds=5.0,
    )
    vault = DocumentVault.from_settings(settings, transport=blob_transport)
    yield vault
    vault.shutdown()


class TestDocumentVault:
    def test_from_settings_uses_local_backends(self, vault):
        assert vault.storage.scheme == "file"
        assert isinstance(vault.metadata, LocalMetadataStore)

    @pytest.mark.asyncio
    async def test_start_loads_permission_table(self, vault):
        await vault.permissions.insert({"owner": {"document": ["read"]}})
        fresh = DocumentVault(vault.storage, vault.metadata, vault.registry._verifier)

        await fresh.start()

        assert fresh.permission_cache.initialized
        assert fresh.permission_cache.read() == {"owner": {"document": ["read"]}}

    @pytest.mark.asyncio
    async def test_document_lifecycle(self, vault):
        owner = Account(username="SallyOwner", role="owner")
        caseworker = Account(username="BillyCaseWorker", role="notary")
        await vault.metadata.save_account(owner)
        await vault.metadata.save_account(caseworker)
        await vault.create_document_type("Driver's License", [DocumentField(field_name="name", required=True)])
        await vault.start()

        result = await vault.registry.upload(
            caseworker.id, owner.id, b"license-scan", FileMetadata(original_name="license.png"), "Driver's License"
        )
        assert result.verified
        assert result.document.content_hash == hashlib.md5(b"license-scan").hexdigest()

        await vault.sharing.request_share(caseworker.id, owner.id, "Driver's License")
        stored_owner = await vault.get_account(owner.id)
        assert stored_owner.documents == (result.document.id,)
        assert len(stored_owner.share_requests) == 1

        assert [d.id for d in await vault.registry.list_documents(owner.id)] == [result.document.id]
        assert (await vault.registry.delete("license.png")).id == result.document.id
        assert await vault.registry.retrieve("license.png") is NOT_FOUND

    @pytest.mark.asyncio
    async def test_document_types(self, vault):
        await vault.create_document_type("Passport")
        await vault.create_document_type("Driver's License")
        assert [dt.name for dt in await vault.list_document_types()] == ["Driver's License", "Passport"]

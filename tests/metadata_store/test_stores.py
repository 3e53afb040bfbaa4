"""Behavior shared by the in-memory and local filesystem metadata stores."""

from pathlib import Path

import pytest

from docvault_core.metadata_store import MemoryMetadataStore, MetadataStore
from docvault_core.metadata_store.local import LocalMetadataStore
from docvault_core.models import (
    Account,
    Document,
    DocumentField,
    DocumentType,
    Permission,
    Role,
    ShareRequest,
    VerifiableCredential,
    VerifiablePresentation,
)


@pytest.fixture(params=["memory", "local"])
def store(request, tmp_path: Path) -> MetadataStore:
    if request.param == "memory":
        return MemoryMetadataStore()
    return LocalMetadataStore(base_path=tmp_path)


def _document(key: str = "license.png", **kwargs) -> Document:
    return Document(name=key, storage_key=key, uploaded_by="uploader", document_type_id="type-1", **kwargs)


class TestProtocolCompliance:
    def test_satisfies_metadata_store_protocol(self, store):
        assert isinstance(store, MetadataStore)


class TestDocuments:
    @pytest.mark.asyncio
    async def test_insert_and_get(self, store):
        doc = _document()
        await store.insert_document(doc)
        assert await store.get_documents([doc.id]) == {doc.id: doc}

    @pytest.mark.asyncio
    async def test_get_skips_unknown_ids(self, store):
        doc = _document()
        await store.insert_document(doc)
        assert list(await store.get_documents(["missing", doc.id])) == [doc.id]

    @pytest.mark.asyncio
    async def test_update_replaces_record(self, store):
        doc = _document()
        await store.insert_document(doc)
        await store.update_document(doc.model_copy(update={"content_hash": "abc123"}))
        loaded = (await store.get_documents([doc.id]))[doc.id]
        assert loaded.content_hash == "abc123"

    @pytest.mark.asyncio
    async def test_delete_by_key_returns_record(self, store):
        doc = _document("passport.pdf")
        await store.insert_document(doc)
        assert await store.delete_document_by_key("passport.pdf") == doc
        assert await store.get_documents([doc.id]) == {}
        assert await store.list_documents() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_key_returns_none(self, store):
        assert await store.delete_document_by_key("nothing.png") is None

    @pytest.mark.asyncio
    async def test_find_by_key(self, store):
        doc = _document("passport.pdf")
        await store.insert_document(doc)
        assert await store.find_document_by_key("passport.pdf") == doc
        assert await store.find_document_by_key("license.png") is None


class TestAccounts:
    @pytest.mark.asyncio
    async def test_missing_account_is_none(self, store):
        assert await store.get_account("nobody") is None

    @pytest.mark.asyncio
    async def test_round_trip_keeps_secret_and_lists(self, store):
        account = Account(
            username="SallyOwner",
            role="owner",
            did_private_key="0xsecret",
            documents=("doc-1", "doc-2"),
            share_requests=(ShareRequest(requesting_account_id="acct-2", document_type_id="type-1"),),
        )
        await store.save_account(account)

        loaded = await store.get_account(account.id)

        assert loaded.did_private_key.get_secret_value() == "0xsecret"
        assert loaded.documents == ("doc-1", "doc-2")
        assert loaded.share_requests == account.share_requests
        assert [a.id for a in await store.list_accounts()] == [account.id]

    @pytest.mark.asyncio
    async def test_save_overwrites(self, store):
        account = Account(username="SallyOwner")
        await store.save_account(account)
        await store.save_account(account.model_copy(update={"documents": ("doc-9",)}))
        assert (await store.get_account(account.id)).documents == ("doc-9",)


class TestDocumentTypes:
    @pytest.mark.asyncio
    async def test_find_by_name(self, store):
        license_type = DocumentType(name="Driver's License", fields=(DocumentField(field_name="name", required=True),))
        await store.save_document_type(license_type)
        await store.save_document_type(DocumentType(name="Passport"))

        assert await store.find_document_type_by_name("Driver's License") == license_type
        assert await store.find_document_type_by_name("Birth Certificate") is None
        assert {dt.name for dt in await store.list_document_types()} == {"Driver's License", "Passport"}


class TestSnapshots:
    @pytest.mark.asyncio
    async def test_no_snapshot(self, store):
        assert await store.latest_snapshot() is None

    @pytest.mark.asyncio
    async def test_latest_is_last_appended(self, store):
        await store.append_snapshot('{"owner": ["read"]}')
        second = await store.append_snapshot('{"notary": ["write"]}')

        latest = await store.latest_snapshot()

        assert latest.id == second.id
        assert latest.table == {"notary": ["write"]}


class TestCatalogAndCredentials:
    @pytest.mark.asyncio
    async def test_roles_and_permissions(self, store):
        await store.save_role(Role(name="owner"))
        await store.save_permission(Permission(name="document.read", paired="owner"))
        assert [r.name for r in await store.list_roles()] == ["owner"]
        assert [(p.name, p.paired) for p in await store.list_permissions()] == [("document.read", "owner")]

    @pytest.mark.asyncio
    async def test_credentials_filtered_by_document(self, store):
        await store.save_credential(VerifiableCredential(token="vc-1", verified_payload={"a": 1}, issuer="did:x", document_id="doc-1"))
        await store.save_credential(VerifiableCredential(token="vc-2", verified_payload={}, issuer="did:x", document_id="doc-2"))
        await store.save_presentation(VerifiablePresentation(token="vp-1", verified_payload={}, issuer="did:y", document_id="doc-1"))

        assert [vc.token for vc in await store.list_credentials("doc-1")] == ["vc-1"]
        assert [vp.token for vp in await store.list_presentations("doc-1")] == ["vp-1"]
        assert await store.list_presentations("doc-2") == []

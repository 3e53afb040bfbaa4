"""Tests specific to LocalMetadataStore's on-disk layout."""

import json
from pathlib import Path

import pytest

from docvault_core.exceptions import StoreError, VaultValidationError
from docvault_core.metadata_store.local import SNAPSHOT_LOG, LocalMetadataStore
from docvault_core.models import Account, Document


@pytest.fixture
def store(tmp_path: Path) -> LocalMetadataStore:
    return LocalMetadataStore(base_path=tmp_path)


class TestLayout:
    @pytest.mark.asyncio
    async def test_document_written_as_json_file(self, store: LocalMetadataStore, tmp_path: Path):
        doc = Document(name="license.png", storage_key="license.png", uploaded_by="u", document_type_id="t")
        await store.insert_document(doc)

        path = tmp_path / "documents" / f"{doc.id}.json"
        assert json.loads(path.read_text())["storage_key"] == "license.png"
        assert not list((tmp_path / "documents").glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_account_file_holds_private_key(self, store: LocalMetadataStore, tmp_path: Path):
        account = Account(username="SallyOwner", did_private_key="0xsecret")
        await store.save_account(account)

        data = json.loads((tmp_path / "accounts" / f"{account.id}.json").read_text())
        assert data["did_private_key"] == "0xsecret"

    @pytest.mark.asyncio
    async def test_snapshots_appended_one_per_line(self, store: LocalMetadataStore, tmp_path: Path):
        await store.append_snapshot("{}")
        await store.append_snapshot('{"owner": []}')

        lines = (tmp_path / SNAPSHOT_LOG).read_text().splitlines()
        assert [json.loads(line)["serialized_table"] for line in lines] == ["{}", '{"owner": []}']

    @pytest.mark.asyncio
    async def test_snapshots_survive_new_instance(self, tmp_path: Path):
        first = await LocalMetadataStore(base_path=tmp_path).append_snapshot('{"notary": ["sign"]}')
        latest = await LocalMetadataStore(base_path=tmp_path).latest_snapshot()
        assert latest.id == first.id


class TestRobustness:
    @pytest.mark.asyncio
    async def test_unreadable_record_skipped(self, store: LocalMetadataStore, tmp_path: Path):
        (tmp_path / "documents").mkdir()
        (tmp_path / "documents" / "broken.json").write_text('{"name": 1}')
        assert await store.list_documents() == []

    @pytest.mark.asyncio
    async def test_path_like_id_reads_as_missing(self, store: LocalMetadataStore, tmp_path: Path):
        (tmp_path / "escape.json").write_text("{}")
        assert await store.get_account("../escape") is None
        assert await store.get_documents(["../escape", "a/b"]) == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record_id", ["../escape", "a/b", "a\\b"])
    async def test_path_like_id_write_rejected(self, store: LocalMetadataStore, tmp_path: Path, record_id):
        with pytest.raises(VaultValidationError):
            await store.save_account(Account(id=record_id, username="SallyOwner"))
        assert not (tmp_path / "accounts").exists()

    @pytest.mark.asyncio
    async def test_os_error_becomes_store_error(self, tmp_path: Path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        store = LocalMetadataStore(base_path=blocker)
        with pytest.raises(StoreError):
            await store.save_account(Account(username="SallyOwner"))

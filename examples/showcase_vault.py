#!/usr/bin/env python3
"""Document vault showcase; runs standalone without external services.

Demonstrates:
  - Wiring a DocumentVault on local blob storage and the local JSON metadata store
  - Uploading a document with hash verification through the retrieval path
  - Share requests between accounts
  - Inserting a permission table and reading it from the cache
  - Deleting a document and retrieving a missing key

The retrieval endpoint is simulated with an httpx.MockTransport that serves
blobs straight from the vault's own storage.

Usage:
  python examples/showcase_vault.py
"""

import asyncio
from pathlib import Path
from tempfile import TemporaryDirectory

import httpx

from docvault_core import NOT_FOUND, Account, DocumentField, DocumentVault, FileMetadata, Settings, Storage

RETRIEVAL_PREFIX = "/api/documents/"


def retrieval_endpoint(storage: Storage) -> httpx.MockTransport:
    """Serve stored blobs the way the public retrieval route would."""

    async def handler(request: httpx.Request) -> httpx.Response:
        key = request.url.path.removeprefix(RETRIEVAL_PREFIX)
        if not await storage.exists(key):
            return httpx.Response(404, json={"error": "No file exists"})
        return httpx.Response(200, content=await storage.read_bytes(key))

    return httpx.MockTransport(handler)


async def run(root: Path) -> None:
    settings = Settings(
        blob_storage_uri=str(root / "blobs"),
        metadata_path=str(root / "metadata"),
        clickhouse_host="",
        retrieval_base_url=f"http://vault.local{RETRIEVAL_PREFIX}",
    )
    storage = Storage.from_uri(settings.blob_storage_uri)
    vault = DocumentVault.from_settings(settings, transport=retrieval_endpoint(storage))
    await vault.start()

    print("\n=== Accounts and document types ===\n")
    owner = Account(username="SallyOwner", role="owner")
    caseworker = Account(username="BillyCaseWorker", role="notary")
    await vault.metadata.save_account(owner)
    await vault.metadata.save_account(caseworker)
    await vault.create_document_type(
        "Driver's License",
        [DocumentField(field_name="name", required=True), DocumentField(field_name="dateofbirth")],
    )
    print(f"  owner={owner.id} caseworker={caseworker.id}")

    print("\n=== Upload ===\n")
    result = await vault.registry.upload(
        uploaded_by=caseworker.id,
        recipient_account_id=owner.id,
        content=b"\x89PNG\r\n\x1a\n" + b"scan" * 1024,
        file_metadata=FileMetadata(original_name="license.png", content_type="image/png"),
        document_type="Driver's License",
    )
    print(f"  {result.document.storage_key}: {result.status} hash={result.document.content_hash}")

    print("\n=== Share request ===\n")
    updated = await vault.sharing.request_share(caseworker.id, owner.id, "Driver's License")
    print(f"  pending requests on owner: {len(updated.share_requests)}")

    print("\n=== Permissions ===\n")
    await vault.permissions.insert({"owner": {"document": ["read", "share"]}, "notary": {"document": ["sign"]}})
    print(f"  cached table: {vault.permission_cache.read()}")

    print("\n=== Delete ===\n")
    deleted = await vault.registry.delete("license.png")
    print(f"  deleted record {deleted.id}")
    missing = await vault.registry.retrieve("license.png")
    print(f"  retrieve after delete: {missing.error if missing is NOT_FOUND else 'still present'}")

    vault.shutdown()


def main() -> None:
    with TemporaryDirectory() as tmp:
        asyncio.run(run(Path(tmp)))


if __name__ == "__main__":
    main()

"""Factory function for creating metadata store instances based on settings."""

from pathlib import Path

from docvault_core.metadata_store.protocol import MetadataStore
from docvault_core.settings import Settings


def create_metadata_store(settings: Settings) -> MetadataStore:
    """Create a MetadataStore based on settings.

    Selects ClickHouseMetadataStore when clickhouse_host is configured,
    otherwise falls back to LocalMetadataStore rooted at settings.metadata_path.

    Backends are imported lazily to avoid loading unused drivers.
    """
    if settings.clickhouse_host:
        from docvault_core.metadata_store.clickhouse import ClickHouseMetadataStore

        return ClickHouseMetadataStore(
            host=settings.clickhouse_host,
            port=settings.clickhouse_port,
            database=settings.clickhouse_database,
            username=settings.clickhouse_user,
            password=settings.clickhouse_password,
            secure=settings.clickhouse_secure,
        )

    from docvault_core.metadata_store.local import LocalMetadataStore

    return LocalMetadataStore(base_path=Path(settings.metadata_path).expanduser().resolve())

"""Core configuration settings for the document vault.

@public

This module provides centralized configuration management for Document Vault Core,
handling blob storage location, the metadata backend and the retrieval endpoint
used for hash verification. Settings are loaded from environment variables with
.env file support via pydantic-settings.

Environment variables:
    BLOB_STORAGE_URI: Blob storage root (local path, file:// or gs://bucket/prefix)
    GCS_PROJECT: Google Cloud project used for gs:// blob storage
    METADATA_PATH: Directory for the local JSON metadata store
    CLICKHOUSE_HOST: ClickHouse host; when set, metadata is stored in ClickHouse
    CLICKHOUSE_PORT, CLICKHOUSE_DATABASE, CLICKHOUSE_USER, CLICKHOUSE_PASSWORD, CLICKHOUSE_SECURE
    RETRIEVAL_BASE_URL: URL prefix that serves stored blobs by storage key
    HASH_TIMEOUT_SECONDS: Timeout for the hash verification fetch

Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file in current directory
    3. Default values

Example:
    >>> from docvault_core.settings import settings
    >>>
    >>> print(settings.blob_storage_uri)
    >>> print(settings.retrieval_base_url)

Note:
    Settings are loaded once at module import and frozen. The process must be
    restarted to pick up changes to environment variables or .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the vault's storage backends and retrieval endpoint.

    @public

    Attributes:
        blob_storage_uri: Where document bytes live. A plain path or file:// URI
                          selects the local filesystem; gs://bucket/prefix selects
                          Google Cloud Storage.

        gcs_project: Google Cloud project for gs:// storage. Empty uses the
                     project from application default credentials.

        metadata_path: Root directory of the local JSON metadata store. Ignored
                       when clickhouse_host is configured.

        clickhouse_host: ClickHouse server host. Empty disables ClickHouse.

        retrieval_base_url: Prefix of the externally reachable URL that returns
                            the current bytes for a storage key. HashVerifier
                            appends the quoted key to it.

        hash_timeout_seconds: Upper bound for one hash verification fetch.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Blob storage
    blob_storage_uri: str = "./vault_data/blobs"
    gcs_project: str = ""

    # Metadata storage
    metadata_path: str = "./vault_data/metadata"
    clickhouse_host: str = ""
    clickhouse_port: int = 8443
    clickhouse_database: str = "default"
    clickhouse_user: str = "default"
    clickhouse_password: str = ""
    clickhouse_secure: bool = True

    # Hash verification
    retrieval_base_url: str = "http://localhost:5000/api/documents/"
    hash_timeout_seconds: float = 30.0


settings = Settings()
"""Global settings instance for the entire application.

@public

Example:
    >>> from docvault_core.settings import settings
    >>> print(f"Verifying hashes against {settings.retrieval_base_url}")
"""

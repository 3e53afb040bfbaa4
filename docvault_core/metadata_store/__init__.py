"""Metadata store protocol and backends for the document vault."""

from .factory import create_metadata_store
from .memory import MemoryMetadataStore
from .protocol import MetadataStore

__all__ = [
    "MemoryMetadataStore",
    "MetadataStore",
    "create_metadata_store",
]

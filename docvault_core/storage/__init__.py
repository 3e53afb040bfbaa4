"""Blob storage module for docvault_core.

@public
"""

from docvault_core.storage.storage import ByteSource, ObjectInfo, Storage

__all__ = ["ByteSource", "ObjectInfo", "Storage"]

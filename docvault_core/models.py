"""Domain models for the document vault.

Persisted entities are frozen Pydantic models; updates go through model_copy().
Workflow results are lightweight frozen dataclasses.
"""

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, SecretStr

__all__ = [
    "NOT_FOUND",
    "Account",
    "Document",
    "DocumentField",
    "DocumentType",
    "FileMetadata",
    "HashStatus",
    "NotFound",
    "Permission",
    "PermissionTable",
    "PermissionTableSnapshot",
    "Role",
    "ShareRequest",
    "UploadResult",
    "VerifiableCredential",
    "VerifiablePresentation",
    "new_id",
]

PermissionTable = dict[str, Any]
"""Opaque role-permission table. Its rule format is interpreted by callers only."""


def new_id() -> str:
    """Generate a record id."""
    return uuid4().hex


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=new_id)


class DocumentField(BaseModel):
    """One metadata field a document type expects."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field_name: str
    required: bool = False


class DocumentType(_Record):
    """Named document category with its expected metadata fields."""

    name: str
    fields: tuple[DocumentField, ...] = ()


class ShareRequest(BaseModel):
    """Recorded intent of one account to see another account's documents of a type."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    requesting_account_id: str
    document_type_id: str


class Account(_Record):
    """Account as consumed by the vault.

    ``did_private_key`` is a SecretStr: it is masked in repr() and in model_dump(),
    and only to_storage_dict() reveals it for persistence.
    """

    username: str
    role: str = ""
    did_address: str = ""
    did_private_key: SecretStr = Field(default=SecretStr(""), repr=False)
    documents: tuple[str, ...] = ()
    share_requests: tuple[ShareRequest, ...] = ()

    def to_storage_dict(self) -> dict[str, Any]:
        """JSON-compatible dump including the private key, for backing stores only."""
        data = self.model_dump(mode="json")
        data["did_private_key"] = self.did_private_key.get_secret_value()
        return data


class Document(_Record):
    """Metadata for one stored document blob."""

    name: str
    storage_key: str
    uploaded_by: str
    document_type_id: str
    content_hash: str | None = None
    credential_token: str | None = None
    presentation_token: str | None = None

    @property
    def is_verified(self) -> bool:
        """True once a content hash has been recorded."""
        return self.content_hash is not None


class FileMetadata(BaseModel):
    """Upload-time facts about the incoming file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    original_name: str
    content_type: str = "application/octet-stream"


class PermissionTableSnapshot(_Record):
    """One immutable version of the role-permission table, stored serialized."""

    serialized_table: str

    @property
    def table(self) -> PermissionTable:
        """Deserialized table."""
        return json.loads(self.serialized_table)


class Role(_Record):
    """Role name available for permission table rows."""

    name: str


class Permission(_Record):
    """Permission name; ``paired`` names a permission it is granted together with."""

    name: str
    paired: str = ""


class VerifiableCredential(_Record):
    """Issued credential bound to a document."""

    token: str
    verified_payload: dict[str, Any] = Field(default_factory=dict)
    issuer: str
    document_id: str


class VerifiablePresentation(_Record):
    """Issued presentation bound to a document."""

    token: str
    verified_payload: dict[str, Any] = Field(default_factory=dict)
    issuer: str
    document_id: str


@dataclass(frozen=True, slots=True)
class NotFound:
    """Returned instead of raising when retrieve/delete finds no blob."""

    error: str = "No file exists"


NOT_FOUND = NotFound()


class HashStatus(StrEnum):
    """Outcome of the hash verification phase of an upload."""

    VERIFIED = "verified"
    UNVERIFIED = "unverified"


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Upload outcome: the stored document plus whether its hash was recorded.

    ``failure`` carries the retrieval error message when status is UNVERIFIED.
    """

    document: Document
    status: HashStatus
    failure: str | None = None

    @property
    def verified(self) -> bool:
        return self.status is HashStatus.VERIFIED

"""Pydantic DTOs for the document envelope/version API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.domain.entities import DocumentCategory, DocumentState
from app.application.schemas.ingest import IndexingResultResponse


class DocumentCreate(BaseModel):
    """First save of a new document: envelope plus version 1."""

    workspace_id: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=255, examples=["Weekly sync 2026-10-12"])
    content: str = Field(..., examples=["WEBVTT\n\n00:00:01.000 --> 00:00:04.000\nAda: Hello"])
    category: DocumentCategory = DocumentCategory.KNOWLEDGE
    document_type: str = Field(default="document", max_length=50, examples=["transcript"])
    topics: list[str] = Field(default_factory=list, examples=[["pricing", "roadmap"]])
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_searchable: bool = False
    publish: bool = False


class DocumentTitleUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


class VersionCreate(BaseModel):
    """A new immutable version; does not publish."""

    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class PublishRequest(BaseModel):
    version_id: str = Field(..., min_length=1)


class SearchableUpdate(BaseModel):
    is_searchable: bool


class DocumentResponse(BaseModel):
    """Envelope as returned to the client."""

    id: str
    workspace_id: str
    owner_id: str
    title: str
    category: DocumentCategory
    document_type: str
    topics: list[str] = []
    is_searchable: bool
    current_published_version_id: str | None = None
    state: DocumentState
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class VersionResponse(BaseModel):
    id: str
    envelope_id: str
    version_number: int
    content: str
    metadata: dict[str, Any] = {}
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class PublishResponse(BaseModel):
    """New pointer plus the indexing outcome (``None`` when the document is not searchable)."""

    envelope_id: str
    version_id: str
    indexing: IndexingResultResponse | None = None


class DocumentCreatedResponse(BaseModel):
    document: DocumentResponse
    version: VersionResponse
    publish: PublishResponse | None = None

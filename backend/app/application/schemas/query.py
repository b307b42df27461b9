"""Pydantic schemas for query API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field


# ── Request Schemas ──────────────────────────────────────────────────


class QueryRequest(BaseModel):
    """Request body for a semantic query over the caller's searchable documents."""

    text: str = Field(..., min_length=1, description="Free-text query")
    top_k: int | None = Field(default=None, ge=1, le=100, description="Maximum number of matches")
    topic: str | None = Field(default=None, description="Only return chunks with this topic")
    min_score: float | None = Field(default=None, ge=-1.0, le=1.0)


# ── Response Schemas ─────────────────────────────────────────────────


class ChunkMatchSchema(BaseModel):
    """A single matching chunk."""

    chunk_id: str
    document_id: str
    score: float
    content: str
    topic: str
    metadata: dict[str, Any] = {}

    model_config = {"from_attributes": True}


class QueryResultSchema(BaseModel):
    matches: list[ChunkMatchSchema] = []
    total_matches: int = 0


class AccountErasureResponse(BaseModel):
    documents_deleted: int
    namespace_deleted: bool

"""Pydantic DTOs for direct ingestion and indexing results."""

from pydantic import BaseModel, Field

from app.domain.entities import DEFAULT_CHUNK_SIZE, IndexingResult


class IngestRequest(BaseModel):
    """Index raw text under a caller-chosen document id."""

    source_document_id: str = Field(..., min_length=1, max_length=200, examples=["call-2026-10-12"])
    raw_text: str
    format_hint: str | None = Field(None, examples=["webvtt", "text/vtt", "transcript"])
    topics: list[str] = Field(default_factory=list)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, description="Atomic items per chunk")
    dry_run: bool = Field(default=False, description="Compute chunks without embedding or indexing")
    workspace_id: str = Field(default="default", min_length=1, max_length=100)
    title: str | None = Field(None, max_length=500, description="Title for a newly created document")


class RetryChunksRequest(BaseModel):
    """Chunk ids reported as failed by an earlier ingest of the document."""

    source_document_id: str = Field(..., min_length=1, max_length=200)
    chunk_ids: list[str] = Field(..., min_length=1)


class ChunkResponse(BaseModel):
    chunk_id: str
    chunk_index: int
    topic: str
    start_sequence: int
    end_sequence: int
    text: str
    approx_token_count: int
    speakers: list[str] = []
    start_time: float | None = None
    end_time: float | None = None

    model_config = {"from_attributes": True}


class IndexingResultResponse(BaseModel):
    source_document_id: str
    chunk_count: int
    indexed_chunk_ids: list[str] = []
    failed_chunk_ids: list[str] = []
    stale_chunk_ids_deleted: list[str] = []
    discarded: bool = False
    dry_run: bool = False
    is_partial: bool = False
    chunks: list[ChunkResponse] = []

    model_config = {"from_attributes": True}

    @classmethod
    def from_result(cls, result: IndexingResult, *, include_chunks: bool = False) -> "IndexingResultResponse":
        """Build the response; chunk bodies are only included on request (dry runs)."""
        response = cls.model_validate(result, from_attributes=True)
        if not include_chunks:
            response.chunks = []
        return response


class UploadIngestResponse(BaseModel):
    """Stored blob reference plus the outcome of ingesting it."""

    reference: str
    result: IndexingResultResponse

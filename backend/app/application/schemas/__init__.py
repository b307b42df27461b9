from .ingest import (
    ChunkResponse,
    IndexingResultResponse,
    IngestRequest,
    RetryChunksRequest,
    UploadIngestResponse,
)
from .documents import (
    DocumentCreate,
    DocumentCreatedResponse,
    DocumentResponse,
    DocumentTitleUpdate,
    PublishRequest,
    PublishResponse,
    SearchableUpdate,
    VersionCreate,
    VersionResponse,
)
from .query import (
    AccountErasureResponse,
    ChunkMatchSchema,
    QueryRequest,
    QueryResultSchema,
)

__all__ = [
    "ChunkResponse",
    "IndexingResultResponse",
    "IngestRequest",
    "RetryChunksRequest",
    "UploadIngestResponse",
    "DocumentCreate",
    "DocumentCreatedResponse",
    "DocumentResponse",
    "DocumentTitleUpdate",
    "PublishRequest",
    "PublishResponse",
    "SearchableUpdate",
    "VersionCreate",
    "VersionResponse",
    "AccountErasureResponse",
    "ChunkMatchSchema",
    "QueryRequest",
    "QueryResultSchema",
]

from .atomic_item import AtomicItem, SourceFormat
from .chunk import (
    DEFAULT_CHUNK_SIZE,
    UNCLASSIFIED_TOPIC,
    Chunk,
    ChunkOptions,
    make_chunk_id,
)
from .document import (
    DocumentCategory,
    DocumentEnvelope,
    DocumentState,
    DocumentVersion,
)
from .indexing import ChunkMatch, IndexingResult, PublishResult, VectorRecord

__all__ = [
    "AtomicItem",
    "SourceFormat",
    "DEFAULT_CHUNK_SIZE",
    "UNCLASSIFIED_TOPIC",
    "Chunk",
    "ChunkOptions",
    "make_chunk_id",
    "DocumentCategory",
    "DocumentEnvelope",
    "DocumentState",
    "DocumentVersion",
    "ChunkMatch",
    "IndexingResult",
    "PublishResult",
    "VectorRecord",
]

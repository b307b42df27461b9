"""Domain value objects for index writes and retrieval results."""

from dataclasses import dataclass, field
from typing import Any

from .chunk import Chunk


@dataclass
class VectorRecord:
    """One vector as stored in an owner namespace, keyed by (document_id, chunk_id)."""

    chunk_id: str
    document_id: str
    values: list[float]
    content: str
    topic: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexingResult:
    """Outcome of indexing one document.

    Indexing is best-effort: failures are reported here rather than raised,
    so callers can retry exactly the ``failed_chunk_ids``.
    """

    source_document_id: str
    chunk_count: int = 0
    indexed_chunk_ids: list[str] = field(default_factory=list)
    failed_chunk_ids: list[str] = field(default_factory=list)
    stale_chunk_ids_deleted: list[str] = field(default_factory=list)
    discarded: bool = False
    dry_run: bool = False
    chunks: list[Chunk] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_chunk_ids)

    @property
    def succeeded(self) -> bool:
        return not self.failed_chunk_ids and not self.discarded


@dataclass
class ChunkMatch:
    """A single ranked chunk returned by a retrieval query."""

    chunk_id: str
    document_id: str
    score: float
    content: str
    topic: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PublishResult:
    """Outcome of a publish: the new pointer plus the (optional) indexing side effect."""

    envelope_id: str
    version_id: str
    indexing: IndexingResult | None = None

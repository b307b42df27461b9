"""Abstract interface (port) for the namespace-scoped vector-search backend."""

from abc import ABC, abstractmethod

from app.domain.entities.indexing import ChunkMatch, VectorRecord


class VectorIndex(ABC):
    """Port for vector storage and similarity search, partitioned by namespace.

    Records are keyed by ``(namespace, document_id, chunk_id)``; upserting an
    existing key replaces the stored vector. Implementations raise
    ``IndexBackendError`` on backend failures. Deletes may become visible
    asynchronously; callers must not rely on read-after-delete consistency.
    """

    @abstractmethod
    async def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        """Insert or replace a batch of records in a namespace."""
        ...

    @abstractmethod
    async def delete_by_document(self, namespace: str, document_id: str) -> int:
        """Delete every record of a document. Returns the number removed (0 is fine)."""
        ...

    @abstractmethod
    async def delete_ids(self, namespace: str, document_id: str, chunk_ids: list[str]) -> int:
        """Delete specific chunk ids of a document. Returns the number removed."""
        ...

    @abstractmethod
    async def list_chunk_ids(self, namespace: str, document_id: str) -> list[str]:
        """List the chunk ids currently stored for a document."""
        ...

    @abstractmethod
    async def delete_namespace(self, namespace: str) -> None:
        """Remove an entire namespace. Missing namespaces are not an error."""
        ...

    @abstractmethod
    async def query(
        self,
        namespace: str,
        vector: list[float],
        *,
        top_k: int = 10,
        document_ids: list[str] | None = None,
        topic: str | None = None,
        min_score: float = 0.0,
    ) -> list[ChunkMatch]:
        """Return the most similar records within one namespace.

        Args:
            namespace: The only namespace searched.
            vector: Query embedding.
            top_k: Maximum number of matches.
            document_ids: When given, only records of these documents match
                (an empty list matches nothing).
            topic: Optional topic filter.
            min_score: Matches below this cosine similarity are dropped.

        Returns:
            Matches ordered by descending score.
        """
        ...

"""Index namespace manager — the only writer to the vector backend.

Every owner gets one namespace; every vector is keyed by
``(owner namespace, source_document_id, chunk_id)``. Upserts are embedded and
written in concurrent batches, each batch retried with bounded exponential
backoff. Failures are reported per chunk in the returned IndexingResult
instead of raised, so callers can retry exactly what failed.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.application.interfaces.embedding_provider import EmbeddingProvider
from app.application.interfaces.vector_index import VectorIndex
from app.domain.entities import Chunk, ChunkMatch, IndexingResult, VectorRecord
from app.domain.exceptions import (
    EmbeddingProviderError,
    IndexBackendError,
    IndexingError,
    InvalidConfigurationError,
)
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("IndexNamespaceManager")

_RETRYABLE = (EmbeddingProviderError, IndexBackendError)

LivenessCheck = Callable[[], bool]


@dataclass
class _BatchOutcome:
    indexed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    discarded: bool = False


class IndexNamespaceManager:
    """Owner-scoped writes (and namespaced reads) against a VectorIndex."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        vector_index: VectorIndex,
        *,
        batch_size: int = 50,
        max_concurrent_batches: int = 4,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0,
    ):
        if batch_size <= 0:
            raise InvalidConfigurationError("batch_size", batch_size, "must be positive")
        if max_concurrent_batches <= 0:
            raise InvalidConfigurationError(
                "max_concurrent_batches", max_concurrent_batches, "must be positive"
            )
        if max_attempts <= 0:
            raise InvalidConfigurationError("max_attempts", max_attempts, "must be positive")

        self._embedder = embedding_provider
        self._index = vector_index
        self._batch_size = batch_size
        self._max_concurrent_batches = max_concurrent_batches
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._backoff_max_seconds = backoff_max_seconds

    @staticmethod
    def namespace_for(owner_id: str) -> str:
        """Namespace holding every vector of one owner."""
        if not owner_id:
            raise InvalidConfigurationError("owner_id", owner_id, "must not be empty")
        return f"owner-{owner_id}"

    # ── Writes ───────────────────────────────────────────────────────

    async def upsert_chunks(
        self,
        owner_id: str,
        source_document_id: str,
        chunks: Sequence[Chunk],
        *,
        is_live: LivenessCheck | None = None,
    ) -> IndexingResult:
        """Embed and upsert chunks into the owner namespace.

        Args:
            owner_id: Owner whose namespace receives the vectors.
            source_document_id: Document the chunks belong to.
            chunks: Chunks to write; re-upserting the same ids overwrites.
            is_live: Checked after embedding and before each write. Once it
                returns False the remaining results are dropped and the
                result is marked ``discarded``.

        Returns:
            IndexingResult with indexed and failed chunk ids. Never raises
            for provider or backend failures.
        """
        namespace = self.namespace_for(owner_id)
        result = IndexingResult(source_document_id=source_document_id, chunk_count=len(chunks))
        if not chunks:
            return result

        batches = [
            list(chunks[start : start + self._batch_size])
            for start in range(0, len(chunks), self._batch_size)
        ]
        semaphore = asyncio.Semaphore(self._max_concurrent_batches)

        async def _bounded(batch: list[Chunk]) -> _BatchOutcome:
            async with semaphore:
                return await self._index_batch(namespace, source_document_id, batch, is_live)

        with plog.timed_step(
            PipelineStage.INDEX,
            f"Upserting {source_document_id}",
            namespace=namespace,
            chunks=len(chunks),
            batches=len(batches),
        ):
            outcomes = await asyncio.gather(*(_bounded(batch) for batch in batches))

        for outcome in outcomes:
            result.indexed_chunk_ids.extend(outcome.indexed)
            result.failed_chunk_ids.extend(outcome.failed)
            result.discarded = result.discarded or outcome.discarded

        if result.discarded:
            plog.step_warning(
                PipelineStage.INDEX,
                f"Document {source_document_id} went away mid-indexing, late results dropped",
            )
        elif result.failed_chunk_ids:
            plog.step_warning(
                PipelineStage.INDEX,
                f"Partial index of {source_document_id}",
                indexed=len(result.indexed_chunk_ids),
                failed=len(result.failed_chunk_ids),
            )
        return result

    async def delete_document(self, owner_id: str, source_document_id: str) -> int:
        """Remove every vector of a document from the owner namespace.

        Removing a document that has nothing indexed is a no-op.

        Raises:
            IndexBackendError: When the backend still fails after all attempts.
        """
        namespace = self.namespace_for(owner_id)
        async for attempt in self._retrying():
            with attempt:
                removed = await self._index.delete_by_document(namespace, source_document_id)
        plog.step_complete(
            PipelineStage.DELETE,
            f"Removed {source_document_id} from index",
            namespace=namespace,
            vectors=removed,
        )
        return removed

    async def delete_stale_chunks(
        self,
        owner_id: str,
        source_document_id: str,
        keep_ids: Sequence[str],
    ) -> list[str]:
        """Delete indexed chunks of a document whose ids are not in ``keep_ids``.

        Raises:
            IndexBackendError: When the backend still fails after all attempts.
        """
        namespace = self.namespace_for(owner_id)
        async for attempt in self._retrying():
            with attempt:
                existing = await self._index.list_chunk_ids(namespace, source_document_id)

        keep = set(keep_ids)
        stale = sorted(chunk_id for chunk_id in existing if chunk_id not in keep)
        if not stale:
            return []

        async for attempt in self._retrying():
            with attempt:
                await self._index.delete_ids(namespace, source_document_id, stale)
        plog.detail("Deleted stale chunks", document=source_document_id, count=len(stale))
        return stale

    async def delete_namespace(self, owner_id: str) -> bool:
        """Drop the owner's whole namespace. Best-effort: returns False on failure."""
        namespace = self.namespace_for(owner_id)
        try:
            async for attempt in self._retrying():
                with attempt:
                    await self._index.delete_namespace(namespace)
        except Exception as exc:
            plog.step_error(PipelineStage.DELETE, f"Could not delete namespace {namespace}", error=exc)
            return False
        plog.step_complete(PipelineStage.DELETE, f"Deleted namespace {namespace}")
        return True

    # ── Reads ────────────────────────────────────────────────────────

    async def query(
        self,
        owner_id: str,
        vector: list[float],
        *,
        top_k: int,
        document_ids: list[str],
        topic: str | None = None,
        min_score: float = 0.0,
    ) -> list[ChunkMatch]:
        """Similarity search restricted to the owner namespace and the given documents."""
        return await self._index.query(
            self.namespace_for(owner_id),
            vector,
            top_k=top_k,
            document_ids=document_ids,
            topic=topic,
            min_score=min_score,
        )

    # ── Internals ────────────────────────────────────────────────────

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_seconds, max=self._backoff_max_seconds),
            retry=retry_if_exception_type(_RETRYABLE),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _index_batch(
        self,
        namespace: str,
        source_document_id: str,
        batch: list[Chunk],
        is_live: LivenessCheck | None,
    ) -> _BatchOutcome:
        chunk_ids = [chunk.chunk_id for chunk in batch]
        if is_live is not None and not is_live():
            return _BatchOutcome(discarded=True)

        try:
            async for attempt in self._retrying():
                with attempt:
                    vectors = await self._embedder.generate_embeddings([c.text for c in batch])
                    if len(vectors) != len(batch):
                        raise EmbeddingProviderError(
                            "embedding",
                            0,
                            f"expected {len(batch)} vectors, got {len(vectors)}",
                        )

            if is_live is not None and not is_live():
                return _BatchOutcome(discarded=True)

            records = [
                VectorRecord(
                    chunk_id=chunk.chunk_id,
                    document_id=source_document_id,
                    values=values,
                    content=chunk.text,
                    topic=chunk.topic,
                    metadata=chunk.to_metadata(),
                )
                for chunk, values in zip(batch, vectors, strict=True)
            ]
            async for attempt in self._retrying():
                with attempt:
                    await self._index.upsert(namespace, records)
        except IndexingError as exc:
            plog.step_error(
                PipelineStage.INDEX,
                f"Batch {chunk_ids[0]}..{chunk_ids[-1]} failed after {self._max_attempts} attempt(s)",
                error=exc,
            )
            return _BatchOutcome(failed=chunk_ids)

        plog.detail("Batch indexed", document=source_document_id, chunks=len(batch))
        return _BatchOutcome(indexed=chunk_ids)

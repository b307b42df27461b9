"""Retrieval service — owner-scoped semantic search over searchable documents."""

import logging

from app.application.interfaces.document_repository import DocumentRepository
from app.application.interfaces.embedding_provider import EmbeddingProvider
from app.application.interfaces.reranker import Reranker
from app.application.services.index_namespace_manager import IndexNamespaceManager
from app.application.services.passthrough_reranker import PassthroughReranker
from app.domain.entities import ChunkMatch
from app.domain.exceptions import InvalidConfigurationError, RerankerError
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("RetrievalService")


class RetrievalService:
    """Answers queries from the owner's namespace only.

    Results are restricted to documents that are searchable *and* published
    right now, as recorded in the relational store. Vectors left behind by a
    failed index delete therefore never surface. Reranking runs on what is
    left after that filter.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        embedding_provider: EmbeddingProvider,
        index_manager: IndexNamespaceManager,
        reranker: Reranker | None = None,
    ):
        self._repository = repository
        self._embedder = embedding_provider
        self._index = index_manager
        self._reranker = reranker or PassthroughReranker()

    async def query(
        self,
        owner_id: str,
        text: str,
        top_k: int = 10,
        topic: str | None = None,
        min_score: float = 0.0,
    ) -> list[ChunkMatch]:
        if top_k <= 0:
            raise InvalidConfigurationError("top_k", top_k, "must be positive")
        if not text.strip():
            return []

        searchable_ids = await self._repository.list_searchable_document_ids(owner_id)
        if not searchable_ids:
            plog.detail("No searchable documents", owner=owner_id)
            return []

        with plog.timed_step(PipelineStage.EMBED, "Embedding query", owner=owner_id):
            vector = await self._embedder.generate_query_embedding(text)
        matches = await self._index.query(
            owner_id,
            vector,
            top_k=top_k * max(1, self._reranker.candidate_multiplier),
            document_ids=searchable_ids,
            topic=topic,
            min_score=min_score,
        )

        allowed = set(searchable_ids)
        candidates = [m for m in matches if m.document_id in allowed and m.score >= min_score]
        results = await self._rerank(text, candidates, top_k)
        plog.step_complete(PipelineStage.QUERY, "Query answered", owner=owner_id, matches=len(results))
        return results

    async def _rerank(self, text: str, candidates: list[ChunkMatch], top_k: int) -> list[ChunkMatch]:
        if not candidates:
            return []
        try:
            return await self._reranker.rerank(text, candidates, top_k)
        except RerankerError as exc:
            plog.step_warning(
                PipelineStage.QUERY,
                "Reranking failed, keeping vector order",
                provider=exc.provider,
                status=exc.status_code,
            )
            return candidates[:top_k]

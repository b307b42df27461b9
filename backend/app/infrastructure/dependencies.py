"""FastAPI dependency injection — wires infrastructure to application layer."""

import logging
from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.application.interfaces import BlobStore, EmbeddingProvider, Reranker, VectorIndex
from app.application.services import (
    AccountService,
    Chunker,
    DocumentService,
    EnvelopeLockRegistry,
    FormatParser,
    IndexNamespaceManager,
    IngestionService,
    KeywordTopicClassifier,
    PassthroughReranker,
    RetrievalService,
)
from app.domain.entities import ChunkOptions
from app.infrastructure.database.session import async_session_factory, get_db_session
from app.infrastructure.database.repositories import SQLAlchemyDocumentRepository
from app.infrastructure.openrouter import OpenRouterEmbeddingProvider
from app.infrastructure.storage.local_blob_store import LocalBlobStore
from app.infrastructure.vector_index import InMemoryVectorIndex, PgVectorIndex
from app.infrastructure.voyage import VoyageReranker

logger = logging.getLogger(__name__)


# ── Request identity ─────────────────────────────────────────────────


async def get_owner_id(x_owner_id: str | None = Header(default=None)) -> str:
    """Owner id from the ``X-Owner-Id`` header set by the upstream auth layer."""
    if x_owner_id is None or not x_owner_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Owner-Id header")
    return x_owner_id.strip()


# ── Process-wide singletons ──────────────────────────────────────────


@lru_cache
def get_lock_registry() -> EnvelopeLockRegistry:
    """One registry per process so every request sees the same envelope locks."""
    return EnvelopeLockRegistry()


@lru_cache
def get_vector_index() -> VectorIndex:
    settings = get_settings()
    if settings.vector_backend == "memory":
        return InMemoryVectorIndex()
    return PgVectorIndex(async_session_factory)


@lru_cache
def get_embedding_provider() -> EmbeddingProvider:
    settings = get_settings()
    return OpenRouterEmbeddingProvider(
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        app_name=settings.openrouter_app_name,
        model=settings.embedding_model,
        model_dimensions=settings.embedding_dimensions,
    )


@lru_cache
def get_blob_store() -> BlobStore:
    return LocalBlobStore(upload_dir=get_settings().upload_dir)


@lru_cache
def get_reranker() -> Reranker:
    settings = get_settings()
    if settings.reranker_backend == "voyage":
        if settings.voyage_api_key:
            return VoyageReranker(
                api_key=settings.voyage_api_key,
                base_url=settings.voyage_base_url,
                model=settings.rerank_model,
                score_threshold=settings.rerank_score_threshold,
            )
        logger.warning("reranker_backend is voyage but VOYAGE_API_KEY is empty, reranking disabled")
    return PassthroughReranker()


# ── Pipeline components ──────────────────────────────────────────────


def get_chunk_options() -> ChunkOptions:
    return ChunkOptions(chunk_size=get_settings().default_chunk_size)


def get_index_manager(
    embedding_provider: EmbeddingProvider = Depends(get_embedding_provider),
    vector_index: VectorIndex = Depends(get_vector_index),
) -> IndexNamespaceManager:
    settings = get_settings()
    return IndexNamespaceManager(
        embedding_provider,
        vector_index,
        batch_size=settings.embedding_batch_size,
        max_concurrent_batches=settings.max_concurrent_batches,
        max_attempts=settings.index_max_attempts,
        backoff_seconds=settings.index_backoff_seconds,
        backoff_max_seconds=settings.index_backoff_max_seconds,
    )


def get_ingestion_service(
    index_manager: IndexNamespaceManager = Depends(get_index_manager),
    blob_store: BlobStore = Depends(get_blob_store),
) -> IngestionService:
    """Provides the parse → chunk → index pipeline."""
    settings = get_settings()
    chunker = Chunker(KeywordTopicClassifier(), max_chunk_tokens=settings.max_chunk_tokens)
    return IngestionService(
        FormatParser(),
        chunker,
        index_manager,
        blob_store,
        default_options=get_chunk_options(),
    )


# ── Session-bound services ───────────────────────────────────────────


async def get_document_service(
    session: AsyncSession = Depends(get_db_session),
    ingestion: IngestionService = Depends(get_ingestion_service),
    index_manager: IndexNamespaceManager = Depends(get_index_manager),
    locks: EnvelopeLockRegistry = Depends(get_lock_registry),
) -> AsyncGenerator[DocumentService, None]:
    """Provides a DocumentService with its repository and index side effects wired up."""
    repository = SQLAlchemyDocumentRepository(session)
    yield DocumentService(
        repository,
        ingestion,
        index_manager,
        locks,
        chunk_options=get_chunk_options(),
    )


async def get_retrieval_service(
    session: AsyncSession = Depends(get_db_session),
    embedding_provider: EmbeddingProvider = Depends(get_embedding_provider),
    index_manager: IndexNamespaceManager = Depends(get_index_manager),
    reranker: Reranker = Depends(get_reranker),
) -> AsyncGenerator[RetrievalService, None]:
    """Provides a RetrievalService scoped to the request's session."""
    repository = SQLAlchemyDocumentRepository(session)
    yield RetrievalService(repository, embedding_provider, index_manager, reranker)


async def get_account_service(
    session: AsyncSession = Depends(get_db_session),
    index_manager: IndexNamespaceManager = Depends(get_index_manager),
    locks: EnvelopeLockRegistry = Depends(get_lock_registry),
) -> AsyncGenerator[AccountService, None]:
    repository = SQLAlchemyDocumentRepository(session)
    yield AccountService(repository, index_manager, locks)

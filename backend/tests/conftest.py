"""Shared in-memory fakes for the pipeline ports."""

import uuid
import zlib

import pytest

from app.application.interfaces import DocumentRepository, EmbeddingProvider
from app.application.services import (
    Chunker,
    DocumentService,
    EnvelopeLockRegistry,
    FormatParser,
    IndexNamespaceManager,
    IngestionService,
    KeywordTopicClassifier,
    RetrievalService,
)
from app.domain.entities import DocumentCategory, DocumentEnvelope, DocumentVersion
from app.infrastructure.vector_index import InMemoryVectorIndex

DIMENSIONS = 16


def embed_text(text: str) -> list[float]:
    """Deterministic bag-of-words vector: each word bumps one hashed dimension."""
    vector = [0.0] * DIMENSIONS
    for word in text.lower().split():
        vector[zlib.crc32(word.strip(".,:;!?").encode()) % DIMENSIONS] += 1.0
    return vector


class FakeEmbeddingProvider(EmbeddingProvider):
    """Records every call; never touches the network."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self.query_calls: list[str] = []

    @property
    def dimensions(self) -> int:
        return DIMENSIONS

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [embed_text(t) for t in texts]

    async def generate_query_embedding(self, query: str) -> list[float]:
        self.query_calls.append(query)
        return embed_text(query)


class FakeDocumentRepository(DocumentRepository):
    """In-memory fake repository for unit testing."""

    def __init__(self):
        self.envelopes: dict[str, DocumentEnvelope] = {}
        self.versions: dict[str, DocumentVersion] = {}
        self.commits = 0

    async def create_envelope(self, envelope: DocumentEnvelope) -> DocumentEnvelope:
        envelope.id = envelope.id or str(uuid.uuid4())
        self.envelopes[envelope.id] = envelope
        return envelope

    async def get_envelope(self, envelope_id: str) -> DocumentEnvelope | None:
        return self.envelopes.get(envelope_id)

    async def update_envelope(self, envelope: DocumentEnvelope) -> DocumentEnvelope:
        if envelope.id not in self.envelopes:
            raise ValueError(f"Envelope {envelope.id} not found")
        self.envelopes[envelope.id] = envelope
        return envelope

    async def delete_envelope(self, envelope_id: str) -> bool:
        return self.envelopes.pop(envelope_id, None) is not None

    async def list_envelopes(
        self,
        owner_id: str,
        *,
        workspace_id: str | None = None,
        category: DocumentCategory | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[DocumentEnvelope]:
        envelopes = [
            e
            for e in self.envelopes.values()
            if e.owner_id == owner_id
            and (workspace_id is None or e.workspace_id == workspace_id)
            and (category is None or e.category == category)
        ]
        return envelopes[skip : skip + limit]

    async def list_searchable_document_ids(self, owner_id: str) -> list[str]:
        return [
            e.id
            for e in self.envelopes.values()
            if e.owner_id == owner_id and e.is_indexable
        ]

    async def create_version(self, version: DocumentVersion) -> DocumentVersion:
        version.id = version.id or str(uuid.uuid4())
        self.versions[version.id] = version
        return version

    async def get_version(self, version_id: str) -> DocumentVersion | None:
        return self.versions.get(version_id)

    async def list_versions(self, envelope_id: str) -> list[DocumentVersion]:
        versions = [v for v in self.versions.values() if v.envelope_id == envelope_id]
        return sorted(versions, key=lambda v: v.version_number)

    async def latest_version_number(self, envelope_id: str) -> int:
        numbers = [v.version_number for v in self.versions.values() if v.envelope_id == envelope_id]
        return max(numbers, default=0)

    async def delete_versions(self, envelope_id: str) -> int:
        doomed = [vid for vid, v in self.versions.items() if v.envelope_id == envelope_id]
        for vid in doomed:
            del self.versions[vid]
        return len(doomed)

    async def commit(self) -> None:
        self.commits += 1


def make_index_manager(embedder, vector_index, **overrides) -> IndexNamespaceManager:
    """Index manager with zero backoff so retry tests run instantly."""
    options = {"batch_size": 50, "max_concurrent_batches": 4, "max_attempts": 3, "backoff_seconds": 0}
    options.update(overrides)
    return IndexNamespaceManager(embedder, vector_index, **options)


def make_ingestion(index_manager, blob_store=None) -> IngestionService:
    return IngestionService(
        FormatParser(),
        Chunker(KeywordTopicClassifier()),
        index_manager,
        blob_store,
    )


def webvtt(count: int, *, start: int = 0, speaker: str = "Ada", words: str = "status update") -> str:
    """A WebVTT transcript with ``count`` one-second cues."""
    cues = ["WEBVTT", ""]
    for i in range(start, start + count):
        cues.append(f"00:00:{i:02d}.000 --> 00:00:{i:02d}.900")
        cues.append(f"{speaker}: {words} {i}")
        cues.append("")
    return "\n".join(cues)


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def repository() -> FakeDocumentRepository:
    return FakeDocumentRepository()


@pytest.fixture
def locks() -> EnvelopeLockRegistry:
    return EnvelopeLockRegistry()


@pytest.fixture
def index_manager(embedder, vector_index) -> IndexNamespaceManager:
    return make_index_manager(embedder, vector_index)


@pytest.fixture
def ingestion(index_manager) -> IngestionService:
    return make_ingestion(index_manager)


@pytest.fixture
def document_service(repository, ingestion, index_manager, locks) -> DocumentService:
    return DocumentService(repository, ingestion, index_manager, locks)


@pytest.fixture
def retrieval_service(repository, embedder, index_manager) -> RetrievalService:
    return RetrievalService(repository, embedder, index_manager)

"""Unit tests for the IndexNamespaceManager."""

import asyncio

import pytest

from conftest import FakeEmbeddingProvider, embed_text, make_index_manager

from app.application.services import IndexNamespaceManager
from app.domain.entities import Chunk
from app.domain.exceptions import EmbeddingProviderError, IndexBackendError, InvalidConfigurationError
from app.infrastructure.vector_index import InMemoryVectorIndex


def make_chunks(document_id: str, count: int, words: str = "budget review") -> list[Chunk]:
    return [
        Chunk(
            chunk_id=f"{document_id}-chunk-{i}",
            source_document_id=document_id,
            chunk_index=i,
            topic="unclassified",
            start_sequence=i,
            end_sequence=i,
            text=f"{words} {i}",
            approx_token_count=4,
        )
        for i in range(count)
    ]


class FlakyEmbeddingProvider(FakeEmbeddingProvider):
    """Fails the first ``failures`` calls with a rate-limit error."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        if self.failures > 0:
            self.failures -= 1
            self.calls.append(list(texts))
            raise EmbeddingProviderError("fake", 429, "rate limited")
        return await super().generate_embeddings(texts)


class PoisonEmbeddingProvider(FakeEmbeddingProvider):
    """Always fails for batches containing the word 'poison'."""

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        if any("poison" in t for t in texts):
            self.calls.append(list(texts))
            raise EmbeddingProviderError("fake", 500, "boom")
        return await super().generate_embeddings(texts)


class SlowEmbeddingProvider(FakeEmbeddingProvider):
    """Tracks how many embedding calls are in flight at once."""

    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return await super().generate_embeddings(texts)


class BrokenIndex(InMemoryVectorIndex):
    """Every write operation fails."""

    def __init__(self):
        super().__init__()
        self.attempts = 0

    async def delete_by_document(self, namespace, document_id):
        self.attempts += 1
        raise IndexBackendError("fake", "delete_by_document", "connection reset")

    async def delete_namespace(self, namespace):
        self.attempts += 1
        raise IndexBackendError("fake", "delete_namespace", "connection reset")


# ── Upserts ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_upsert_writes_into_owner_namespace(index_manager, vector_index, embedder):
    result = await index_manager.upsert_chunks("alice", "doc-1", make_chunks("doc-1", 3))

    assert result.succeeded
    assert result.indexed_chunk_ids == ["doc-1-chunk-0", "doc-1-chunk-1", "doc-1-chunk-2"]
    assert vector_index.namespaces() == ["owner-alice"]
    record = vector_index.records("owner-alice")[0]
    assert record.document_id == "doc-1"
    assert record.values == embed_text(record.content)
    assert record.metadata["chunk_index"] == 0


@pytest.mark.asyncio
async def test_reupserting_the_same_chunks_does_not_duplicate(index_manager, vector_index):
    chunks = make_chunks("doc-1", 4)
    await index_manager.upsert_chunks("alice", "doc-1", chunks)
    await index_manager.upsert_chunks("alice", "doc-1", chunks)

    assert len(vector_index.records("owner-alice")) == 4


@pytest.mark.asyncio
async def test_chunks_are_embedded_in_batches(vector_index, embedder):
    manager = make_index_manager(embedder, vector_index, batch_size=50)

    result = await manager.upsert_chunks("alice", "doc-1", make_chunks("doc-1", 120))

    assert sorted(len(call) for call in embedder.calls) == [20, 50, 50]
    assert len(result.indexed_chunk_ids) == 120


@pytest.mark.asyncio
async def test_concurrent_batches_are_bounded(vector_index):
    embedder = SlowEmbeddingProvider()
    manager = make_index_manager(embedder, vector_index, batch_size=2, max_concurrent_batches=2)

    await manager.upsert_chunks("alice", "doc-1", make_chunks("doc-1", 12))

    assert len(embedder.calls) == 6
    assert embedder.max_in_flight == 2


@pytest.mark.asyncio
async def test_transient_provider_errors_are_retried(vector_index):
    embedder = FlakyEmbeddingProvider(failures=2)
    manager = make_index_manager(embedder, vector_index, max_attempts=3)

    result = await manager.upsert_chunks("alice", "doc-1", make_chunks("doc-1", 2))

    assert result.succeeded
    assert len(embedder.calls) == 3
    assert len(vector_index.records("owner-alice")) == 2


@pytest.mark.asyncio
async def test_exhausted_batch_is_reported_not_raised(vector_index):
    embedder = PoisonEmbeddingProvider()
    manager = make_index_manager(embedder, vector_index, batch_size=2, max_attempts=3)
    chunks = make_chunks("doc-1", 4)
    chunks[3].text = "poison pill"

    result = await manager.upsert_chunks("alice", "doc-1", chunks)

    assert result.is_partial
    assert result.failed_chunk_ids == ["doc-1-chunk-2", "doc-1-chunk-3"]
    assert result.indexed_chunk_ids == ["doc-1-chunk-0", "doc-1-chunk-1"]
    assert len([c for c in embedder.calls if any("poison" in t for t in c)]) == 3


@pytest.mark.asyncio
async def test_upsert_discards_results_once_document_is_gone(index_manager, vector_index, embedder):
    result = await index_manager.upsert_chunks(
        "alice", "doc-1", make_chunks("doc-1", 3), is_live=lambda: False
    )

    assert result.discarded
    assert not result.succeeded
    assert vector_index.records("owner-alice") == []


@pytest.mark.asyncio
async def test_liveness_is_checked_after_embedding(vector_index):
    state = {"live": True}

    class KillingProvider(FakeEmbeddingProvider):
        async def generate_embeddings(self, texts):
            state["live"] = False
            return await super().generate_embeddings(texts)

    embedder = KillingProvider()
    manager = make_index_manager(embedder, vector_index)

    result = await manager.upsert_chunks(
        "alice", "doc-1", make_chunks("doc-1", 2), is_live=lambda: state["live"]
    )

    assert len(embedder.calls) == 1
    assert result.discarded
    assert vector_index.records("owner-alice") == []


@pytest.mark.asyncio
async def test_empty_chunk_list_is_a_noop(index_manager, embedder):
    result = await index_manager.upsert_chunks("alice", "doc-1", [])
    assert result.chunk_count == 0
    assert embedder.calls == []


# ── Deletes ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_delete_document_only_touches_that_document(index_manager, vector_index):
    await index_manager.upsert_chunks("alice", "doc-1", make_chunks("doc-1", 2))
    await index_manager.upsert_chunks("alice", "doc-2", make_chunks("doc-2", 2))

    removed = await index_manager.delete_document("alice", "doc-1")

    assert removed == 2
    assert {r.document_id for r in vector_index.records("owner-alice")} == {"doc-2"}


@pytest.mark.asyncio
async def test_delete_of_unindexed_document_is_a_noop(index_manager):
    assert await index_manager.delete_document("alice", "never-indexed") == 0


@pytest.mark.asyncio
async def test_delete_document_raises_after_retries(embedder):
    index = BrokenIndex()
    manager = make_index_manager(embedder, index, max_attempts=3)

    with pytest.raises(IndexBackendError):
        await manager.delete_document("alice", "doc-1")
    assert index.attempts == 3


@pytest.mark.asyncio
async def test_delete_namespace_is_best_effort(embedder):
    manager = make_index_manager(embedder, BrokenIndex())
    assert await manager.delete_namespace("alice") is False


@pytest.mark.asyncio
async def test_delete_namespace_removes_only_that_owner(index_manager, vector_index):
    await index_manager.upsert_chunks("alice", "doc-1", make_chunks("doc-1", 2))
    await index_manager.upsert_chunks("bob", "doc-9", make_chunks("doc-9", 2))

    assert await index_manager.delete_namespace("alice") is True
    assert vector_index.namespaces() == ["owner-bob"]


@pytest.mark.asyncio
async def test_delete_stale_chunks_keeps_current_ids(index_manager, vector_index):
    await index_manager.upsert_chunks("alice", "doc-1", make_chunks("doc-1", 4))

    stale = await index_manager.delete_stale_chunks("alice", "doc-1", ["doc-1-chunk-0", "doc-1-chunk-1"])

    assert stale == ["doc-1-chunk-2", "doc-1-chunk-3"]
    assert sorted(r.chunk_id for r in vector_index.records("owner-alice")) == [
        "doc-1-chunk-0",
        "doc-1-chunk-1",
    ]


# ── Isolation ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_query_never_crosses_namespaces(index_manager):
    await index_manager.upsert_chunks("alice", "doc-a", make_chunks("doc-a", 2, words="secret plan"))
    await index_manager.upsert_chunks("bob", "doc-b", make_chunks("doc-b", 2, words="secret plan"))

    matches = await index_manager.query(
        "alice", embed_text("secret plan"), top_k=10, document_ids=["doc-a", "doc-b"]
    )

    assert matches
    assert {m.document_id for m in matches} == {"doc-a"}


def test_namespace_naming():
    assert IndexNamespaceManager.namespace_for("alice") == "owner-alice"
    with pytest.raises(InvalidConfigurationError):
        IndexNamespaceManager.namespace_for("")


@pytest.mark.parametrize("option", ["batch_size", "max_concurrent_batches", "max_attempts"])
def test_non_positive_options_are_rejected(option, embedder, vector_index):
    with pytest.raises(InvalidConfigurationError):
        make_index_manager(embedder, vector_index, **{option: 0})

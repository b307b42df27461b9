"""Process-local VectorIndex for development and tests.

Same contract as the pgvector index: records keyed by
``(namespace, document_id, chunk_id)``, cosine-similarity ranking, and
queries that never cross namespaces. Nothing is persisted.
"""

import math

from app.application.interfaces.vector_index import VectorIndex
from app.domain.entities import ChunkMatch, VectorRecord


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorIndex(VectorIndex):
    def __init__(self) -> None:
        self._namespaces: dict[str, dict[tuple[str, str], VectorRecord]] = {}

    async def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        space = self._namespaces.setdefault(namespace, {})
        for record in records:
            space[(record.document_id, record.chunk_id)] = record

    async def delete_by_document(self, namespace: str, document_id: str) -> int:
        space = self._namespaces.get(namespace, {})
        keys = [key for key in space if key[0] == document_id]
        for key in keys:
            del space[key]
        return len(keys)

    async def delete_ids(self, namespace: str, document_id: str, chunk_ids: list[str]) -> int:
        space = self._namespaces.get(namespace, {})
        removed = 0
        for chunk_id in chunk_ids:
            if space.pop((document_id, chunk_id), None) is not None:
                removed += 1
        return removed

    async def list_chunk_ids(self, namespace: str, document_id: str) -> list[str]:
        space = self._namespaces.get(namespace, {})
        return [chunk_id for doc_id, chunk_id in space if doc_id == document_id]

    async def delete_namespace(self, namespace: str) -> None:
        self._namespaces.pop(namespace, None)

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
        allowed = set(document_ids) if document_ids is not None else None
        matches = []
        for record in self._namespaces.get(namespace, {}).values():
            if allowed is not None and record.document_id not in allowed:
                continue
            if topic is not None and record.topic != topic:
                continue
            score = _cosine_similarity(vector, record.values)
            if score < min_score:
                continue
            matches.append(
                ChunkMatch(
                    chunk_id=record.chunk_id,
                    document_id=record.document_id,
                    score=score,
                    content=record.content,
                    topic=record.topic,
                    metadata=dict(record.metadata),
                )
            )
        matches.sort(key=lambda m: (-m.score, m.document_id, m.chunk_id))
        return matches[:top_k]

    # ── Inspection helpers (tests / debugging) ───────────────────────

    def records(self, namespace: str) -> list[VectorRecord]:
        return list(self._namespaces.get(namespace, {}).values())

    def namespaces(self) -> list[str]:
        return [name for name, space in self._namespaces.items() if space]

"""Default reranker: keeps the vector-search order."""

from app.application.interfaces.reranker import Reranker
from app.domain.entities import ChunkMatch


class PassthroughReranker(Reranker):
    async def rerank(self, query: str, matches: list[ChunkMatch], top_n: int) -> list[ChunkMatch]:
        return matches[:top_n]

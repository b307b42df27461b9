"""Abstract interface (port) for reranking retrieval candidates."""

from abc import ABC, abstractmethod

from app.domain.entities import ChunkMatch


class Reranker(ABC):
    """Port for re-scoring vector-search candidates against the query text.

    Retrieval asks the index for ``top_k * candidate_multiplier`` candidates
    so the reranker has more than the final ``top_k`` to choose from.
    """

    candidate_multiplier: int = 1

    @abstractmethod
    async def rerank(self, query: str, matches: list[ChunkMatch], top_n: int) -> list[ChunkMatch]:
        """Return at most ``top_n`` matches, best first.

        Raises:
            RerankerError: When the provider fails; callers keep vector order.
        """
        ...

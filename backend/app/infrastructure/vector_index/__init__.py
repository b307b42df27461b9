"""Vector index adapters."""

from .in_memory_index import InMemoryVectorIndex
from .pgvector_index import PgVectorIndex

__all__ = ["InMemoryVectorIndex", "PgVectorIndex"]

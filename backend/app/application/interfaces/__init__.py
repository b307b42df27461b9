from .embedding_provider import EmbeddingProvider
from .vector_index import VectorIndex
from .document_repository import DocumentRepository
from .blob_store import Blob, BlobStore
from .topic_classifier import TopicClassifier
from .reranker import Reranker

__all__ = [
    "EmbeddingProvider",
    "VectorIndex",
    "DocumentRepository",
    "Blob",
    "BlobStore",
    "TopicClassifier",
    "Reranker",
]

from .account_service import AccountService
from .chunker import Chunker
from .document_service import DocumentService
from .envelope_locks import EnvelopeLockRegistry
from .format_parser import FormatParser
from .index_namespace_manager import IndexNamespaceManager
from .ingestion_service import IngestionService
from .keyword_topic_classifier import KeywordTopicClassifier
from .passthrough_reranker import PassthroughReranker
from .retrieval_service import RetrievalService

__all__ = [
    "AccountService",
    "Chunker",
    "DocumentService",
    "EnvelopeLockRegistry",
    "FormatParser",
    "IndexNamespaceManager",
    "IngestionService",
    "KeywordTopicClassifier",
    "PassthroughReranker",
    "RetrievalService",
]

from .document_models import DocumentEnvelopeModel, DocumentVersionModel
from .chunk_vector_models import ChunkVectorModel

__all__ = [
    "DocumentEnvelopeModel",
    "DocumentVersionModel",
    "ChunkVectorModel",
]

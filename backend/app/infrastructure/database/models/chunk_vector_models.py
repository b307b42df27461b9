"""SQLAlchemy ORM model for indexed chunk vectors (pgvector)."""

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from pgvector.sqlalchemy import Vector

from app.config import get_settings
from app.infrastructure.database.base import Base

_DIMENSIONS = get_settings().embedding_dimensions


class ChunkVectorModel(Base):
    """One chunk embedding inside an owner namespace.

    A derived projection of published document content, rebuilt by
    re-publishing. Not linked to document_envelopes by a foreign key.
    """

    __tablename__ = "chunk_vectors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    namespace = Column(String(120), nullable=False, index=True)
    document_id = Column(String(200), nullable=False)
    chunk_id = Column(String(300), nullable=False)
    topic = Column(String(100), nullable=False, default="unclassified")
    content = Column(Text, nullable=False)
    metadata_ = Column("metadata", JSONB, nullable=False, server_default="{}")
    embedding = Column(Vector(_DIMENSIONS), nullable=False)  # HNSW max: 2000 dims
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("namespace", "document_id", "chunk_id", name="uq_chunk_vector_identity"),
        Index("idx_chunk_vectors_namespace_document", "namespace", "document_id"),
        Index(
            "idx_chunk_vectors_embedding_hnsw",
            embedding,
            postgresql_using="hnsw",
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )

"""SQLAlchemy ORM models for document envelopes and their immutable versions."""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from app.infrastructure.database.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
_JSON = JSON().with_variant(JSONB(), "postgresql")


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class DocumentEnvelopeModel(Base):
    """Stable identity of a document: title, flags and the published pointer."""

    __tablename__ = "document_envelopes"

    # ── Identity ──────────────────────────────────────────────────────
    id = Column(String(200), primary_key=True, default=_generate_uuid)  # uuid, or the source id of a raw ingest
    workspace_id = Column(String(100), nullable=False, index=True)
    owner_id = Column(String(100), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    category = Column(String(20), nullable=False, default="knowledge")
    document_type = Column(String(50), nullable=False, default="document")
    topics = Column(_JSON, nullable=False, default=list)

    # ── Lifecycle ─────────────────────────────────────────────────────
    is_searchable = Column(Boolean, nullable=False, default=False)
    current_published_version_id = Column(String(36), nullable=True)

    # ── Timestamps ────────────────────────────────────────────────────
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_envelopes_owner_searchable", "owner_id", "is_searchable"),
    )


class DocumentVersionModel(Base):
    """One immutable content snapshot. Rows are inserted, never updated."""

    __tablename__ = "document_versions"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    envelope_id = Column(
        String(200),
        ForeignKey("document_envelopes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version_number = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    metadata_ = Column("metadata", _JSON, nullable=False, default=dict)
    created_by = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("envelope_id", "version_number", name="uq_version_number"),
    )

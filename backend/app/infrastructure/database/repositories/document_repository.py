"""Concrete document repository implementation backed by SQLAlchemy."""

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.document_repository import DocumentRepository
from app.domain.entities import DocumentCategory, DocumentEnvelope, DocumentVersion
from app.domain.exceptions import EnvelopeNotFoundError
from app.infrastructure.database.models import DocumentEnvelopeModel, DocumentVersionModel

logger = logging.getLogger(__name__)


class SQLAlchemyDocumentRepository(DocumentRepository):
    """Implements the DocumentRepository port using SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # ── Mapping ──────────────────────────────────────────────────────

    def _to_envelope(self, model: DocumentEnvelopeModel) -> DocumentEnvelope:
        """Map ORM model → domain entity."""
        return DocumentEnvelope(
            id=model.id,
            workspace_id=model.workspace_id,
            owner_id=model.owner_id,
            title=model.title,
            category=DocumentCategory(model.category),
            document_type=model.document_type,
            topics=list(model.topics or []),
            is_searchable=model.is_searchable,
            current_published_version_id=model.current_published_version_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_version(self, model: DocumentVersionModel) -> DocumentVersion:
        return DocumentVersion(
            id=model.id,
            envelope_id=model.envelope_id,
            version_number=model.version_number,
            content=model.content,
            metadata=dict(model.metadata_ or {}),
            created_by=model.created_by,
            created_at=model.created_at,
        )

    # ── Envelopes ────────────────────────────────────────────────────

    async def create_envelope(self, envelope: DocumentEnvelope) -> DocumentEnvelope:
        model = DocumentEnvelopeModel(
            workspace_id=envelope.workspace_id,
            owner_id=envelope.owner_id,
            title=envelope.title,
            category=envelope.category.value,
            document_type=envelope.document_type,
            topics=list(envelope.topics),
            is_searchable=envelope.is_searchable,
            current_published_version_id=envelope.current_published_version_id,
            created_at=envelope.created_at,
            updated_at=envelope.updated_at,
        )
        if envelope.id:
            model.id = envelope.id
        self._session.add(model)
        await self._session.flush()
        return self._to_envelope(model)

    async def get_envelope(self, envelope_id: str) -> DocumentEnvelope | None:
        model = await self._session.get(DocumentEnvelopeModel, envelope_id)
        return self._to_envelope(model) if model else None

    async def update_envelope(self, envelope: DocumentEnvelope) -> DocumentEnvelope:
        model = await self._session.get(DocumentEnvelopeModel, envelope.id)
        if model is None:
            raise EnvelopeNotFoundError(envelope.id)
        model.title = envelope.title
        model.topics = list(envelope.topics)
        model.is_searchable = envelope.is_searchable
        model.current_published_version_id = envelope.current_published_version_id
        model.updated_at = envelope.updated_at
        await self._session.flush()
        return self._to_envelope(model)

    async def delete_envelope(self, envelope_id: str) -> bool:
        model = await self._session.get(DocumentEnvelopeModel, envelope_id)
        if model is None:
            return False
        await self._session.delete(model)
        await self._session.flush()
        return True

    async def list_envelopes(
        self,
        owner_id: str,
        *,
        workspace_id: str | None = None,
        category: DocumentCategory | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[DocumentEnvelope]:
        stmt = select(DocumentEnvelopeModel).where(DocumentEnvelopeModel.owner_id == owner_id)
        if workspace_id is not None:
            stmt = stmt.where(DocumentEnvelopeModel.workspace_id == workspace_id)
        if category is not None:
            stmt = stmt.where(DocumentEnvelopeModel.category == category.value)
        stmt = stmt.order_by(
            DocumentEnvelopeModel.created_at.desc(), DocumentEnvelopeModel.id
        ).offset(skip).limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_envelope(row) for row in result.scalars().all()]

    async def list_searchable_document_ids(self, owner_id: str) -> list[str]:
        stmt = select(DocumentEnvelopeModel.id).where(
            DocumentEnvelopeModel.owner_id == owner_id,
            DocumentEnvelopeModel.is_searchable.is_(True),
            DocumentEnvelopeModel.current_published_version_id.is_not(None),
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ── Versions ─────────────────────────────────────────────────────

    async def create_version(self, version: DocumentVersion) -> DocumentVersion:
        model = DocumentVersionModel(
            envelope_id=version.envelope_id,
            version_number=version.version_number,
            content=version.content,
            metadata_=dict(version.metadata),
            created_by=version.created_by,
            created_at=version.created_at,
        )
        if version.id:
            model.id = version.id
        self._session.add(model)
        await self._session.flush()
        return self._to_version(model)

    async def get_version(self, version_id: str) -> DocumentVersion | None:
        model = await self._session.get(DocumentVersionModel, version_id)
        return self._to_version(model) if model else None

    async def list_versions(self, envelope_id: str) -> list[DocumentVersion]:
        stmt = (
            select(DocumentVersionModel)
            .where(DocumentVersionModel.envelope_id == envelope_id)
            .order_by(DocumentVersionModel.version_number)
        )
        result = await self._session.execute(stmt)
        return [self._to_version(row) for row in result.scalars().all()]

    async def latest_version_number(self, envelope_id: str) -> int:
        stmt = select(func.max(DocumentVersionModel.version_number)).where(
            DocumentVersionModel.envelope_id == envelope_id
        )
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def delete_versions(self, envelope_id: str) -> int:
        result = await self._session.execute(
            delete(DocumentVersionModel).where(DocumentVersionModel.envelope_id == envelope_id)
        )
        count = result.rowcount
        if count > 0:
            logger.info("Deleted %d versions of envelope %s", count, envelope_id)
        return count

    # ── Transactions ─────────────────────────────────────────────────

    async def commit(self) -> None:
        await self._session.commit()

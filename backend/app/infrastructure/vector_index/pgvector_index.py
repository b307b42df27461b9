"""PostgreSQL + pgvector implementation of the VectorIndex port.

Namespaces are a column, not separate tables: every statement filters on
``namespace`` so one owner's query can never see another owner's rows.
Each operation runs in its own short transaction, independent of the
request's relational unit of work.
"""

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces.vector_index import VectorIndex
from app.domain.entities import ChunkMatch, VectorRecord
from app.domain.exceptions import IndexBackendError
from app.infrastructure.database.models.chunk_vector_models import ChunkVectorModel

logger = logging.getLogger(__name__)

_BACKEND = "pgvector"


class PgVectorIndex(VectorIndex):
    """Concrete vector index backed by PostgreSQL + pgvector."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        if not records:
            return

        table = ChunkVectorModel.__table__
        stmt = pg_insert(table).values(
            [
                {
                    "namespace": namespace,
                    "document_id": record.document_id,
                    "chunk_id": record.chunk_id,
                    "topic": record.topic,
                    "content": record.content,
                    "metadata": record.metadata,
                    "embedding": record.values,
                }
                for record in records
            ]
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_chunk_vector_identity",
            set_={
                "topic": stmt.excluded.topic,
                "content": stmt.excluded.content,
                "metadata": stmt.excluded["metadata"],
                "embedding": stmt.excluded.embedding,
                "updated_at": func.now(),
            },
        )
        try:
            async with self._session_factory.begin() as session:
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise IndexBackendError(_BACKEND, "upsert", str(exc)) from exc
        logger.debug("Upserted %d vectors into %s", len(records), namespace)

    async def delete_by_document(self, namespace: str, document_id: str) -> int:
        stmt = delete(ChunkVectorModel).where(
            ChunkVectorModel.namespace == namespace,
            ChunkVectorModel.document_id == document_id,
        )
        return await self._execute_delete(stmt, "delete_by_document")

    async def delete_ids(self, namespace: str, document_id: str, chunk_ids: list[str]) -> int:
        if not chunk_ids:
            return 0
        stmt = delete(ChunkVectorModel).where(
            ChunkVectorModel.namespace == namespace,
            ChunkVectorModel.document_id == document_id,
            ChunkVectorModel.chunk_id.in_(chunk_ids),
        )
        return await self._execute_delete(stmt, "delete_ids")

    async def list_chunk_ids(self, namespace: str, document_id: str) -> list[str]:
        stmt = select(ChunkVectorModel.chunk_id).where(
            ChunkVectorModel.namespace == namespace,
            ChunkVectorModel.document_id == document_id,
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise IndexBackendError(_BACKEND, "list_chunk_ids", str(exc)) from exc

    async def delete_namespace(self, namespace: str) -> None:
        stmt = delete(ChunkVectorModel).where(ChunkVectorModel.namespace == namespace)
        await self._execute_delete(stmt, "delete_namespace")

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
        if document_ids is not None and not document_ids:
            return []

        # 1 - cosine distance gives cosine similarity
        distance = ChunkVectorModel.embedding.cosine_distance(vector)
        score = (1 - distance).label("score")

        stmt = select(
            ChunkVectorModel.chunk_id,
            ChunkVectorModel.document_id,
            ChunkVectorModel.topic,
            ChunkVectorModel.content,
            ChunkVectorModel.metadata_,
            score,
        ).where(ChunkVectorModel.namespace == namespace)
        if document_ids is not None:
            stmt = stmt.where(ChunkVectorModel.document_id.in_(document_ids))
        if topic is not None:
            stmt = stmt.where(ChunkVectorModel.topic == topic)
        if min_score > -1.0:
            stmt = stmt.where((1 - distance) >= min_score)
        stmt = stmt.order_by(distance).limit(top_k)

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise IndexBackendError(_BACKEND, "query", str(exc)) from exc

        return [
            ChunkMatch(
                chunk_id=row.chunk_id,
                document_id=row.document_id,
                score=float(row.score),
                content=row.content,
                topic=row.topic,
                metadata=dict(row.metadata_ or {}),
            )
            for row in rows
        ]

    async def _execute_delete(self, stmt, operation: str) -> int:
        try:
            async with self._session_factory.begin() as session:
                result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise IndexBackendError(_BACKEND, operation, str(exc)) from exc
        return result.rowcount or 0

"""Document service — envelope/version lifecycle with index side effects.

An envelope is the stable identity of a document; its content lives in an
append-only list of immutable versions. The published pointer decides which
version is shown and which one may be indexed: drafts never reach the index,
and only searchable envelopes with a published version are indexed at all.

State machine::

    draft-only ──publish──▶ published ──publish──▶ published
        ▲                      │
        └──────unpublish───────┘        any ──delete──▶ deleted (terminal)

Every mutation of one envelope runs under that envelope's lock, and its
relational change is committed before the lock is released or the index
is touched. Raw source material enters through ``ingest``: it becomes a
searchable raw envelope whose newest version is published right away.
"""

import logging
from collections.abc import Sequence
from typing import Any

from app.application.interfaces.document_repository import DocumentRepository
from app.application.services.envelope_locks import EnvelopeLockRegistry
from app.application.services.index_namespace_manager import IndexNamespaceManager
from app.application.services.ingestion_service import IngestionService
from app.domain.entities import (
    ChunkOptions,
    DocumentCategory,
    DocumentEnvelope,
    DocumentVersion,
    IndexingResult,
    PublishResult,
)
from app.domain.exceptions import EnvelopeNotFoundError, IndexBackendError, VersionNotFoundError
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("DocumentService")

DEFAULT_WORKSPACE_ID = "default"
_RAW_DOCUMENT_TYPE = "transcript"


class DocumentService:
    """Orchestrates document versioning. Depends on the repository and index ports (DI)."""

    def __init__(
        self,
        repository: DocumentRepository,
        ingestion: IngestionService,
        index_manager: IndexNamespaceManager,
        locks: EnvelopeLockRegistry,
        *,
        chunk_options: ChunkOptions | None = None,
    ):
        self._repository = repository
        self._ingestion = ingestion
        self._index = index_manager
        self._locks = locks
        self._chunk_options = chunk_options or ChunkOptions()

    # ── Reads ────────────────────────────────────────────────────────

    async def get_envelope(self, envelope_id: str, *, owner_id: str | None = None) -> DocumentEnvelope:
        """Load an envelope; an envelope of another owner is reported as missing."""
        envelope = await self._repository.get_envelope(envelope_id)
        if envelope is None or (owner_id is not None and envelope.owner_id != owner_id):
            raise EnvelopeNotFoundError(envelope_id)
        return envelope

    async def list_documents(
        self,
        owner_id: str,
        *,
        workspace_id: str | None = None,
        category: DocumentCategory | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[DocumentEnvelope]:
        return await self._repository.list_envelopes(
            owner_id, workspace_id=workspace_id, category=category, skip=skip, limit=limit
        )

    async def list_versions(self, envelope_id: str, *, owner_id: str | None = None) -> list[DocumentVersion]:
        await self.get_envelope(envelope_id, owner_id=owner_id)
        return await self._repository.list_versions(envelope_id)

    async def get_version(
        self, envelope_id: str, version_id: str, *, owner_id: str | None = None
    ) -> DocumentVersion:
        await self.get_envelope(envelope_id, owner_id=owner_id)
        return await self._version_of(envelope_id, version_id)

    async def get_published_version(
        self, envelope_id: str, *, owner_id: str | None = None
    ) -> DocumentVersion | None:
        """The version currently shown outside the editor, or ``None`` for a draft-only document."""
        envelope = await self.get_envelope(envelope_id, owner_id=owner_id)
        if envelope.current_published_version_id is None:
            return None
        return await self._version_of(envelope_id, envelope.current_published_version_id)

    # ── Mutations ────────────────────────────────────────────────────

    async def create_document(
        self,
        owner_id: str,
        workspace_id: str,
        title: str,
        content: str,
        *,
        category: DocumentCategory = DocumentCategory.KNOWLEDGE,
        document_type: str = "document",
        topics: Sequence[str] = (),
        metadata: dict[str, Any] | None = None,
        is_searchable: bool = False,
        publish: bool = False,
    ) -> tuple[DocumentEnvelope, DocumentVersion, PublishResult | None]:
        """Create an envelope with its first version, optionally publishing it.

        Returns:
            ``(envelope, version, publish_result)`` where ``publish_result`` is
            ``None`` unless ``publish`` was requested.
        """
        envelope = await self._repository.create_envelope(
            DocumentEnvelope(
                workspace_id=workspace_id,
                owner_id=owner_id,
                title=title,
                category=category,
                document_type=document_type,
                topics=list(dict.fromkeys(topics)),
                is_searchable=is_searchable,
            )
        )
        version = await self._repository.create_version(
            DocumentVersion(
                envelope_id=envelope.id,
                content=content,
                version_number=1,
                created_by=owner_id,
                metadata=dict(metadata or {}),
            )
        )
        await self._repository.commit()
        plog.step_complete(PipelineStage.PUBLISH, f"Created document {envelope.id}", category=category.value)

        published = None
        if publish:
            published = await self.publish(envelope.id, version.id)
            envelope = await self.get_envelope(envelope.id)
        return envelope, version, published

    async def create_version(
        self,
        envelope_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
        *,
        owner_id: str | None = None,
    ) -> DocumentVersion:
        """Append a new immutable version. Never moves the pointer or touches the index."""
        async with self._locks.hold(envelope_id):
            envelope = await self.get_envelope(envelope_id, owner_id=owner_id)
            version = await self._append_version(
                envelope, content, owner_id or envelope.owner_id, dict(metadata or {})
            )
            await self._repository.commit()
            return version

    async def publish(
        self, envelope_id: str, version_id: str, *, owner_id: str | None = None
    ) -> PublishResult:
        """Point the envelope at a version and, when searchable, re-index it.

        The pointer moves even when indexing fails; the failure is reported
        in ``PublishResult.indexing``.

        Raises:
            EnvelopeNotFoundError: Unknown envelope.
            VersionNotFoundError: The version does not belong to the envelope.
        """
        async with self._locks.hold(envelope_id):
            envelope = await self.get_envelope(envelope_id, owner_id=owner_id)
            version = await self._version_of(envelope_id, version_id)

            envelope.point_to(version.id)
            await self._repository.update_envelope(envelope)
            await self._repository.commit()
            plog.step_complete(
                PipelineStage.PUBLISH,
                f"Published {envelope_id}",
                version=version.version_number,
                searchable=envelope.is_searchable,
            )

            indexing = None
            if envelope.is_searchable:
                indexing = await self._index_version(envelope, version)
            return PublishResult(envelope_id=envelope_id, version_id=version.id, indexing=indexing)

    async def reindex_on_publish(self, envelope_id: str, version_id: str) -> PublishResult:
        """Publish hook for collaborators: moves the pointer and re-indexes."""
        return await self.publish(envelope_id, version_id)

    async def unpublish(self, envelope_id: str, *, owner_id: str | None = None) -> DocumentEnvelope:
        """Return the envelope to draft-only and drop it from the index."""
        async with self._locks.hold(envelope_id):
            envelope = await self.get_envelope(envelope_id, owner_id=owner_id)
            was_published = envelope.current_published_version_id is not None
            envelope.point_to(None)
            envelope = await self._repository.update_envelope(envelope)
            await self._repository.commit()
            if was_published:
                await self._remove_quietly(envelope)
            return envelope

    async def set_searchable(
        self, envelope_id: str, value: bool, *, owner_id: str | None = None
    ) -> IndexingResult | None:
        """Toggle searchability.

        ``True`` indexes the current published version (nothing happens for a
        draft-only document). ``False`` removes the document from the index.

        Returns:
            The IndexingResult when indexing ran, else ``None``.
        """
        async with self._locks.hold(envelope_id):
            envelope = await self.get_envelope(envelope_id, owner_id=owner_id)
            envelope.set_searchable(value)
            envelope = await self._repository.update_envelope(envelope)
            await self._repository.commit()

            if not value:
                await self._remove_quietly(envelope)
                return None
            if envelope.current_published_version_id is None:
                return None
            version = await self._version_of(envelope_id, envelope.current_published_version_id)
            return await self._index_version(envelope, version)

    async def update_title(self, envelope_id: str, title: str, *, owner_id: str | None = None) -> DocumentEnvelope:
        async with self._locks.hold(envelope_id):
            envelope = await self.get_envelope(envelope_id, owner_id=owner_id)
            envelope.rename(title)
            envelope = await self._repository.update_envelope(envelope)
            await self._repository.commit()
            return envelope

    async def remove_from_index(self, envelope_id: str) -> int:
        """Drop a document's vectors without changing its state.

        Raises:
            IndexBackendError: When the index still fails after retries.
        """
        async with self._locks.hold(envelope_id):
            envelope = await self.get_envelope(envelope_id)
            return await self._index.delete_document(envelope.owner_id, envelope_id)

    async def delete(self, envelope_id: str, *, owner_id: str | None = None) -> None:
        """Delete versions, then the envelope, then the document's vectors.

        In-flight indexing of this envelope drops its remaining results. An
        index failure at the end is logged only: the document can no longer
        pass the retrieval filter, so leftover vectors are unreachable.
        """
        envelope = await self.get_envelope(envelope_id, owner_id=owner_id)
        async with self._locks.deleting(envelope_id):
            versions = await self._repository.delete_versions(envelope_id)
            await self._repository.delete_envelope(envelope_id)
            await self._repository.commit()
            plog.step_complete(PipelineStage.DELETE, f"Deleted document {envelope_id}", versions=versions)
            await self._remove_quietly(envelope)

    # ── Direct ingestion ─────────────────────────────────────────────

    async def ingest(
        self,
        owner_id: str,
        source_document_id: str,
        raw_text: str,
        *,
        format_hint: str | None = None,
        topics: Sequence[str] = (),
        options: ChunkOptions | None = None,
        workspace_id: str = DEFAULT_WORKSPACE_ID,
        title: str | None = None,
    ) -> IndexingResult:
        """Index raw source material under ``source_document_id``.

        An unknown id creates a searchable raw envelope. A known id of the
        same owner gets the text as a new version. Either way that version is
        published and, when the envelope is searchable, indexed under the
        envelope's lock. A dry run only chunks; nothing is stored.

        Raises:
            EnvelopeNotFoundError: The id belongs to another owner.
            InvalidConfigurationError: Non-positive chunk size.
        """
        options = options or self._chunk_options
        if options.dry_run:
            return await self._ingestion.ingest(
                owner_id, source_document_id, raw_text, format_hint=format_hint, topics=topics, options=options
            )

        async with self._locks.hold(source_document_id):
            envelope = await self._repository.get_envelope(source_document_id)
            if envelope is not None and envelope.owner_id != owner_id:
                raise EnvelopeNotFoundError(source_document_id)

            topic_set = list(dict.fromkeys(topics)) or (envelope.topics if envelope else [])
            hint = format_hint or (envelope.document_type if envelope else None)
            chunks = self._ingestion.derive_chunks(source_document_id, raw_text, hint, topic_set, options)

            if envelope is None:
                envelope = await self._repository.create_envelope(
                    DocumentEnvelope(
                        id=source_document_id,
                        workspace_id=workspace_id,
                        owner_id=owner_id,
                        title=title or source_document_id,
                        category=DocumentCategory.RAW,
                        document_type=_RAW_DOCUMENT_TYPE,
                        topics=topic_set,
                        is_searchable=True,
                    )
                )
            else:
                envelope.topics = topic_set

            version = await self._append_version(
                envelope,
                raw_text,
                owner_id,
                {"source": "ingest", "format_hint": hint, "chunk_size": options.chunk_size},
            )
            envelope.point_to(version.id)
            envelope = await self._repository.update_envelope(envelope)
            await self._repository.commit()
            plog.step_complete(
                PipelineStage.PUBLISH,
                f"Ingested {envelope.id}",
                version=version.version_number,
                searchable=envelope.is_searchable,
            )

            if not envelope.is_searchable:
                return IndexingResult(source_document_id=envelope.id, chunk_count=len(chunks), chunks=chunks)
            return await self._ingestion.index_chunks(
                owner_id, envelope.id, chunks, is_live=self._locks.liveness(envelope.id)
            )

    async def retry_ingest(
        self, owner_id: str, source_document_id: str, chunk_ids: Sequence[str]
    ) -> IndexingResult:
        """Re-index selected chunks of the published version after a partial failure.

        Chunks are re-derived from the stored version with the options it was
        indexed with, so the ids match the ones reported as failed. A document
        that is no longer indexable is left alone.
        """
        async with self._locks.hold(source_document_id):
            envelope = await self.get_envelope(source_document_id, owner_id=owner_id)
            if not envelope.is_indexable:
                plog.detail("Retry skipped, document is not indexable", document=envelope.id)
                return IndexingResult(source_document_id=envelope.id)

            version = await self._version_of(envelope.id, envelope.current_published_version_id)
            return await self._ingestion.retry_chunks(
                envelope.owner_id,
                envelope.id,
                version.content,
                chunk_ids,
                format_hint=self._format_hint(envelope, version),
                topics=envelope.topics,
                options=self._options_for(version),
                is_live=self._locks.liveness(envelope.id),
            )

    async def ingest_blob(
        self,
        owner_id: str,
        source_document_id: str,
        reference: str,
        *,
        format_hint: str | None = None,
        topics: Sequence[str] = (),
        options: ChunkOptions | None = None,
        title: str | None = None,
    ) -> IndexingResult:
        """Ingest a stored blob. Its recorded content type is only a fallback hint."""
        raw_text, content_type = await self._ingestion.read_blob(reference)
        return await self.ingest(
            owner_id,
            source_document_id,
            raw_text,
            format_hint=format_hint or content_type,
            topics=topics,
            options=options,
            title=title,
        )

    async def ingest_upload(
        self,
        owner_id: str,
        source_document_id: str,
        content: bytes,
        filename: str,
        *,
        format_hint: str | None = None,
        topics: Sequence[str] = (),
        options: ChunkOptions | None = None,
    ) -> tuple[str, IndexingResult]:
        """Store an uploaded file, then ingest it. Returns ``(reference, result)``."""
        reference = await self._ingestion.store_blob(content, filename)
        result = await self.ingest_blob(
            owner_id,
            source_document_id,
            reference,
            format_hint=format_hint,
            topics=topics,
            options=options,
            title=filename,
        )
        return reference, result

    # ── Internals ────────────────────────────────────────────────────

    async def _version_of(self, envelope_id: str, version_id: str) -> DocumentVersion:
        version = await self._repository.get_version(version_id)
        if version is None or version.envelope_id != envelope_id:
            raise VersionNotFoundError(version_id, envelope_id)
        return version

    async def _append_version(
        self, envelope: DocumentEnvelope, content: str, created_by: str, metadata: dict[str, Any]
    ) -> DocumentVersion:
        number = await self._repository.latest_version_number(envelope.id) + 1
        return await self._repository.create_version(
            DocumentVersion(
                envelope_id=envelope.id,
                content=content,
                version_number=number,
                created_by=created_by,
                metadata=metadata,
            )
        )

    async def _index_version(self, envelope: DocumentEnvelope, version: DocumentVersion) -> IndexingResult:
        return await self._ingestion.ingest(
            envelope.owner_id,
            envelope.id,
            version.content,
            format_hint=self._format_hint(envelope, version),
            topics=envelope.topics,
            options=self._options_for(version),
            is_live=self._locks.liveness(envelope.id),
        )

    @staticmethod
    def _format_hint(envelope: DocumentEnvelope, version: DocumentVersion) -> str:
        return version.metadata.get("format_hint") or envelope.document_type

    def _options_for(self, version: DocumentVersion) -> ChunkOptions:
        """Options a version was ingested with, so re-indexing reproduces its chunk ids."""
        chunk_size = version.metadata.get("chunk_size")
        if isinstance(chunk_size, int) and chunk_size > 0:
            return ChunkOptions(chunk_size=chunk_size)
        return self._chunk_options

    async def _remove_quietly(self, envelope: DocumentEnvelope) -> None:
        try:
            await self._index.delete_document(envelope.owner_id, envelope.id)
        except IndexBackendError as exc:
            plog.step_error(
                PipelineStage.DELETE,
                f"Index removal failed for {envelope.id}, vectors left unreachable",
                error=exc,
            )

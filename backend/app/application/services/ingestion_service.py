"""Ingestion service — parse → chunk → embed → index for one source document.

Parsing and chunking are pure and synchronous; only the index write
touches the network. Re-ingesting a document upserts its deterministic
chunk ids and then deletes indexed chunks that no longer exist, so the
index converges on the current content without duplicates.

This is the pipeline only. Which content gets indexed, and when, is
decided by DocumentService, which calls in here under the envelope lock.
"""

import logging
from collections.abc import Sequence

from app.application.interfaces.blob_store import BlobStore
from app.application.services.chunker import Chunker
from app.application.services.format_parser import FormatParser
from app.application.services.index_namespace_manager import IndexNamespaceManager, LivenessCheck
from app.domain.entities import Chunk, ChunkOptions, IndexingResult
from app.domain.exceptions import IndexBackendError, InvalidConfigurationError
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("IngestionService")


def decode_blob(content: bytes) -> str:
    """Decode uploaded bytes as UTF-8, dropping a BOM and replacing bad bytes."""
    return content.decode("utf-8-sig", errors="replace")


class IngestionService:
    """Runs the indexing pipeline for raw text and reads/writes raw blobs."""

    def __init__(
        self,
        parser: FormatParser,
        chunker: Chunker,
        index_manager: IndexNamespaceManager,
        blob_store: BlobStore | None = None,
        *,
        default_options: ChunkOptions | None = None,
    ):
        self._parser = parser
        self._chunker = chunker
        self._index = index_manager
        self._blob_store = blob_store
        self._default_options = default_options or ChunkOptions()

    @property
    def default_options(self) -> ChunkOptions:
        return self._default_options

    async def ingest(
        self,
        owner_id: str,
        source_document_id: str,
        raw_text: str,
        *,
        format_hint: str | None = None,
        topics: Sequence[str] = (),
        options: ChunkOptions | None = None,
        is_live: LivenessCheck | None = None,
    ) -> IndexingResult:
        """Index one document into the owner's namespace.

        Args:
            owner_id: Namespace owner.
            source_document_id: Stable document id; chunk ids derive from it.
            raw_text: Decoded source content.
            format_hint: Advisory format name or MIME type.
            topics: Closed topic set for chunk classification.
            options: Chunk size and dry-run flag.
            is_live: Liveness check forwarded to the index writer.

        Returns:
            IndexingResult. Provider/backend failures show up as
            ``failed_chunk_ids``, never as exceptions.

        Raises:
            InvalidConfigurationError: On a non-positive chunk size.
        """
        options = options or self._default_options
        chunks = self.derive_chunks(source_document_id, raw_text, format_hint, topics, options)

        if options.dry_run:
            plog.detail("Dry run, nothing embedded or indexed", document=source_document_id, chunks=len(chunks))
            return IndexingResult(
                source_document_id=source_document_id,
                chunk_count=len(chunks),
                dry_run=True,
                chunks=chunks,
            )
        return await self.index_chunks(owner_id, source_document_id, chunks, is_live=is_live)

    def derive_chunks(
        self,
        source_document_id: str,
        raw_text: str,
        format_hint: str | None,
        topics: Sequence[str],
        options: ChunkOptions,
    ) -> list[Chunk]:
        """Parse and chunk without any I/O. Raises InvalidConfigurationError on bad options."""
        with plog.timed_step(PipelineStage.PARSE, f"Parsing {source_document_id}"):
            items = self._parser.parse(raw_text, format_hint)
        return self._chunker.chunk(source_document_id, items, list(topics), options)

    async def index_chunks(
        self,
        owner_id: str,
        source_document_id: str,
        chunks: list[Chunk],
        *,
        is_live: LivenessCheck | None = None,
    ) -> IndexingResult:
        """Upsert the chunks, then delete the document's chunks that are no longer produced."""
        result = await self._index.upsert_chunks(owner_id, source_document_id, chunks, is_live=is_live)
        result.chunks = chunks

        if not result.discarded:
            try:
                result.stale_chunk_ids_deleted = await self._index.delete_stale_chunks(
                    owner_id, source_document_id, [chunk.chunk_id for chunk in chunks]
                )
            except IndexBackendError as exc:
                plog.step_warning(
                    PipelineStage.INDEX,
                    f"Stale chunk cleanup failed for {source_document_id}",
                    error=str(exc),
                )

        plog.step_complete(
            PipelineStage.COMPLETE,
            f"Ingested {source_document_id}",
            chunks=result.chunk_count,
            indexed=len(result.indexed_chunk_ids),
            failed=len(result.failed_chunk_ids),
            stale=len(result.stale_chunk_ids_deleted),
        )
        return result

    async def retry_chunks(
        self,
        owner_id: str,
        source_document_id: str,
        raw_text: str,
        chunk_ids: Sequence[str],
        *,
        format_hint: str | None = None,
        topics: Sequence[str] = (),
        options: ChunkOptions | None = None,
        is_live: LivenessCheck | None = None,
    ) -> IndexingResult:
        """Re-upsert only the given chunk ids of a previous, partially failed ingest.

        The same input and options must be supplied so the chunks re-derive to
        identical ids. Unknown ids are ignored.
        """
        options = options or self._default_options
        chunks = self.derive_chunks(source_document_id, raw_text, format_hint, topics, options)

        wanted = set(chunk_ids)
        selected = [chunk for chunk in chunks if chunk.chunk_id in wanted]
        unknown = wanted - {chunk.chunk_id for chunk in selected}
        if unknown:
            logger.warning(
                "Ignoring %d chunk id(s) not produced by %s: %s",
                len(unknown),
                source_document_id,
                ", ".join(sorted(unknown)),
            )

        result = await self._index.upsert_chunks(owner_id, source_document_id, selected, is_live=is_live)
        result.chunks = selected
        return result

    # ── Raw blobs ────────────────────────────────────────────────────

    async def store_blob(self, content: bytes, filename: str) -> str:
        """Store uploaded bytes and return the blob reference."""
        return await self._require_blob_store().store(content, filename)

    async def read_blob(self, reference: str) -> tuple[str, str | None]:
        """Read a stored blob as ``(text, recorded content type)``.

        Raises:
            EntityNotFoundError: If the blob does not exist.
        """
        blob = await self._require_blob_store().read(reference)
        return decode_blob(blob.content), blob.content_type

    def _require_blob_store(self) -> BlobStore:
        if self._blob_store is None:
            raise InvalidConfigurationError("blob_store", None, "no blob store configured")
        return self._blob_store

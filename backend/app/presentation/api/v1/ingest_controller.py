"""Direct ingestion endpoints — index raw text into the caller's namespace.

Ingested text becomes a published version of the document named by
``source_document_id``; an unknown id creates a searchable raw document.
"""

from fastapi import APIRouter, Depends, Form, HTTPException, UploadFile, status

from app.application.schemas import (
    IndexingResultResponse,
    IngestRequest,
    RetryChunksRequest,
    UploadIngestResponse,
)
from app.application.services import DocumentService
from app.domain.entities import DEFAULT_CHUNK_SIZE, ChunkOptions
from app.domain.exceptions import EntityNotFoundError, IndexingError
from app.infrastructure.dependencies import get_document_service, get_owner_id

router = APIRouter(prefix="/ingest", tags=["Ingest"])


@router.post("", response_model=IndexingResultResponse)
async def ingest(
    data: IngestRequest,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> IndexingResultResponse:
    """Parse, chunk and index raw text. ``dry_run`` returns the chunks without storing anything."""
    try:
        result = await service.ingest(
            owner_id,
            data.source_document_id,
            data.raw_text,
            format_hint=data.format_hint,
            topics=data.topics,
            options=ChunkOptions(chunk_size=data.chunk_size, dry_run=data.dry_run),
            workspace_id=data.workspace_id,
            title=data.title,
        )
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IndexingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return IndexingResultResponse.from_result(result, include_chunks=data.dry_run)


@router.post("/retry", response_model=IndexingResultResponse)
async def retry_chunks(
    data: RetryChunksRequest,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> IndexingResultResponse:
    """Re-index only the chunk ids that failed in an earlier ingest of the document."""
    try:
        result = await service.retry_ingest(owner_id, data.source_document_id, data.chunk_ids)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IndexingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return IndexingResultResponse.from_result(result)


@router.post("/upload", response_model=UploadIngestResponse)
async def upload(
    file: UploadFile,
    source_document_id: str = Form(..., min_length=1, max_length=200),
    format_hint: str | None = Form(None),
    topics: str = Form("", description="Comma-separated topic set"),
    chunk_size: int = Form(DEFAULT_CHUNK_SIZE),
    dry_run: bool = Form(False),
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> UploadIngestResponse:
    """Store an uploaded transcript or document, then ingest it.

    The upload's declared content type is ignored; the stored file's
    extension supplies the format hint when none is given.
    """
    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")

    topic_set = [t.strip() for t in topics.split(",") if t.strip()]
    try:
        reference, result = await service.ingest_upload(
            owner_id,
            source_document_id,
            content,
            file.filename or "untitled.txt",
            format_hint=format_hint,
            topics=topic_set,
            options=ChunkOptions(chunk_size=chunk_size, dry_run=dry_run),
        )
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IndexingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return UploadIngestResponse(
        reference=reference,
        result=IndexingResultResponse.from_result(result, include_chunks=dry_run),
    )

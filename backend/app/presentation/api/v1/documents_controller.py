"""Document envelope/version endpoints.

Every route is scoped to the caller's ``X-Owner-Id``: documents of other
owners answer 404, exactly like documents that do not exist.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.application.schemas import (
    DocumentCreate,
    DocumentCreatedResponse,
    DocumentResponse,
    DocumentTitleUpdate,
    IndexingResultResponse,
    PublishRequest,
    PublishResponse,
    SearchableUpdate,
    VersionCreate,
    VersionResponse,
)
from app.application.services import DocumentService
from app.domain.entities import DocumentCategory, PublishResult
from app.domain.exceptions import EntityNotFoundError, IndexingError
from app.infrastructure.dependencies import get_document_service, get_owner_id

router = APIRouter(prefix="/documents", tags=["Documents"])


def _publish_response(result: PublishResult) -> PublishResponse:
    return PublishResponse(
        envelope_id=result.envelope_id,
        version_id=result.version_id,
        indexing=IndexingResultResponse.from_result(result.indexing) if result.indexing else None,
    )


@router.post("", response_model=DocumentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    data: DocumentCreate,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> DocumentCreatedResponse:
    """Create a document (envelope + first version), optionally publishing it."""
    try:
        envelope, version, published = await service.create_document(
            owner_id,
            data.workspace_id,
            data.title,
            data.content,
            category=data.category,
            document_type=data.document_type,
            topics=data.topics,
            metadata=data.metadata,
            is_searchable=data.is_searchable,
            publish=data.publish,
        )
    except IndexingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return DocumentCreatedResponse(
        document=DocumentResponse.model_validate(envelope, from_attributes=True),
        version=VersionResponse.model_validate(version, from_attributes=True),
        publish=_publish_response(published) if published else None,
    )


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    workspace_id: str | None = None,
    category: DocumentCategory | None = None,
    skip: int = 0,
    limit: int = 100,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> list[DocumentResponse]:
    """List the caller's documents, newest first."""
    envelopes = await service.list_documents(
        owner_id, workspace_id=workspace_id, category=category, skip=skip, limit=limit
    )
    return [DocumentResponse.model_validate(e, from_attributes=True) for e in envelopes]


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    try:
        envelope = await service.get_envelope(document_id, owner_id=owner_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return DocumentResponse.model_validate(envelope, from_attributes=True)


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_title(
    document_id: str,
    data: DocumentTitleUpdate,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    """Rename a document. Titles live on the envelope, so no version is created."""
    try:
        envelope = await service.update_title(document_id, data.title, owner_id=owner_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return DocumentResponse.model_validate(envelope, from_attributes=True)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> None:
    """Delete a document with all of its versions and indexed chunks."""
    try:
        await service.delete(document_id, owner_id=owner_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{document_id}/versions", response_model=list[VersionResponse])
async def list_versions(
    document_id: str,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> list[VersionResponse]:
    try:
        versions = await service.list_versions(document_id, owner_id=owner_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return [VersionResponse.model_validate(v, from_attributes=True) for v in versions]


@router.post(
    "/{document_id}/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_version(
    document_id: str,
    data: VersionCreate,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> VersionResponse:
    """Save a new draft version. The published version is unchanged."""
    try:
        version = await service.create_version(document_id, data.content, data.metadata, owner_id=owner_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return VersionResponse.model_validate(version, from_attributes=True)


@router.post("/{document_id}/publish", response_model=PublishResponse)
async def publish(
    document_id: str,
    data: PublishRequest,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> PublishResponse:
    """Publish a version. Indexing problems are reported, not raised."""
    try:
        result = await service.publish(document_id, data.version_id, owner_id=owner_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IndexingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return _publish_response(result)


@router.post("/{document_id}/unpublish", response_model=DocumentResponse)
async def unpublish(
    document_id: str,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    try:
        envelope = await service.unpublish(document_id, owner_id=owner_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return DocumentResponse.model_validate(envelope, from_attributes=True)


@router.patch("/{document_id}/searchable", response_model=IndexingResultResponse | None)
async def set_searchable(
    document_id: str,
    data: SearchableUpdate,
    owner_id: str = Depends(get_owner_id),
    service: DocumentService = Depends(get_document_service),
) -> IndexingResultResponse | None:
    """Toggle searchability; returns the indexing outcome when indexing ran."""
    try:
        result = await service.set_searchable(document_id, data.is_searchable, owner_id=owner_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IndexingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return IndexingResultResponse.from_result(result) if result else None

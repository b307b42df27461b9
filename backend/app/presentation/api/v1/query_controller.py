"""Query endpoint — semantic search over the caller's searchable documents."""

from fastapi import APIRouter, Depends, HTTPException, status

from app.application.schemas import ChunkMatchSchema, QueryRequest, QueryResultSchema
from app.application.services import RetrievalService
from app.config import get_settings
from app.domain.exceptions import EmbeddingProviderError, IndexBackendError, IndexingError
from app.infrastructure.dependencies import get_owner_id, get_retrieval_service

router = APIRouter(prefix="/query", tags=["Query"])


@router.post("", response_model=QueryResultSchema)
async def query(
    data: QueryRequest,
    owner_id: str = Depends(get_owner_id),
    service: RetrievalService = Depends(get_retrieval_service),
) -> QueryResultSchema:
    """Return the best-matching chunks from the caller's published, searchable documents."""
    settings = get_settings()
    try:
        matches = await service.query(
            owner_id,
            data.text,
            top_k=data.top_k or settings.default_top_k,
            topic=data.topic,
            min_score=data.min_score if data.min_score is not None else settings.min_score_threshold,
        )
    except (EmbeddingProviderError, IndexBackendError) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except IndexingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    results = [ChunkMatchSchema.model_validate(m, from_attributes=True) for m in matches]
    return QueryResultSchema(matches=results, total_matches=len(results))

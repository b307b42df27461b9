"""Account endpoint — erase everything stored for the caller."""

from fastapi import APIRouter, Depends

from app.application.schemas import AccountErasureResponse
from app.application.services import AccountService
from app.infrastructure.dependencies import get_account_service, get_owner_id

router = APIRouter(prefix="/account", tags=["Account"])


@router.delete("", response_model=AccountErasureResponse)
async def erase_account(
    owner_id: str = Depends(get_owner_id),
    service: AccountService = Depends(get_account_service),
) -> AccountErasureResponse:
    """Delete all documents and the vector namespace of the caller."""
    documents_deleted, namespace_deleted = await service.erase_owner(owner_id)
    return AccountErasureResponse(
        documents_deleted=documents_deleted,
        namespace_deleted=namespace_deleted,
    )

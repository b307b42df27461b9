"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from app.presentation.api.v1.endpoints.health import router as health_router
from app.presentation.api.v1.documents_controller import router as documents_router
from app.presentation.api.v1.ingest_controller import router as ingest_router
from app.presentation.api.v1.query_controller import router as query_router
from app.presentation.api.v1.account_controller import router as account_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(documents_router)
router.include_router(ingest_router)
router.include_router(query_router)
router.include_router(account_router)

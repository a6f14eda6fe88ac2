"""
Operational endpoints
=====================

GET /api/v1/admin/health -- liveness check
"""

from fastapi import APIRouter

from src.api.schemas import HealthResponse

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()

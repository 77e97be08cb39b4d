"""Utility and system routes."""

from fastapi import APIRouter

from codelingo.schemas import HealthResponse

router = APIRouter(tags=["utility"])


@router.get("/health")
async def get_health() -> HealthResponse:
    """Liveness probe."""
    return HealthResponse()

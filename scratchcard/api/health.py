"""
Health check endpoint.

Liveness probe only; the service keeps no external state to check.
"""

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """
    Liveness probe.

    Returns healthy if the service is running.
    Does not call the activation endpoint.
    """
    return HealthResponse(status="healthy")

"""
Status API routes - liveness and database reachability.

Public endpoint (no auth), used by the load balancer.
"""

import asyncio

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lazla_api.config import settings
from lazla_api.db.session import get_read_db
from lazla_api.models.api import HealthResponse
from lazla_api.observability.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["status"])

CHECK_TIMEOUT = 5.0  # seconds


@router.get("/health", response_model=HealthResponse)
async def health_check(
    response: Response, db: AsyncSession = Depends(get_read_db)
) -> HealthResponse:
    """Report 200 when the database answers, 503 otherwise."""
    try:
        await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=CHECK_TIMEOUT)
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        logger.error("health_check_database_failed", error=str(e))
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="degraded", database="unreachable", version=settings.api_version
        )

    return HealthResponse(status="ok", database="ok", version=settings.api_version)

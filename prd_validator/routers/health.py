"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone
import logging

from prd_validator.database import get_db
from prd_validator.models.schemas import HealthCheckResponse
from prd_validator.services.ai_analysis import OllamaAnalysisService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Report database and Ollama reachability.

    Returns:
        HealthCheckResponse; ``status`` is "degraded" when either check fails.
    """
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed: %s", e)
        db_status = "error"

    ollama_status = "ok" if await OllamaAnalysisService().check_health() else "error"

    overall_status = "healthy" if db_status == "ok" and ollama_status == "ok" else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        ollama=ollama_status,
        timestamp=datetime.now(timezone.utc),
    )

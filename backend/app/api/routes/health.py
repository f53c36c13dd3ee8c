from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.dependencies import get_db

router = APIRouter()
logger = get_logger(__name__)

@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check endpoint; reports database reachability."""
    database = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        database = "unavailable"
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "service": settings.PROJECT_NAME,
        "database": database,
    }

@router.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.db.session import get_async_session
from app.utils.logging import get_logger
from app.utils.responses import ResponseBuilder

health_router = APIRouter()
logger = get_logger()


@health_router.get("/")
async def health_check(request: Request, db: AsyncSession = Depends(get_async_session)):
    """
    Basic health check endpoint

    Reports the service version and whether the database answers
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database query failed: {e}")
        database = "unavailable"

    return ResponseBuilder.success(
        request=request,
        data={
            "status": "healthy" if database == "ok" else "degraded",
            "service": settings.NAME,
            "version": settings.VERSION,
            "database": database,
        },
        message="Service is running",
    )

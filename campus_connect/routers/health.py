from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campus_connect.config.settings import settings
from campus_connect.db.session import get_sync_session
from campus_connect.utils.logging import get_logger
from campus_connect.utils.responses import ResponseBuilder

health_router = APIRouter()
logger = get_logger()


@health_router.get("/")
async def health_check(request: Request, db: Session = Depends(get_sync_session)):
    """Service identity plus a round trip to the database"""
    try:
        db.execute(text("SELECT 1"))
        database = "up"
    except SQLAlchemyError as e:
        logger.error(f"Health check database query failed: {str(e)}")
        database = "down"

    return ResponseBuilder.success(
        request=request,
        data={
            "status": "healthy" if database == "up" else "degraded",
            "database": database,
            "service": settings.NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        },
        message="Service is running",
    )

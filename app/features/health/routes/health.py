from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.platform.db.session import get_db
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    try:
        result = await db.execute(text("SELECT 1 AS ok"))
        db_ok = result.scalar() == 1
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {str(e)}")
        return api_response(
            message="Database unavailable",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return api_response(data={"db": {"ok": db_ok}}, status_code=status.HTTP_200_OK)

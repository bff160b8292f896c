from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import PlatformStats
from services.earnings_service import EarningsService

router = APIRouter(tags=["Admin"])


@cbv(router)
class AdminRoutes:
    @router.get("/stats", response_model=PlatformStats)
    @safe_handler
    async def platform_stats(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await EarningsService(db).platform_stats(current_user=current_user)

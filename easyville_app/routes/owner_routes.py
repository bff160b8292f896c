import uuid

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.paginate import DEFAULT_PER_PAGE, MAX_PER_PAGE
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import EarningsSummary, ListingEarningOut, MonthlyEarningsOut, Page
from services.earnings_service import MAX_MONTHS_BACK, EarningsService

router = APIRouter(tags=["Owner Earnings"])


@cbv(router)
class OwnerRoutes:
    @router.get("/{owner_id}/stats", response_model=EarningsSummary)
    @safe_handler
    async def stats(
        self,
        owner_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await EarningsService(db).stats_for(
            current_user=current_user, owner_id=owner_id
        )

    @router.get("/{owner_id}/earnings", response_model=MonthlyEarningsOut)
    @safe_handler
    async def monthly_earnings(
        self,
        owner_id: uuid.UUID,
        months_back: int = Query(6, ge=0, le=MAX_MONTHS_BACK),
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await EarningsService(db).monthly_earnings(
            current_user=current_user, owner_id=owner_id, months_back=months_back
        )

    @router.get("/{owner_id}/listings", response_model=Page[ListingEarningOut])
    @safe_handler
    async def listing_breakdown(
        self,
        owner_id: uuid.UUID,
        page: int = Query(1, ge=1),
        per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await EarningsService(db).listing_breakdown(
            current_user=current_user, owner_id=owner_id, page=page, per_page=per_page
        )

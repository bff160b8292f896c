import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user, get_optional_user
from core.get_db import get_db_async
from core.paginate import DEFAULT_PER_PAGE, MAX_PER_PAGE
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import (
    ListingReviewCreate,
    ListingReviewOut,
    ListingReviewsOut,
    ListingReviewUpdate,
)
from services.listing_review_service import ListingReviewService

router = APIRouter(tags=["Listing Reviews"])


@cbv(router)
class ListingReviewRoutes:
    @router.get("/{listing_id}/reviews", response_model=ListingReviewsOut)
    @safe_handler
    async def list_reviews(
        self,
        listing_id: uuid.UUID,
        page: int = Query(1, ge=1),
        per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
        db: AsyncSession = Depends(get_db_async),
        current_user: Optional[User] = Depends(get_optional_user),
    ):
        return await ListingReviewService(db).list_reviews(
            current_user=current_user,
            listing_id=listing_id,
            page=page,
            per_page=per_page,
        )

    @router.post("/{listing_id}/reviews", response_model=ListingReviewOut, status_code=201)
    @safe_handler
    async def create_review(
        self,
        listing_id: uuid.UUID,
        data: ListingReviewCreate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ListingReviewService(db).create_review(
            current_user=current_user, listing_id=listing_id, data=data
        )

    @router.patch("/{listing_id}/reviews/{review_id}", response_model=ListingReviewOut)
    @safe_handler
    async def update_review(
        self,
        listing_id: uuid.UUID,
        review_id: uuid.UUID,
        data: ListingReviewUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ListingReviewService(db).update_review(
            current_user=current_user,
            listing_id=listing_id,
            review_id=review_id,
            data=data,
        )

    @router.delete("/{listing_id}/reviews/{review_id}")
    @safe_handler
    async def delete_review(
        self,
        listing_id: uuid.UUID,
        review_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ListingReviewService(db).delete_review(
            current_user=current_user, listing_id=listing_id, review_id=review_id
        )

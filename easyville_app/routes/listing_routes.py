import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user, get_optional_user
from core.get_db import get_db_async
from core.paginate import DEFAULT_PER_PAGE, MAX_PER_PAGE
from core.safe_handler import safe_handler
from models.enums import ListingStatus
from models.models import User
from schemas.schema import (
    ListingCreate,
    ListingDetailOut,
    ListingStatusUpdate,
    ListingUnlockOut,
    ListingUpdate,
    Page,
    PublicListingOut,
    UnlockedListingOut,
)
from services.listing_service import ListingService
from services.payment_proof_service import PaymentProofService

router = APIRouter(tags=["Listings"])


@cbv(router)
class ListingRoutes:
    @router.post("/", response_model=UnlockedListingOut, status_code=201)
    @safe_handler
    async def create_listing(
        self,
        data: ListingCreate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ListingService(db).create_listing(
            current_user=current_user, data=data
        )

    @router.get("/", response_model=Page[PublicListingOut])
    @safe_handler
    async def list_listings(
        self,
        page: int = Query(1, ge=1),
        per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
        status: Optional[ListingStatus] = None,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ListingService(db).list_public(
            page=page, per_page=per_page, status=status
        )

    @router.get("/{listing_id}", response_model=ListingDetailOut)
    @safe_handler
    async def get_listing(
        self,
        listing_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: Optional[User] = Depends(get_optional_user),
    ):
        return await ListingService(db).get_listing(
            current_user=current_user, listing_id=listing_id
        )

    @router.patch("/{listing_id}", response_model=UnlockedListingOut)
    @safe_handler
    async def update_listing(
        self,
        listing_id: uuid.UUID,
        data: ListingUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ListingService(db).update_listing(
            current_user=current_user, listing_id=listing_id, data=data
        )

    @router.patch("/{listing_id}/status", response_model=UnlockedListingOut)
    @safe_handler
    async def set_status(
        self,
        listing_id: uuid.UUID,
        data: ListingStatusUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ListingService(db).set_status(
            current_user=current_user, listing_id=listing_id, status=data.status
        )

    @router.delete("/{listing_id}")
    @safe_handler
    async def delete_listing(
        self,
        listing_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ListingService(db).soft_delete(
            current_user=current_user, listing_id=listing_id
        )

    @router.get("/{listing_id}/unlocks", response_model=Page[ListingUnlockOut])
    @safe_handler
    async def list_unlocks(
        self,
        listing_id: uuid.UUID,
        page: int = Query(1, ge=1),
        per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PaymentProofService(db).list_unlocks_for_listing(
            current_user=current_user,
            listing_id=listing_id,
            page=page,
            per_page=per_page,
        )

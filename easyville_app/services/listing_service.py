import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError

from core.cache import Cache, cache
from core.check_permission import CheckRolePermission
from core.errors import NotFoundError
from core.paginate import PaginatePage
from core.retry import with_storage_retry
from fire_and_forget.owner_stats import OwnerStatsCache
from models.enums import ListingStatus
from models.models import Listing, User
from policy.unlock_policy import UnlockPolicy
from repos.listing_repo import ListingRepo
from schemas.schema import (
    ListingCreate,
    ListingUpdate,
    PublicListingOut,
    UnlockedListingOut,
)

from .listing_projection import ListingProjector

logger = logging.getLogger(__name__)


class ListingService:
    def __init__(self, db, cache_client: Cache = cache):
        self.repo: ListingRepo = ListingRepo(db)
        self.policy: UnlockPolicy = UnlockPolicy(db)
        self.projector: ListingProjector = ListingProjector()
        self.permission: CheckRolePermission = CheckRolePermission()
        self.paginate: PaginatePage = PaginatePage()
        self.stats_cache: OwnerStatsCache = OwnerStatsCache(cache_client)

    def project_public(self, listing: Listing) -> PublicListingOut:
        return self.projector.project_public(listing)

    def project_unlocked(self, listing: Listing) -> UnlockedListingOut:
        return self.projector.project_unlocked(listing)

    @staticmethod
    def _column_values(values: dict) -> dict:
        nullable = {"landlord_name", "landlord_phone"}
        cleaned = {k: v for k, v in values.items() if v is not None or k in nullable}
        if "amenities" in cleaned:
            cleaned["amenities"] = [a.value for a in cleaned["amenities"]]
        return cleaned

    async def _get_or_404(self, listing_id: uuid.UUID) -> Listing:
        listing = await self.repo.get_active(listing_id)
        if not listing:
            raise NotFoundError("Listing not found", reason="listing-not-found")
        return listing

    async def _get_managed(self, current_user: User, listing_id: uuid.UUID) -> Listing:
        listing = await self._get_or_404(listing_id)
        await self.permission.check_owner_or_admin(current_user, listing.owner_id)
        return listing

    async def create_listing(self, current_user: User, data: ListingCreate):
        await self.permission.check_lister(current_user)
        owner_id = current_user.id
        payload = self._column_values(data.model_dump())

        listing_id = await with_storage_retry(
            lambda: self.repo.create(owner_id=owner_id, data=payload)
        )
        logger.info("Listing %s created by %s", listing_id, owner_id)
        await self.stats_cache.invalidate(owner_id)
        return self.project_unlocked(await self._get_or_404(listing_id))

    async def record_view(self, listing_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
        """Counts one view. The counter is display only, so a failed
        increment is logged and the read carries on."""
        try:
            counted = await self.repo.increment_views(listing_id)
        except SQLAlchemyError as e:
            logger.warning("View count for listing %s not recorded: %s", listing_id, e)
            return False
        if counted:
            await self.stats_cache.invalidate(owner_id)
        return counted

    async def get_listing(self, current_user: User | None, listing_id: uuid.UUID):
        listing = await self._get_or_404(listing_id)
        owner_id = listing.owner_id
        view, is_unlocked = await self.policy.get_listing_view(current_user, listing)

        if await self.record_view(listing_id, owner_id):
            view = view.model_copy(update={"views": view.views + 1})
        return {"listing": view, "is_unlocked": is_unlocked}

    async def list_public(
        self,
        page: int = 1,
        per_page: int = 20,
        status: ListingStatus | None = None,
    ):
        page, per_page = self.paginate.normalize(page, per_page)
        listings, total = await self.repo.list_active(
            offset=self.paginate.offset(page, per_page),
            limit=per_page,
            status=status,
        )
        items = [self.project_public(listing) for listing in listings]
        return self.paginate.build(items, total, page, per_page)

    async def _apply(self, listing_id: uuid.UUID, changes: dict) -> Listing:
        updated = await with_storage_retry(
            lambda: self.repo.update_fields(listing_id, changes)
        )
        if not updated:
            raise NotFoundError("Listing not found", reason="listing-not-found")
        return await self._get_or_404(listing_id)

    async def update_listing(
        self, current_user: User, listing_id: uuid.UUID, data: ListingUpdate
    ):
        user_id = current_user.id
        await self._get_managed(current_user, listing_id)
        changes = self._column_values(data.model_dump(exclude_unset=True))

        listing = await self._apply(listing_id, changes)
        logger.info("Listing %s updated by %s", listing_id, user_id)
        return self.project_unlocked(listing)

    async def set_status(
        self, current_user: User, listing_id: uuid.UUID, status: ListingStatus
    ):
        listing = await self._get_managed(current_user, listing_id)
        if listing.status == status:
            return self.project_unlocked(listing)

        owner_id = listing.owner_id
        listing = await self._apply(listing_id, {"status": status})
        logger.info("Listing %s is now %s", listing_id, status.value)
        await self.stats_cache.invalidate(owner_id)
        return self.project_unlocked(listing)

    async def soft_delete(self, current_user: User, listing_id: uuid.UUID):
        user_id = current_user.id
        listing = await self._get_managed(current_user, listing_id)
        owner_id = listing.owner_id

        deleted = await with_storage_retry(lambda: self.repo.soft_delete(listing_id))
        if not deleted:
            raise NotFoundError("Listing not found", reason="listing-not-found")
        logger.info("Listing %s deleted by %s", listing_id, user_id)
        await self.stats_cache.invalidate(owner_id)
        return {"success": True, "message": "Listing deleted", "id": str(listing_id)}

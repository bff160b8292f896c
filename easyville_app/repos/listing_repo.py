import uuid
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import ListingLifecycle, ListingStatus
from models.models import Listing
from models.utils import utcnow


class ListingRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, owner_id: uuid.UUID, data: dict[str, Any]) -> uuid.UUID:
        listing = Listing(owner_id=owner_id, **data)
        self.db.add(listing)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return listing.id

    async def get_active(self, listing_id: uuid.UUID) -> Listing | None:
        result = await self.db.execute(
            select(Listing)
            .where(
                Listing.id == listing_id,
                Listing.lifecycle == ListingLifecycle.ACTIVE,
            )
            .options(selectinload(Listing.owner))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _active_filter(
        self,
        status: ListingStatus | None = None,
        owner_id: uuid.UUID | None = None,
    ):
        filters = [Listing.lifecycle == ListingLifecycle.ACTIVE]
        if status is not None:
            filters.append(Listing.status == status)
        if owner_id is not None:
            filters.append(Listing.owner_id == owner_id)
        return filters

    async def list_active(
        self,
        offset: int,
        limit: int,
        status: ListingStatus | None = None,
        owner_id: uuid.UUID | None = None,
    ) -> tuple[list[Listing], int]:
        filters = self._active_filter(status=status, owner_id=owner_id)

        total = await self.db.scalar(select(func.count(Listing.id)).where(*filters))
        result = await self.db.execute(
            select(Listing)
            .where(*filters)
            .order_by(Listing.created_at.desc(), Listing.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def increment_views(self, listing_id: uuid.UUID) -> bool:
        return await self._update_active(listing_id, {"views": Listing.views + 1, "updated_at": Listing.updated_at})

    async def _update_active(self, listing_id: uuid.UUID, values: dict[str, Any]) -> bool:
        try:
            result = await self.db.execute(
                update(Listing)
                .where(
                    Listing.id == listing_id,
                    Listing.lifecycle == ListingLifecycle.ACTIVE,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return result.rowcount == 1

    async def update_fields(self, listing_id: uuid.UUID, data: dict[str, Any]) -> bool:
        return await self._update_active(listing_id, data)

    async def soft_delete(self, listing_id: uuid.UUID) -> bool:
        return await self._update_active(
            listing_id,
            {"lifecycle": ListingLifecycle.DELETED, "deleted_at": utcnow()},
        )

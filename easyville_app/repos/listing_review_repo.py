import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.models import Listing, ListingReview
from models.utils import utcnow


def round_rating(average) -> Decimal:
    if average is None:
        return Decimal("0")
    return Decimal(str(average)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


class ListingReviewRepo:
    def __init__(self, db):
        self.db = db

    def _live(self, *filters):
        return select(ListingReview).where(ListingReview.deleted_at.is_(None), *filters)

    async def get_live(self, review_id: uuid.UUID) -> ListingReview | None:
        result = await self.db.execute(
            self._live(ListingReview.id == review_id)
            .options(selectinload(ListingReview.user))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_for_user(
        self, user_id: uuid.UUID, listing_id: uuid.UUID
    ) -> ListingReview | None:
        result = await self.db.execute(
            self._live(
                ListingReview.user_id == user_id,
                ListingReview.listing_id == listing_id,
            )
            .options(selectinload(ListingReview.user))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_listing(
        self, listing_id: uuid.UUID, offset: int, limit: int
    ) -> tuple[list[ListingReview], int]:
        filters = [
            ListingReview.listing_id == listing_id,
            ListingReview.deleted_at.is_(None),
        ]
        total = await self.db.scalar(select(func.count(ListingReview.id)).where(*filters))
        result = await self.db.execute(
            select(ListingReview)
            .where(*filters)
            .options(selectinload(ListingReview.user))
            .order_by(ListingReview.created_at.desc(), ListingReview.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def rating_summary(self, listing_id: uuid.UUID) -> tuple[Decimal, int]:
        row = await self.db.execute(
            select(func.avg(ListingReview.rating), func.count(ListingReview.id)).where(
                ListingReview.listing_id == listing_id,
                ListingReview.deleted_at.is_(None),
            )
        )
        average, count = row.one()
        return round_rating(average), count or 0

    async def _lock_listing(self, listing_id: uuid.UUID) -> None:
        # serializes rating recomputes for one listing (no-op on SQLite)
        await self.db.execute(
            select(Listing.id).where(Listing.id == listing_id).with_for_update()
        )

    async def _refresh_listing_rating(self, listing_id: uuid.UUID) -> None:
        average, count = await self.rating_summary(listing_id)
        await self.db.execute(
            update(Listing)
            .where(Listing.id == listing_id)
            .values(rating=average, reviews_count=count, updated_at=Listing.updated_at)
            .execution_options(synchronize_session=False)
        )

    async def create(
        self, user_id: uuid.UUID, listing_id: uuid.UUID, rating: int, comment: str
    ) -> uuid.UUID:
        """Inserts the review and refreshes the listing rating in one
        transaction."""
        review = ListingReview(
            user_id=user_id, listing_id=listing_id, rating=rating, comment=comment
        )
        try:
            await self._lock_listing(listing_id)
            self.db.add(review)
            await self.db.flush()
            await self._refresh_listing_rating(listing_id)
            await self.db.commit()
        except SQLAlchemyError:
            # IntegrityError on the one-live-review index is mapped by the caller
            await self.db.rollback()
            raise
        return review.id

    async def _write_live(
        self, review_id: uuid.UUID, listing_id: uuid.UUID, values: dict[str, Any]
    ) -> bool:
        try:
            await self._lock_listing(listing_id)
            result = await self.db.execute(
                update(ListingReview)
                .where(
                    ListingReview.id == review_id,
                    ListingReview.listing_id == listing_id,
                    ListingReview.deleted_at.is_(None),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.db.rollback()
                return False

            await self._refresh_listing_rating(listing_id)
            await self.db.commit()
            return True

        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def update_fields(
        self, review_id: uuid.UUID, listing_id: uuid.UUID, values: dict[str, Any]
    ) -> bool:
        return await self._write_live(review_id, listing_id, values)

    async def soft_delete(self, review_id: uuid.UUID, listing_id: uuid.UUID) -> bool:
        return await self._write_live(review_id, listing_id, {"deleted_at": utcnow()})

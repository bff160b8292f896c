import uuid
from typing import Iterable

from sqlalchemy import select

from models.models import ListingUnlock


class UnlockRepo:
    def __init__(self, db):
        self.db = db

    async def exists(self, user_id: uuid.UUID, listing_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(ListingUnlock.id).where(
                ListingUnlock.user_id == user_id,
                ListingUnlock.listing_id == listing_id,
            )
        )
        return result.first() is not None

    async def unlocked_listing_ids(
        self, user_id: uuid.UUID, listing_ids: Iterable[uuid.UUID] | None = None
    ) -> set[uuid.UUID]:
        stmt = select(ListingUnlock.listing_id).where(ListingUnlock.user_id == user_id)
        if listing_ids is not None:
            stmt = stmt.where(ListingUnlock.listing_id.in_(list(listing_ids)))
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def grant(
        self, user_id: uuid.UUID, listing_id: uuid.UUID, proof_id: uuid.UUID
    ) -> ListingUnlock:
        """Adds the grant inside the caller's transaction. No commit."""
        result = await self.db.execute(
            select(ListingUnlock).where(
                ListingUnlock.user_id == user_id,
                ListingUnlock.listing_id == listing_id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        unlock = ListingUnlock(user_id=user_id, listing_id=listing_id, proof_id=proof_id)
        self.db.add(unlock)
        await self.db.flush()
        return unlock

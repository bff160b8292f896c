import uuid
from typing import Iterable

from models.models import Listing, User
from repos.unlock_repo import UnlockRepo
from services.listing_projection import ListingProjector


class UnlockPolicy:
    """Decides which projection of a listing a caller may see."""

    def __init__(self, db):
        self.unlock_repo = UnlockRepo(db)
        self.projector = ListingProjector()

    @staticmethod
    def can_view(
        user: User | None, listing: Listing, unlocked_ids: Iterable[uuid.UUID]
    ) -> bool:
        if user is None:
            return False
        if user.is_admin or listing.owner_id == user.id:
            return True
        return listing.id in set(unlocked_ids)

    async def has_unlocked(self, user_id: uuid.UUID, listing_id: uuid.UUID) -> bool:
        return await self.unlock_repo.exists(user_id=user_id, listing_id=listing_id)

    async def get_listing_view(self, user: User | None, listing: Listing):
        unlocked_ids: set[uuid.UUID] = set()
        if user is not None and not user.is_admin and listing.owner_id != user.id:
            unlocked_ids = await self.unlock_repo.unlocked_listing_ids(
                user.id, [listing.id]
            )

        if self.can_view(user, listing, unlocked_ids):
            return self.projector.project_unlocked(listing), True
        return self.projector.project_public(listing), False

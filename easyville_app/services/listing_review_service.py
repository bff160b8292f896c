import logging
import uuid

from sqlalchemy.exc import IntegrityError

from core.errors import AuthorizationError, ConflictError, NotFoundError
from core.key_lock import listing_review_lock
from core.mapper import ORMMapper
from core.paginate import PaginatePage
from core.retry import with_storage_retry
from models.models import ListingReview, User
from policy.unlock_policy import UnlockPolicy
from repos.listing_repo import ListingRepo
from repos.listing_review_repo import ListingReviewRepo
from schemas.schema import (
    ListingReviewCreate,
    ListingReviewOut,
    ListingReviewsOut,
    ListingReviewUpdate,
)

logger = logging.getLogger(__name__)


class ListingReviewService:
    """Reviews are open to callers holding an unlock grant for the listing,
    one live review each. The listing's rating and review count follow
    every write."""

    def __init__(self, db):
        self.repo: ListingReviewRepo = ListingReviewRepo(db)
        self.listing_repo: ListingRepo = ListingRepo(db)
        self.policy: UnlockPolicy = UnlockPolicy(db)
        self.paginate: PaginatePage = PaginatePage()
        self.mapper: ORMMapper = ORMMapper()

    async def _ensure_listing(self, listing_id: uuid.UUID) -> None:
        if not await self.listing_repo.get_active(listing_id):
            raise NotFoundError("Listing not found", reason="listing-not-found")

    async def _get_review_or_404(
        self, listing_id: uuid.UUID, review_id: uuid.UUID
    ) -> ListingReview:
        review = await self.repo.get_live(review_id)
        if not review or review.listing_id != listing_id:
            raise NotFoundError("Review not found", reason="review-not-found")
        return review

    async def ensure_can_review(self, user_id: uuid.UUID, listing_id: uuid.UUID) -> None:
        await self._ensure_listing(listing_id)
        if not await self.policy.has_unlocked(user_id, listing_id):
            raise ConflictError(ConflictError.UNLOCK_REQUIRED)
        if await self.repo.find_for_user(user_id, listing_id):
            raise ConflictError(ConflictError.REVIEW_EXISTS)

    async def create_review(
        self, current_user: User, listing_id: uuid.UUID, data: ListingReviewCreate
    ) -> ListingReviewOut:
        user_id = current_user.id
        async with listing_review_lock.hold(f"{user_id}:{listing_id}"):
            review_id = await with_storage_retry(
                lambda: self._record_review(user_id, listing_id, data)
            )

        review = await with_storage_retry(lambda: self.repo.get_live(review_id))
        logger.info("Review %s posted by %s on listing %s", review_id, user_id, listing_id)
        return self.mapper.one(review, ListingReviewOut)

    async def _record_review(
        self, user_id: uuid.UUID, listing_id: uuid.UUID, data: ListingReviewCreate
    ) -> uuid.UUID:
        await self.ensure_can_review(user_id, listing_id)
        try:
            return await self.repo.create(
                user_id=user_id,
                listing_id=listing_id,
                rating=data.rating,
                comment=data.comment,
            )
        except IntegrityError:
            raise ConflictError(ConflictError.REVIEW_EXISTS)

    async def list_reviews(
        self,
        current_user: User | None,
        listing_id: uuid.UUID,
        page: int = 1,
        per_page: int = 20,
    ) -> ListingReviewsOut:
        await self._ensure_listing(listing_id)
        page, per_page = self.paginate.normalize(page, per_page)
        reviews, total = await self.repo.list_for_listing(
            listing_id, offset=self.paginate.offset(page, per_page), limit=per_page
        )
        average, count = await self.repo.rating_summary(listing_id)

        can_review = has_reviewed = False
        user_review = None
        if current_user is not None:
            own = await self.repo.find_for_user(current_user.id, listing_id)
            has_reviewed = own is not None
            if own is not None:
                user_review = self.mapper.one(own, ListingReviewOut)
            else:
                can_review = await self.policy.has_unlocked(current_user.id, listing_id)

        return ListingReviewsOut(
            **self.paginate.build(
                self.mapper.many(reviews, ListingReviewOut), total, page, per_page
            ),
            average_rating=float(average),
            total_reviews=count,
            can_review=can_review,
            has_reviewed=has_reviewed,
            user_review=user_review,
        )

    async def _get_authored(
        self, current_user: User, listing_id: uuid.UUID, review_id: uuid.UUID, action: str
    ) -> ListingReview:
        review = await self._get_review_or_404(listing_id, review_id)
        if review.user_id != current_user.id:
            raise AuthorizationError(f"You do not have permission to {action} this review")
        return review

    async def update_review(
        self,
        current_user: User,
        listing_id: uuid.UUID,
        review_id: uuid.UUID,
        data: ListingReviewUpdate,
    ) -> ListingReviewOut:
        user_id = current_user.id
        await self._get_authored(current_user, listing_id, review_id, "update")
        changes = data.model_dump(exclude_none=True)

        updated = await with_storage_retry(
            lambda: self.repo.update_fields(review_id, listing_id, changes)
        )
        if not updated:
            raise NotFoundError("Review not found", reason="review-not-found")
        logger.info("Review %s updated by %s", review_id, user_id)
        return self.mapper.one(
            await self._get_review_or_404(listing_id, review_id), ListingReviewOut
        )

    async def delete_review(
        self, current_user: User, listing_id: uuid.UUID, review_id: uuid.UUID
    ):
        user_id = current_user.id
        await self._get_authored(current_user, listing_id, review_id, "delete")

        deleted = await with_storage_retry(
            lambda: self.repo.soft_delete(review_id, listing_id)
        )
        if not deleted:
            raise NotFoundError("Review not found", reason="review-not-found")
        logger.info("Review %s deleted by %s", review_id, user_id)
        return {"success": True, "message": "Review deleted", "id": str(review_id)}

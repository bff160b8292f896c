import asyncio
import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from core.errors import AuthorizationError, ConflictError, NotFoundError
from models.enums import ReviewDecision
from models.models import ListingReview
from repos.listing_repo import ListingRepo
from schemas.schema import ListingReviewCreate, ListingReviewUpdate
from services.listing_review_service import ListingReviewService

from factories import claim

COMMENT = "Quiet compound, steady water and the agent was honest."


def review(rating=4, comment=COMMENT) -> ListingReviewCreate:
    return ListingReviewCreate(rating=rating, comment=comment)


@pytest.fixture
def reviews(db):
    return ListingReviewService(db)


@pytest.fixture
def unlock(proof_service, review_service, admin):
    async def grant(user, listing_id):
        proof = await proof_service.submit(user, claim(listing_id))
        await review_service.review(admin, proof.id, ReviewDecision.APPROVE)

    return grant


async def stored_listing(db, listing_id):
    return await ListingRepo(db).get_active(listing_id)


async def test_review_requires_unlock(reviews, student, listing):
    with pytest.raises(ConflictError) as exc:
        await reviews.create_review(student, listing.id, review())

    assert exc.value.reason == "unlock-required"
    assert exc.value.status_code == 409


async def test_review_after_unlock_updates_listing(db, reviews, unlock, student, listing):
    await unlock(student, listing.id)

    posted = await reviews.create_review(student, listing.id, review(rating=5))

    assert posted.rating == 5
    assert posted.comment == COMMENT
    assert posted.user.id == student.id
    assert posted.listing_id == listing.id

    stored = await stored_listing(db, listing.id)
    assert stored.rating == Decimal("5")
    assert stored.reviews_count == 1


async def test_one_live_review_per_user(reviews, unlock, student, listing):
    await unlock(student, listing.id)
    await reviews.create_review(student, listing.id, review())

    with pytest.raises(ConflictError) as exc:
        await reviews.create_review(student, listing.id, review(rating=1))
    assert exc.value.reason == "review-exists"


async def test_index_violation_maps_to_review_exists(reviews, monkeypatch, unlock, student, listing):
    listing_id = listing.id
    await unlock(student, listing_id)
    await reviews.create_review(student, listing_id, review())

    async def no_review(*args, **kwargs):
        return None

    monkeypatch.setattr(reviews.repo, "find_for_user", no_review)

    with pytest.raises(ConflictError) as exc:
        await reviews.create_review(student, listing_id, review(rating=2))
    assert exc.value.reason == "review-exists"


async def test_concurrent_reviews_leave_one(session_factory, unlock, student, listing):
    await unlock(student, listing.id)

    async def attempt():
        async with session_factory() as session:
            try:
                await ListingReviewService(session).create_review(student, listing.id, review())
                return "created"
            except ConflictError as e:
                return e.reason

    results = await asyncio.gather(*(attempt() for _ in range(5)))

    assert sorted(results) == ["created"] + ["review-exists"] * 4


async def test_rating_is_rounded_half_up(db, reviews, unlock, make_user, listing):
    for rating in (5, 4, 4, 4):
        user = await make_user()
        await unlock(user, listing.id)
        await reviews.create_review(user, listing.id, review(rating=rating))

    stored = await stored_listing(db, listing.id)
    assert stored.rating == Decimal("4.3")
    assert stored.reviews_count == 4

    page = await reviews.list_reviews(None, listing.id)
    assert page.average_rating == pytest.approx(4.3)
    assert page.total_reviews == 4


async def test_only_author_changes_a_review(db, reviews, unlock, make_user, student, listing):
    other = await make_user()
    await unlock(student, listing.id)
    posted = await reviews.create_review(student, listing.id, review(rating=2))

    with pytest.raises(AuthorizationError):
        await reviews.update_review(other, listing.id, posted.id, ListingReviewUpdate(rating=5))
    with pytest.raises(AuthorizationError):
        await reviews.delete_review(other, listing.id, posted.id)

    updated = await reviews.update_review(
        student, listing.id, posted.id, ListingReviewUpdate(rating=4)
    )
    assert updated.rating == 4
    assert updated.comment == COMMENT

    stored = await stored_listing(db, listing.id)
    assert stored.rating == Decimal("4")
    assert stored.reviews_count == 1


async def test_delete_is_soft_and_frees_the_slot(db, reviews, unlock, student, listing):
    await unlock(student, listing.id)
    posted = await reviews.create_review(student, listing.id, review(rating=2))

    result = await reviews.delete_review(student, listing.id, posted.id)
    assert result["success"] is True

    stored = await stored_listing(db, listing.id)
    assert stored.rating == 0
    assert stored.reviews_count == 0

    page = await reviews.list_reviews(None, listing.id)
    assert page.items == []
    assert page.total_reviews == 0

    with pytest.raises(NotFoundError) as exc:
        await reviews.delete_review(student, listing.id, posted.id)
    assert exc.value.reason == "review-not-found"

    again = await reviews.create_review(student, listing.id, review(rating=5))
    assert again.id != posted.id

    kept = await db.get(ListingReview, posted.id, populate_existing=True)
    assert kept.deleted_at is not None


async def test_listing_reviews_report_caller_state(reviews, unlock, make_user, student, listing):
    outsider = await make_user()
    await unlock(student, listing.id)

    anonymous = await reviews.list_reviews(None, listing.id)
    assert (anonymous.can_review, anonymous.has_reviewed) == (False, False)
    assert anonymous.average_rating == 0
    assert anonymous.pagination.total == 0

    assert (await reviews.list_reviews(outsider, listing.id)).can_review is False
    assert (await reviews.list_reviews(student, listing.id)).can_review is True

    posted = await reviews.create_review(student, listing.id, review(rating=3))
    mine = await reviews.list_reviews(student, listing.id)

    assert mine.can_review is False
    assert mine.has_reviewed is True
    assert mine.user_review.id == posted.id
    assert mine.average_rating == 3.0
    assert [item.id for item in mine.items] == [posted.id]


async def test_unknown_listing_or_review(reviews, unlock, make_listing, owner, student, listing):
    with pytest.raises(NotFoundError) as exc:
        await reviews.list_reviews(None, uuid.uuid4())
    assert exc.value.reason == "listing-not-found"

    with pytest.raises(NotFoundError) as exc:
        await reviews.update_review(student, listing.id, uuid.uuid4(), ListingReviewUpdate(rating=3))
    assert exc.value.reason == "review-not-found"

    await unlock(student, listing.id)
    posted = await reviews.create_review(student, listing.id, review())
    elsewhere = await make_listing(owner, title="Another self-con nearby")

    with pytest.raises(NotFoundError):
        await reviews.delete_review(student, elsewhere.id, posted.id)


@pytest.mark.parametrize(
    "payload",
    [
        {"rating": 0, "comment": COMMENT},
        {"rating": 6, "comment": COMMENT},
        {"rating": 3, "comment": "too short"},
        {"rating": 3, "comment": "   spaced   "},
        {"rating": 3, "comment": "x" * 501},
    ],
)
def test_review_payload_rules(payload):
    with pytest.raises(PydanticValidationError):
        ListingReviewCreate(**payload)


def test_review_comment_is_trimmed_and_update_needs_a_field():
    assert ListingReviewCreate(rating=5, comment=f"  {COMMENT}  ").comment == COMMENT

    with pytest.raises(PydanticValidationError):
        ListingReviewUpdate()
    with pytest.raises(PydanticValidationError):
        ListingReviewUpdate(rating=None, comment=None)

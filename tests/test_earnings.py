from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from core.errors import AuthorizationError, ValidationError
from fire_and_forget.owner_stats import owner_stats_key
from models.enums import ListingStatus, ReviewDecision, UserRole
from models.models import Listing, PaymentProof
from services.earnings_service import EarningsService
from services.listing_service import ListingService

from factories import FEE, claim

REASON = "Reference does not match bank records"


async def approve(proof_service, review_service, admin, requester, listing_id):
    proof = await proof_service.submit(requester, claim(listing_id))
    await review_service.review(admin, proof.id, ReviewDecision.APPROVE)
    return proof


async def test_stats_count_only_approved(db, proof_service, review_service, earnings_service, make_user, admin, owner, listing):
    seekers = [await make_user() for _ in range(6)]

    for seeker in seekers[:3]:
        await approve(proof_service, review_service, admin, seeker, listing.id)
    rejected = await proof_service.submit(seekers[3], claim(listing.id))
    await review_service.review(admin, rejected.id, ReviewDecision.REJECT, REASON)
    await proof_service.submit(seekers[4], claim(listing.id))
    await proof_service.submit(seekers[5], claim(listing.id))

    stats = await earnings_service.stats_for(owner, owner.id)

    assert stats.total_approved_unlocks == 3
    assert stats.total_earnings == FEE * 3
    assert stats.listing_count == 1
    assert stats.active_listing_count == 1


async def test_earnings_follow_configured_fee(db, proof_service, review_service, memory_cache, make_user, admin, owner, listing):
    await approve(proof_service, review_service, admin, await make_user(), listing.id)

    stats = await EarningsService(db, fee=Decimal("1500"), cache_client=memory_cache).compute_stats(owner.id)
    assert stats.total_earnings == Decimal("1500")


async def test_views_and_conversion(db, proof_service, review_service, earnings_service, make_user, admin, owner, listing, make_listing):
    await make_listing(owner, title="Closed bedsitter", status=ListingStatus.CLOSED, views=6)
    await db.execute(update(Listing).where(Listing.id == listing.id).values(views=4))
    await db.commit()
    await approve(proof_service, review_service, admin, await make_user(), listing.id)

    stats = await earnings_service.compute_stats(owner.id)

    assert stats.total_views == 10
    assert stats.listing_count == 2
    assert stats.active_listing_count == 1
    assert stats.conversion_rate == pytest.approx(0.1)


async def test_conversion_is_zero_without_views(earnings_service, owner, listing):
    stats = await earnings_service.compute_stats(owner.id)
    assert stats.total_views == 0
    assert stats.conversion_rate == 0


async def test_deleted_listings_do_not_count(db, proof_service, review_service, earnings_service, make_user, admin, owner, listing, make_listing):
    other = await make_listing(owner, title="Listing that will be removed")
    await approve(proof_service, review_service, admin, await make_user(), listing.id)
    await approve(proof_service, review_service, admin, await make_user(), other.id)

    await ListingService(db).soft_delete(owner, other.id)
    stats = await earnings_service.compute_stats(owner.id)

    assert stats.listing_count == 1
    assert stats.total_approved_unlocks == 1
    assert stats.total_earnings == FEE


async def test_stats_permissions(earnings_service, owner, admin, student):
    with pytest.raises(AuthorizationError):
        await earnings_service.stats_for(student, owner.id)

    stats = await earnings_service.stats_for(admin, owner.id)
    assert stats.owner_id == owner.id


async def test_stats_cache_invalidated_on_approval(proof_service, review_service, earnings_service, memory_cache, make_user, admin, owner, listing):
    first = await earnings_service.stats_for(owner, owner.id)
    assert first.total_approved_unlocks == 0
    assert owner_stats_key(owner.id) in memory_cache.store

    await approve(proof_service, review_service, admin, await make_user(), listing.id)

    assert owner_stats_key(owner.id) not in memory_cache.store
    second = await earnings_service.stats_for(owner, owner.id)
    assert second.total_approved_unlocks == 1


async def test_cached_stats_are_served(earnings_service, memory_cache, owner, listing):
    await earnings_service.stats_for(owner, owner.id)
    key = owner_stats_key(owner.id)
    memory_cache.store[key]["total_views"] = 999

    stats = await earnings_service.stats_for(owner, owner.id)
    assert stats.total_views == 999


async def test_invalidation_during_compute_drops_stale_entry(earnings_service, outbox, memory_cache, monkeypatch, owner, listing):
    compute = earnings_service.compute_stats

    async def compute_then_change(owner_id):
        summary = await compute(owner_id)
        await outbox.invalidate_owner_stats(owner_id)
        return summary

    monkeypatch.setattr(earnings_service, "compute_stats", compute_then_change)
    await earnings_service.stats_for(owner, owner.id)
    assert owner_stats_key(owner.id) not in memory_cache.store

    monkeypatch.setattr(earnings_service, "compute_stats", compute)
    await earnings_service.stats_for(owner, owner.id)
    assert owner_stats_key(owner.id) in memory_cache.store


async def test_monthly_buckets_by_review_time(db, proof_service, review_service, earnings_service, make_user, admin, owner, listing):
    review_times = [
        datetime(2025, 12, 31, 23, 0, tzinfo=timezone.utc),
        datetime(2026, 1, 31, 23, 59, tzinfo=timezone.utc),
        datetime(2026, 3, 1, 0, 5, tzinfo=timezone.utc),
        datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc),
    ]
    for reviewed_at in review_times:
        proof = await approve(proof_service, review_service, admin, await make_user(), listing.id)
        await db.execute(
            update(PaymentProof).where(PaymentProof.id == proof.id).values(reviewed_at=reviewed_at)
        )
    await db.commit()

    result = await earnings_service.monthly_earnings(
        owner, owner.id, months_back=2, now=datetime(2026, 3, 15, tzinfo=timezone.utc)
    )

    assert [m.period for m in result.months] == ["2026-01", "2026-02", "2026-03"]
    assert [m.label for m in result.months] == ["Jan 2026", "Feb 2026", "Mar 2026"]
    assert [m.unlock_count for m in result.months] == [1, 0, 2]
    assert [m.amount for m in result.months] == [FEE, Decimal("0"), FEE * 2]
    assert result.total == FEE * 3


async def test_monthly_window_crosses_year(earnings_service, owner):
    result = await earnings_service.monthly_earnings(
        owner, owner.id, months_back=3, now=datetime(2026, 2, 10, tzinfo=timezone.utc)
    )
    assert [m.label for m in result.months] == ["Nov 2025", "Dec 2025", "Jan 2026", "Feb 2026"]
    assert all(m.unlock_count == 0 for m in result.months)


async def test_monthly_rejects_bad_window(earnings_service, owner):
    with pytest.raises(ValidationError):
        await earnings_service.monthly_earnings(owner, owner.id, months_back=25)


async def test_listing_breakdown(proof_service, review_service, earnings_service, make_user, admin, owner, listing, make_listing):
    quiet = await make_listing(owner, title="Listing without unlocks")
    await approve(proof_service, review_service, admin, await make_user(), listing.id)
    await approve(proof_service, review_service, admin, await make_user(), listing.id)

    page = await earnings_service.listing_breakdown(owner, owner.id)

    by_id = {item.listing.id: item for item in page["items"]}
    assert by_id[listing.id].unlock_count == 2
    assert by_id[listing.id].earnings == FEE * 2
    assert by_id[quiet.id].unlock_count == 0
    assert page["items"][0].listing.id == listing.id
    assert page["pagination"]["total"] == 2


async def test_platform_stats(proof_service, review_service, earnings_service, make_user, admin, owner, student, listing):
    await approve(proof_service, review_service, admin, student, listing.id)
    pending_user = await make_user()
    await proof_service.submit(pending_user, claim(listing.id))

    with pytest.raises(AuthorizationError):
        await earnings_service.platform_stats(owner)

    stats = await earnings_service.platform_stats(admin)
    assert stats.users_by_role[UserRole.STUDENT.value] == 2
    assert stats.users_by_role[UserRole.ADMIN.value] == 1
    assert stats.total_users == 4
    assert stats.total_listings == 1
    assert stats.proofs_by_status == {"pending": 1, "approved": 1, "rejected": 0}
    assert stats.total_revenue == FEE

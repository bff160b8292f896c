import asyncio
import uuid

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from fire_and_forget.owner_stats import owner_stats_stamp_key
from models.enums import ListingStatus, PaymentProofStatus, ProofEvent, ReviewDecision
from models.models import ListingUnlock, PaymentProof
from models.utils import utcnow
from policy.unlock_policy import UnlockPolicy
from repos.listing_repo import ListingRepo
from repos.payment_proof_repo import PaymentProofRepo
from services.listing_service import ListingService
from services.proof_review_service import ProofReviewService

from factories import claim, fail_on

REASON = "Reference does not match bank records"


async def grants(db, user_id, listing_id) -> list[ListingUnlock]:
    result = await db.execute(
        select(ListingUnlock).where(
            ListingUnlock.user_id == user_id, ListingUnlock.listing_id == listing_id
        )
    )
    return list(result.scalars().all())


async def test_approve_grants_unlock(db, proof_service, review_service, outbox, publisher, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))

    reviewed = await review_service.review(admin, proof.id, ReviewDecision.APPROVE)

    assert reviewed.status == PaymentProofStatus.APPROVED
    assert reviewed.reviewed_by_id == admin.id
    assert reviewed.reviewed_at is not None
    assert reviewed.rejection_reason is None

    rows = await grants(db, student.id, listing.id)
    assert len(rows) == 1
    assert rows[0].proof_id == proof.id

    await outbox.drain()
    assert publisher.names() == [ProofEvent.SUBMITTED.value, ProofEvent.APPROVED.value]


async def test_approve_drops_supplied_reason(proof_service, review_service, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    reviewed = await review_service.review(admin, proof.id, ReviewDecision.APPROVE, "looks fine to me")
    assert reviewed.rejection_reason is None


async def test_only_reviewed_fields_change(proof_service, review_service, admin, student, listing):
    submitted = await proof_service.submit(student, claim(listing.id))
    reviewed = await review_service.review(admin, submitted.id, ReviewDecision.REJECT, REASON)

    before = submitted.model_dump(exclude={"status", "reviewed_by_id", "reviewed_at", "rejection_reason", "listing"})
    after = reviewed.model_dump(exclude={"status", "reviewed_by_id", "reviewed_at", "rejection_reason", "listing"})
    assert before == after


@pytest.mark.parametrize("reason", [None, "", "   ", "too short", "x" * 501])
async def test_rejection_requires_reason(db, proof_service, review_service, admin, student, listing, reason):
    proof = await proof_service.submit(student, claim(listing.id))

    with pytest.raises(ValidationError) as exc:
        await review_service.review(admin, proof.id, ReviewDecision.REJECT, reason)
    assert exc.value.details[0]["loc"] == ["body", "rejection_reason"]

    stored = await PaymentProofRepo(db).get_one(proof.id)
    assert stored.status == PaymentProofStatus.PENDING
    assert stored.reviewed_at is None


async def test_rejection_reason_is_trimmed(proof_service, review_service, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    reviewed = await review_service.review(admin, proof.id, ReviewDecision.REJECT, f"  {REASON}  ")
    assert reviewed.rejection_reason == REASON


async def test_database_rejects_reasonless_rejection(db, proof_service, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))

    with pytest.raises(IntegrityError):
        await db.execute(
            update(PaymentProof)
            .where(PaymentProof.id == proof.id)
            .values(
                status=PaymentProofStatus.REJECTED,
                rejection_reason="  ",
                reviewed_by_id=admin.id,
                reviewed_at=utcnow(),
            )
        )
    await db.rollback()


async def test_non_admin_cannot_review(proof_service, review_service, owner, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))

    for user in (student, owner):
        with pytest.raises(AuthorizationError):
            await review_service.review(user, proof.id, ReviewDecision.APPROVE)


async def test_missing_proof(review_service, admin):
    with pytest.raises(NotFoundError) as exc:
        await review_service.review(admin, uuid.uuid4(), ReviewDecision.APPROVE)
    assert exc.value.reason == "proof-not-found"


async def test_second_review_conflicts(proof_service, review_service, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    await review_service.review(admin, proof.id, ReviewDecision.APPROVE)

    for decision, reason in ((ReviewDecision.APPROVE, None), (ReviewDecision.REJECT, REASON)):
        with pytest.raises(ConflictError) as exc:
            await review_service.review(admin, proof.id, decision, reason)
        assert exc.value.reason == "already-reviewed"


async def test_review_of_reviewed_proof_conflicts_before_reason_check(proof_service, review_service, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    await review_service.review(admin, proof.id, ReviewDecision.APPROVE)

    with pytest.raises(ConflictError):
        await review_service.review(admin, proof.id, ReviewDecision.REJECT, None)


async def test_concurrent_reviews_transition_once(session_factory, db, proof_service, outbox, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))

    async def attempt(decision, reason):
        async with session_factory() as session:
            try:
                result = await ProofReviewService(session, outbox=outbox).review(
                    admin, proof.id, decision, reason
                )
                return result.status
            except ConflictError as e:
                return e.reason

    attempts = [(ReviewDecision.APPROVE, None), (ReviewDecision.REJECT, REASON)] * 3
    results = await asyncio.gather(*(attempt(d, r) for d, r in attempts))

    winners = [r for r in results if r != "already-reviewed"]
    assert len(winners) == 1
    assert results.count("already-reviewed") == 5

    stored = await PaymentProofRepo(db).get_one(proof.id)
    assert stored.status == winners[0]
    unlocked = await grants(db, student.id, listing.id)
    assert len(unlocked) == (1 if winners[0] == PaymentProofStatus.APPROVED else 0)


async def test_compare_and_swap_only_matches_pending(db, proof_service, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    repo = PaymentProofRepo(db)

    first = await repo.review_once(proof.id, PaymentProofStatus.APPROVED, admin.id, utcnow(), None)
    second = await repo.review_once(proof.id, PaymentProofStatus.REJECTED, admin.id, utcnow(), REASON)

    assert first is True
    assert second is False
    stored = await repo.get_one(proof.id)
    assert stored.status == PaymentProofStatus.APPROVED
    assert stored.rejection_reason is None


async def test_closed_listing_proof_stays_reviewable(db, proof_service, review_service, owner, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    await ListingService(db).set_status(owner, listing.id, ListingStatus.CLOSED)

    reviewed = await review_service.review(admin, proof.id, ReviewDecision.REJECT, "Listing closed before review")
    assert reviewed.status == PaymentProofStatus.REJECTED


async def test_rejection_scenario(db, proof_service, review_service, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    assert proof.status == PaymentProofStatus.PENDING
    assert proof.amount == 1000

    reviewed = await review_service.review(admin, proof.id, ReviewDecision.REJECT, REASON)
    assert reviewed.status == PaymentProofStatus.REJECTED
    assert reviewed.rejection_reason == REASON
    assert await grants(db, student.id, listing.id) == []

    listing_row = await ListingRepo(db).get_active(listing.id)
    view, is_unlocked = await UnlockPolicy(db).get_listing_view(student, listing_row)
    assert is_unlocked is False
    assert "address_full" not in view.model_dump()

    with pytest.raises(ConflictError) as exc:
        await review_service.review(admin, proof.id, ReviewDecision.REJECT, REASON)
    assert exc.value.reason == "already-reviewed"


async def test_review_survives_a_failed_commit(db, proof_service, review_service, outbox, publisher, monkeypatch, admin, student, listing):
    admin_id, student_id, listing_id = admin.id, student.id, listing.id
    proof = await proof_service.submit(student, claim(listing_id))
    monkeypatch.setattr(db, "commit", fail_on(db.commit))

    reviewed = await review_service.review(admin, proof.id, ReviewDecision.APPROVE)

    assert reviewed.status == PaymentProofStatus.APPROVED
    assert reviewed.reviewed_by_id == admin_id
    assert len(await grants(db, student_id, listing_id)) == 1

    await outbox.drain()
    assert publisher.names() == [ProofEvent.SUBMITTED.value, ProofEvent.APPROVED.value]


async def test_failed_read_back_keeps_the_decision(proof_service, review_service, outbox, publisher, memory_cache, monkeypatch, admin, owner, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    # first get_one is the pending check, the second reloads the reviewed proof
    monkeypatch.setattr(
        review_service.repo, "get_one", fail_on(review_service.repo.get_one, calls=(2,))
    )

    reviewed = await review_service.review(admin, proof.id, ReviewDecision.APPROVE)

    assert reviewed.status == PaymentProofStatus.APPROVED
    assert owner_stats_stamp_key(owner.id) in memory_cache.store

    await outbox.drain()
    assert publisher.names() == [ProofEvent.SUBMITTED.value, ProofEvent.APPROVED.value]

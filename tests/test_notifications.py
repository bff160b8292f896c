import pytest
from sqlalchemy import select

from core.breaker import CircuitBreaker
from core.errors import ExternalServiceError
from core.event_publish import RabbitMQEventPublisher
from fire_and_forget.proofs import ProofOutbox
from models.enums import PaymentProofStatus, ProofEvent, ReviewDecision
from models.models import ListingUnlock
from services.payment_proof_service import PaymentProofService
from services.proof_review_service import ProofReviewService
from email_notify import email_service
from workers import notification_consumer

from factories import FEE, MemoryCache, RecordingPublisher, claim


async def test_publisher_failure_does_not_fail_review(db, admin, student, listing):
    failing = ProofOutbox(publisher=RecordingPublisher(fail=True), cache_client=MemoryCache())
    proof = await PaymentProofService(db, fee=FEE, outbox=failing).submit(student, claim(listing.id))

    reviewed = await ProofReviewService(db, outbox=failing).review(
        admin, proof.id, ReviewDecision.APPROVE
    )
    await failing.drain()

    assert reviewed.status == PaymentProofStatus.APPROVED
    result = await db.execute(select(ListingUnlock).where(ListingUnlock.user_id == student.id))
    assert result.scalar_one().listing_id == listing.id
    assert failing.pending == 0


async def test_approved_event_payload(proof_service, review_service, outbox, publisher, admin, student, listing):
    proof = await proof_service.submit(student, claim(listing.id))
    await review_service.review(admin, proof.id, ReviewDecision.APPROVE)
    await outbox.drain()

    name, data = publisher.events[-1]
    assert name == ProofEvent.APPROVED.value
    assert data["proof_id"] == str(proof.id)
    assert data["requester_email"] == student.email
    assert data["listing_title"] == listing.title
    assert data["owner_id"] == str(listing.owner_id)
    assert data["status"] == "approved"


async def test_rejected_event_carries_reason(proof_service, review_service, outbox, publisher, admin, student, listing):
    reason = "Reference does not match bank records"
    proof = await proof_service.submit(student, claim(listing.id))
    await review_service.review(admin, proof.id, ReviewDecision.REJECT, reason)
    await outbox.drain()

    name, data = publisher.events[-1]
    assert name == ProofEvent.REJECTED.value
    assert data["rejection_reason"] == reason


async def test_rabbitmq_publisher_wraps_broker_errors():
    class BrokenConnection:
        async def publish_json(self, exchange_name, routing_key, data):
            raise ConnectionError("connection refused")

    publisher = RabbitMQEventPublisher(connection=BrokenConnection(), exchange_name="test")

    with pytest.raises(ExternalServiceError):
        await publisher.publish(ProofEvent.APPROVED.value, {"proof_id": "x"})


async def test_open_breaker_short_circuits():
    breaker = CircuitBreaker("test", failure_threshold=2, base_recovery_time=60)
    calls = []

    async def flaky():
        calls.append(1)
        raise ConnectionError("down")

    for _ in range(2):
        with pytest.raises(ConnectionError):
            await breaker.call(flaky)

    with pytest.raises(ExternalServiceError):
        await breaker.call(flaky)
    assert len(calls) == 2
    assert breaker.state == "OPEN"

    breaker.reset()
    assert breaker.state == "CLOSED"


async def test_consumer_routes_events_to_emails(monkeypatch):
    sent = []

    async def fake_approved(**kwargs):
        sent.append(("approved", kwargs))

    async def fake_rejected(**kwargs):
        sent.append(("rejected", kwargs))

    monkeypatch.setattr(notification_consumer, "send_proof_approved_email", fake_approved)
    monkeypatch.setattr(notification_consumer, "send_proof_rejected_email", fake_rejected)

    base = {
        "proof_id": "p1",
        "listing_id": "l1",
        "listing_title": "Self-con near South Gate",
        "requester_name": "Sola",
        "requester_email": "sola@example.com",
    }
    await notification_consumer.handle_proof_event(ProofEvent.APPROVED.value, base)
    await notification_consumer.handle_proof_event(
        ProofEvent.REJECTED.value, {**base, "rejection_reason": "Blurry receipt image"}
    )
    await notification_consumer.handle_proof_event("payment_proof.unknown", base)

    assert [kind for kind, _ in sent] == ["approved", "rejected"]
    assert sent[0][1]["email"] == "sola@example.com"
    assert sent[1][1]["reason"] == "Blurry receipt image"


async def test_email_bodies_escape_user_text(monkeypatch):
    sent = []

    async def capture(email, subject, html_content):
        sent.append(html_content)

    monkeypatch.setattr(email_service, "send_email", capture)

    await email_service.send_proof_rejected_email(
        "sola@example.com",
        "Sola <b>Student</b>",
        "Flat & <i>garden</i>",
        "<script>alert(1)</script> reference not found",
    )
    await email_service.send_proof_submitted_email(
        "admin@example.com", "<img src=x>", "Self-con", "TXN<1>"
    )

    rejected, submitted = sent
    assert "<script>" not in rejected
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in rejected
    assert "Sola &lt;b&gt;Student&lt;/b&gt;" in rejected
    assert "Flat &amp; &lt;i&gt;garden&lt;/i&gt;" in rejected
    assert "<img" not in submitted
    assert "TXN&lt;1&gt;" in submitted

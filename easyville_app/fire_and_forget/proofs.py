import asyncio
import logging
import uuid

from core.cache import Cache, cache
from core.event_publish import EventPublisher, get_event_publisher
from fire_and_forget.owner_stats import OwnerStatsCache
from models.enums import ProofEvent
from models.models import PaymentProof

logger = logging.getLogger(__name__)


def proof_event_payload(proof: PaymentProof) -> dict:
    listing = proof.listing
    requester = proof.requester
    return {
        "proof_id": str(proof.id),
        "listing_id": str(proof.listing_id),
        "listing_title": listing.title if listing else None,
        "owner_id": str(listing.owner_id) if listing else None,
        "requester_id": str(proof.requester_id),
        "requester_name": requester.name if requester else None,
        "requester_email": requester.email if requester else None,
        "amount": str(proof.amount),
        "method": proof.method.value,
        "reference": proof.reference,
        "status": proof.status.value,
        "rejection_reason": proof.rejection_reason,
        "submitted_at": proof.submitted_at.isoformat() if proof.submitted_at else None,
        "reviewed_at": proof.reviewed_at.isoformat() if proof.reviewed_at else None,
    }


class ProofOutbox:
    """Hands proof events to the notification channel without blocking the
    caller. A failed hand-over is logged and dropped; it never undoes the
    state change that produced it."""

    def __init__(
        self,
        publisher: EventPublisher | None = None,
        cache_client: Cache = cache,
    ):
        self.publisher = publisher or get_event_publisher()
        self.stats_cache = OwnerStatsCache(cache_client)
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _publish(self, event: ProofEvent, data: dict) -> None:
        try:
            await self.publisher.publish(event.value, data)
        except Exception as e:
            logger.error(
                "Failed to publish %s for proof %s",
                event.value,
                data.get("proof_id"),
                exc_info=e,
            )

    def dispatch(self, event: ProofEvent, proof: PaymentProof) -> asyncio.Task:
        data = proof_event_payload(proof)
        task = asyncio.create_task(self._publish(event, data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def invalidate_owner_stats(self, owner_id: uuid.UUID) -> None:
        await self.stats_cache.invalidate(owner_id)


proof_outbox = ProofOutbox()

import asyncio
import logging

from core.rabbitmq import RabbitMQConnection, rabbitmq
from core.settings import settings
from email_notify.email_service import (
    send_proof_approved_email,
    send_proof_rejected_email,
    send_proof_submitted_email,
)
from models.enums import ProofEvent

logger = logging.getLogger(__name__)


async def handle_proof_event(routing_key: str, data: dict) -> None:
    """Turns one proof event into the matching email. Raising sends the
    message to the dead letter queue."""
    try:
        event = ProofEvent(routing_key)
    except ValueError:
        logger.warning("Ignoring unknown event %s", routing_key)
        return

    name = data.get("requester_name") or "there"
    title = data.get("listing_title") or "your listing"

    if event == ProofEvent.APPROVED:
        if not data.get("requester_email"):
            logger.warning("No requester email on proof %s", data.get("proof_id"))
            return
        await send_proof_approved_email(
            email=data["requester_email"],
            name=name,
            listing_title=title,
            listing_id=data["listing_id"],
        )
    elif event == ProofEvent.REJECTED:
        if not data.get("requester_email"):
            logger.warning("No requester email on proof %s", data.get("proof_id"))
            return
        await send_proof_rejected_email(
            email=data["requester_email"],
            name=name,
            listing_title=title,
            reason=data.get("rejection_reason") or "",
        )
    elif event == ProofEvent.SUBMITTED:
        if not settings.ADMIN_NOTIFICATION_EMAIL:
            logger.info("No admin address configured, proof %s not announced", data.get("proof_id"))
            return
        await send_proof_submitted_email(
            email=settings.ADMIN_NOTIFICATION_EMAIL,
            requester_name=name,
            listing_title=title,
            reference=data.get("reference") or "",
        )

    logger.info("Handled %s for proof %s", event.value, data.get("proof_id"))


async def run(connection: RabbitMQConnection = rabbitmq) -> None:
    await connection.declare_topology(
        settings.RABBITMQ_PROOF_EXCHANGE, settings.RABBITMQ_PROOF_QUEUE
    )
    logger.info("Consuming from %s", settings.RABBITMQ_PROOF_QUEUE)
    try:
        await connection.consume_json(settings.RABBITMQ_PROOF_QUEUE, handle_proof_event)
    finally:
        await connection.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run())

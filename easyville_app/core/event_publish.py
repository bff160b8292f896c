import logging

from .breaker import broker_breaker
from .errors import ExternalServiceError
from .rabbitmq import RabbitMQConnection, rabbitmq
from .settings import settings

logger = logging.getLogger(__name__)


class EventPublisher:
    """Outbound notification channel. Implementations raise
    ExternalServiceError when the event could not be handed over."""

    async def publish(self, event_name: str, data: dict) -> None:
        raise NotImplementedError


class RabbitMQEventPublisher(EventPublisher):
    def __init__(
        self,
        connection: RabbitMQConnection = rabbitmq,
        exchange_name: str = settings.RABBITMQ_PROOF_EXCHANGE,
    ):
        self.connection = connection
        self.exchange_name = exchange_name

    async def publish(self, event_name: str, data: dict) -> None:
        async def handler():
            await self.connection.publish_json(
                exchange_name=self.exchange_name,
                routing_key=event_name,
                data=data,
            )

        try:
            await broker_breaker.call(handler)
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"Failed to publish {event_name}: {e}") from e


class LoggingEventPublisher(EventPublisher):
    async def publish(self, event_name: str, data: dict) -> None:
        logger.info("Event %s (no broker configured): %s", event_name, data)


def get_event_publisher() -> EventPublisher:
    if rabbitmq.configured:
        return RabbitMQEventPublisher()
    return LoggingEventPublisher()

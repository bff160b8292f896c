import json
import logging
from typing import Awaitable, Callable

import aio_pika
from aio_pika import DeliveryMode, ExchangeType, Message
from tenacity import retry, stop_after_attempt, wait_exponential

from .settings import settings

logger = logging.getLogger(__name__)


class RabbitMQConnection:
    def __init__(self, url: str):
        self.url = url
        self.connection = None
        self.channel = None

    @property
    def configured(self) -> bool:
        return bool(self.url)

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=2, min=2, max=10),
        reraise=True,
    )
    async def connect(self):
        if not self.connection or self.connection.is_closed:
            logger.info("Connecting to RabbitMQ...")
            self.connection = await aio_pika.connect_robust(self.url)
            self.channel = await self.connection.channel()
            logger.info("Connected to RabbitMQ.")

    async def declare_topology(self, exchange_name: str, queue_name: str):
        await self.connect()

        dlx = await self.channel.declare_exchange(
            settings.RABBITMQ_DLX, ExchangeType.DIRECT, durable=True
        )
        dlq = await self.channel.declare_queue(settings.RABBITMQ_DLX_QUEUE, durable=True)
        await dlq.bind(dlx, routing_key=settings.RABBITMQ_DLX_QUEUE)

        exchange = await self.channel.declare_exchange(
            exchange_name, ExchangeType.TOPIC, durable=True
        )
        queue = await self.channel.declare_queue(
            queue_name,
            durable=True,
            arguments={
                "x-dead-letter-exchange": settings.RABBITMQ_DLX,
                "x-dead-letter-routing-key": settings.RABBITMQ_DLX_QUEUE,
            },
        )
        await queue.bind(exchange, routing_key="payment_proof.*")
        logger.info(
            "Queue '%s' bound to '%s' with DLQ '%s'.",
            queue_name,
            exchange_name,
            settings.RABBITMQ_DLX_QUEUE,
        )
        return exchange, queue

    async def publish_json(self, exchange_name: str, routing_key: str, data: dict):
        await self.connect()
        exchange = await self.channel.get_exchange(exchange_name)
        message = Message(
            body=json.dumps(data, default=str).encode(),
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
        )
        await exchange.publish(message, routing_key=routing_key)
        logger.debug("Published message to %s:%s", exchange_name, routing_key)

    async def consume_json(
        self, queue_name: str, callback: Callable[[str, dict], Awaitable[None]]
    ):
        await self.connect()
        queue = await self.channel.get_queue(queue_name)

        async with queue.iterator() as queue_iter:
            async for message in queue_iter:
                # requeue=False routes poison messages to the DLQ
                async with message.process(requeue=False):
                    data = json.loads(message.body.decode())
                    await callback(message.routing_key, data)

    async def close(self):
        if self.connection and not self.connection.is_closed:
            await self.connection.close()


rabbitmq = RabbitMQConnection(settings.RABBITMQ_URL)

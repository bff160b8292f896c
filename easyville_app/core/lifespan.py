import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fire_and_forget.proofs import proof_outbox

from .cache import cache
from .rabbitmq import rabbitmq
from .settings import settings

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    if rabbitmq.configured:
        try:
            await rabbitmq.connect()
            await rabbitmq.declare_topology(
                settings.RABBITMQ_PROOF_EXCHANGE, settings.RABBITMQ_PROOF_QUEUE
            )
            logger.info("RabbitMQ connected.")
        except Exception:
            logger.exception("RabbitMQ connection failed")
    else:
        logger.info("RABBITMQ_URL not set, proof events will only be logged.")

    try:
        await cache.connect()
    except Exception:
        logger.exception("Upstash Redis connection failed")

    logger.info("Application startup complete.")

    yield

    await proof_outbox.drain()

    try:
        await rabbitmq.close()
    except Exception:
        logger.exception("Failed to close RabbitMQ connection")

import asyncio
import json
import logging
import urllib.parse
from typing import Any, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential

from .breaker import cache_breaker
from .settings import settings

logger = logging.getLogger(__name__)


class Cache:
    """Upstash Redis over REST. Every operation degrades to a miss when the
    cache is not configured or unreachable; it never fails a request."""

    def __init__(self, url: str | None = None, token: str | None = None):
        self.redis_url = (url or "").rstrip("/")
        self.redis_token = token
        self.enabled = bool(self.redis_url and self.redis_token)

        if not self.enabled:
            logger.info("Upstash Redis not configured, cache disabled.")

        self.headers = {
            "Authorization": f"Bearer {self.redis_token}",
            "Content-Type": "application/json",
        }

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def connect(self):
        if not self.enabled:
            return

        async def handler():
            async with httpx.AsyncClient() as client:
                logger.info("Connecting to Upstash Redis...")
                res = await client.get(f"{self.redis_url}/ping", headers=self.headers)
                if res.status_code == 200 and res.json().get("result") == "PONG":
                    logger.info("Connected to Upstash Redis.")
                else:
                    raise ConnectionError("Upstash Redis ping failed.")

        await cache_breaker.call(handler)

    async def get(self, key: str) -> Optional[str]:
        if not self.enabled:
            return None

        async def handler():
            encoded_key = urllib.parse.quote(str(key))
            async with httpx.AsyncClient() as client:
                res = await client.get(
                    f"{self.redis_url}/get/{encoded_key}", headers=self.headers
                )
            if res.status_code == 200:
                return res.json().get("result")
            if res.status_code == 404:
                return None
            raise ConnectionError(f"Redis GET failed ({res.status_code})")

        try:
            return await cache_breaker.call(handler)
        except Exception as e:
            logger.error("Cache GET failed for key %s", key, exc_info=e)
            return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> None:
        if key is None or value is None:
            raise ValueError("Cache key and value cannot be None")
        if not self.enabled:
            return

        async def handler():
            encoded_key = urllib.parse.quote(str(key))
            async with httpx.AsyncClient() as client:
                res = await client.post(
                    f"{self.redis_url}/set/{encoded_key}?ex={ttl}",
                    headers=self.headers,
                    content=value,
                )
            if res.status_code != 200:
                raise ConnectionError(f"Redis SET failed ({res.status_code})")
            logger.debug("Cache set successfully for key: %s", key)

        try:
            await cache_breaker.call(handler)
        except Exception as e:
            logger.error("Cache SET failed for key %s", key, exc_info=e)

    async def delete(self, key: str) -> bool:
        if not self.enabled:
            return False

        async def handler():
            encoded_key = urllib.parse.quote(str(key))
            async with httpx.AsyncClient() as client:
                res = await client.post(
                    f"{self.redis_url}/del/{encoded_key}", headers=self.headers
                )
            return res.status_code == 200

        try:
            return await cache_breaker.call(handler)
        except Exception as e:
            logger.error("Cache DELETE failed for key %s", key, exc_info=e)
            return False

    async def get_json(self, key: str) -> Optional[Any]:
        data = await self.get(key)
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            logger.error("Invalid JSON format in key: %s", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int = 3600) -> None:
        await self.set(key, json.dumps(value), ttl)

    async def delete_cache_keys_async(self, *keys: str):
        if not keys or not self.enabled:
            return
        await asyncio.gather(*(self.delete(key) for key in set(keys)))


cache = Cache(settings.UPSTASH_REDIS_URL, settings.UPSTASH_REDIS_TOKEN)

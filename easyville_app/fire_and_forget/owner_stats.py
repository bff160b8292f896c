import logging
import uuid
from typing import Any, Optional

from core.cache import Cache, cache
from core.settings import settings

logger = logging.getLogger(__name__)


def owner_stats_key(owner_id: uuid.UUID) -> str:
    return f"earnings:stats:{owner_id}"


def owner_stats_stamp_key(owner_id: uuid.UUID) -> str:
    return f"earnings:stats:{owner_id}:stamp"


class OwnerStatsCache:
    """Cache-aside for owner earnings stats.

    Every invalidation writes a fresh stamp before deleting the entry. A
    reader remembers the stamp it saw before computing; if the stamp moved
    by the time its value is stored, the stored value may predate the
    change and is dropped again.
    """

    def __init__(self, cache_client: Cache = cache):
        self.cache = cache_client

    async def stamp(self, owner_id: uuid.UUID) -> Optional[str]:
        return await self.cache.get_json(owner_stats_stamp_key(owner_id))

    async def read(self, owner_id: uuid.UUID) -> Optional[Any]:
        return await self.cache.get_json(owner_stats_key(owner_id))

    async def store(self, owner_id: uuid.UUID, value: Any, seen_stamp: Optional[str]) -> bool:
        key = owner_stats_key(owner_id)
        await self.cache.set_json(key, value, ttl=settings.STATS_CACHE_TTL)

        if await self.stamp(owner_id) != seen_stamp:
            logger.info("Stats for owner %s changed while computing, dropping entry", owner_id)
            await self.cache.delete_cache_keys_async(key)
            return False
        return True

    async def invalidate(self, owner_id: uuid.UUID) -> None:
        await self.cache.set_json(
            owner_stats_stamp_key(owner_id),
            uuid.uuid4().hex,
            ttl=settings.STATS_CACHE_TTL * 2,
        )
        await self.cache.delete_cache_keys_async(owner_stats_key(owner_id))

import asyncio
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class KeyedLock:
    """Exclusive in-process lock per key.

    Serializes check-then-write sequences that share a key (one requester and
    one listing, or one proof). The database constraints still hold the line
    across processes; this only makes same-process races deterministic.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    @asynccontextmanager
    async def hold(self, key: str):
        full_key = self._key(key)
        lock = self._locks.setdefault(full_key, asyncio.Lock())
        self._waiters[full_key] = self._waiters.get(full_key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[full_key] -= 1
            if self._waiters[full_key] == 0:
                del self._waiters[full_key]
                self._locks.pop(full_key, None)

    def __len__(self) -> int:
        return len(self._locks)


submission_lock = KeyedLock("payment-proof-submit")
review_lock = KeyedLock("payment-proof-review")
listing_review_lock = KeyedLock("listing-review-create")

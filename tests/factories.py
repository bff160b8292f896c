from decimal import Decimal

import jwt
from sqlalchemy.exc import OperationalError

from core.errors import ExternalServiceError
from core.event_publish import EventPublisher
from core.settings import settings
from models.enums import PaymentMethod
from models.models import User
from schemas.schema import PaymentProofCreate

FEE = Decimal("1000")


class RecordingPublisher(EventPublisher):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: list[tuple[str, dict]] = []

    async def publish(self, event_name: str, data: dict) -> None:
        if self.fail:
            raise ExternalServiceError("broker unreachable")
        self.events.append((event_name, data))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class MemoryCache:
    def __init__(self):
        self.store: dict[str, object] = {}

    async def get_json(self, key):
        return self.store.get(key)

    async def set_json(self, key, value, ttl=3600):
        self.store[key] = value

    async def delete_cache_keys_async(self, *keys):
        for key in keys:
            self.store.pop(key, None)


def claim(listing_id, **overrides) -> PaymentProofCreate:
    values = dict(
        listing_id=listing_id,
        amount=Decimal("1000"),
        method=PaymentMethod.BANK_TRANSFER.value,
        reference="TXN12345",
        receipt_url="https://media.example.com/receipts/txn12345.jpg",
    )
    values.update(overrides)
    return PaymentProofCreate(**values)


def token_for(user: User) -> str:
    return jwt.encode({"sub": str(user.id)}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


def operational_error(statement: str = "COMMIT") -> OperationalError:
    return OperationalError(statement, {}, Exception("database is locked"))


def fail_on(func, calls=(1,)):
    """Wraps an async callable so the given call numbers raise a transient
    storage error instead of running."""
    seen = 0

    async def wrapper(*args, **kwargs):
        nonlocal seen
        seen += 1
        if seen in calls:
            raise operational_error()
        return await func(*args, **kwargs)

    return wrapper

import uuid
from decimal import Decimal

import pytest

from core.get_db import Base, build_engine, build_sessionmaker
from fire_and_forget.proofs import ProofOutbox
from models.enums import Amenity, ListingStatus, PropertyType, UserRole
from models.models import Listing, User
from services.earnings_service import EarningsService
from services.payment_proof_service import PaymentProofService
from services.proof_review_service import ProofReviewService

from factories import FEE, MemoryCache, RecordingPublisher


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'easyville_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def outbox(publisher, memory_cache):
    return ProofOutbox(publisher=publisher, cache_client=memory_cache)


@pytest.fixture
def make_user(db):
    async def factory(role: UserRole = UserRole.STUDENT, name: str | None = None) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            name=name or f"{role.value} {suffix}",
            email=f"{role.value.lower()}-{suffix}@example.com",
            phone="+2348012345678",
            role=role,
        )
        db.add(user)
        await db.commit()
        return user

    return factory


@pytest.fixture
def make_listing(db):
    async def factory(owner: User, **overrides) -> Listing:
        values = dict(
            owner_id=owner.id,
            title="Self-con near South Gate",
            description="Spacious self-contained room, five minutes from campus.",
            location="Akoka",
            property_type=PropertyType.SELF_CON,
            address_approx="Off Community Road, Akoka",
            price_yearly=Decimal("350000"),
            bedrooms=1,
            bathrooms=1,
            walking_minutes=5,
            amenities=[Amenity.WATER.value, Amenity.TILES.value],
            photos=["https://media.example.com/p/1.jpg"],
            videos=[],
            cover_photo="https://media.example.com/p/1.jpg",
            map_preview="https://maps.example.com/preview/akoka",
            address_full="12 Community Road, Akoka, Yaba, Lagos",
            map_full="https://maps.example.com/full/12-community-road",
            landlord_name="Mr Adebayo",
            landlord_phone="+2348098765432",
            status=ListingStatus.OPEN,
        )
        values.update(overrides)
        listing = Listing(**values)
        db.add(listing)
        await db.commit()
        return listing

    return factory


@pytest.fixture
async def owner(make_user):
    return await make_user(UserRole.AGENT, name="Tunde Agent")


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, name="Ada Admin")


@pytest.fixture
async def student(make_user):
    return await make_user(UserRole.STUDENT, name="Sola Student")


@pytest.fixture
async def listing(make_listing, owner):
    return await make_listing(owner)


@pytest.fixture
def proof_service(db, outbox):
    return PaymentProofService(db, fee=FEE, outbox=outbox)


@pytest.fixture
def review_service(db, outbox):
    return ProofReviewService(db, outbox=outbox)


@pytest.fixture
def earnings_service(db, memory_cache):
    return EarningsService(db, fee=FEE, cache_client=memory_cache)


import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.get_db import Base

from .enums import (
    ListingLifecycle,
    ListingStatus,
    PaymentMethod,
    PaymentProofStatus,
    PropertyType,
    UserRole,
)
from .utils import utcnow


def enum_column(enum_cls):
    # store the lowercase values ("pending"), which the partial index and
    # CHECK constraints below compare against
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole), nullable=False, default=UserRole.STUDENT
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    listings: Mapped[List["Listing"]] = relationship(
        "Listing", back_populates="owner", foreign_keys="Listing.owner_id"
    )
    payment_proofs: Mapped[List["PaymentProof"]] = relationship(
        "PaymentProof",
        back_populates="requester",
        foreign_keys="PaymentProof.requester_id",
    )
    unlocks: Mapped[List["ListingUnlock"]] = relationship(
        "ListingUnlock", back_populates="user"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        Index("ix_listings_owner_lifecycle", "owner_id", "lifecycle"),
        Index("ix_listings_status_lifecycle", "status", "lifecycle"),
        CheckConstraint("views >= 0", name="ck_listings_views_non_negative"),
        CheckConstraint(
            "lifecycle = 'active' OR deleted_at IS NOT NULL",
            name="ck_listings_deleted_at",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    owner: Mapped["User"] = relationship(
        "User", back_populates="listings", foreign_keys=[owner_id]
    )

    # public attributes
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(50), nullable=False)
    property_type: Mapped[PropertyType] = mapped_column(
        enum_column(PropertyType), nullable=False
    )
    address_approx: Mapped[str] = mapped_column(String(200), nullable=False)
    price_yearly: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    bathrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    walking_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    amenities: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    videos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    cover_photo: Mapped[str] = mapped_column(String(512), nullable=False)
    map_preview: Mapped[str] = mapped_column(String(512), nullable=False)

    # private attributes, only exposed through the unlocked projection
    address_full: Mapped[str] = mapped_column(String(300), nullable=False)
    map_full: Mapped[str] = mapped_column(String(512), nullable=False)
    landlord_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    landlord_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    status: Mapped[ListingStatus] = mapped_column(
        enum_column(ListingStatus), nullable=False, default=ListingStatus.OPEN
    )
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # average of live reviews, recomputed with every review write
    rating: Mapped[Decimal] = mapped_column(
        Numeric(2, 1), nullable=False, default=Decimal("0")
    )
    reviews_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lifecycle: Mapped[ListingLifecycle] = mapped_column(
        enum_column(ListingLifecycle),
        nullable=False,
        default=ListingLifecycle.ACTIVE,
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class PaymentProof(Base):
    __tablename__ = "payment_proofs"
    __table_args__ = (
        # at most one pending claim per (requester, listing)
        Index(
            "uq_payment_proofs_one_pending",
            "requester_id",
            "listing_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_payment_proofs_status_submitted", "status", "submitted_at"),
        Index("ix_payment_proofs_listing_status", "listing_id", "status"),
        CheckConstraint(
            "status != 'rejected' OR "
            "(rejection_reason IS NOT NULL AND length(trim(rejection_reason)) > 0)",
            name="ck_payment_proofs_rejection_reason",
        ),
        CheckConstraint(
            "status = 'pending' OR (reviewed_at IS NOT NULL AND reviewed_by_id IS NOT NULL)",
            name="ck_payment_proofs_reviewed",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    requester: Mapped["User"] = relationship(
        "User", back_populates="payment_proofs", foreign_keys=[requester_id]
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    listing: Mapped["Listing"] = relationship("Listing")

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        enum_column(PaymentMethod), nullable=False
    )
    reference: Mapped[str] = mapped_column(String(50), nullable=False)
    receipt_url: Mapped[str] = mapped_column(String(512), nullable=False)

    status: Mapped[PaymentProofStatus] = mapped_column(
        enum_column(PaymentProofStatus),
        nullable=False,
        default=PaymentProofStatus.PENDING,
        index=True,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class ListingUnlock(Base):
    """Materialized grant set: one row per (user, listing) ever approved."""

    __tablename__ = "listing_unlocks"
    __table_args__ = (
        UniqueConstraint("user_id", "listing_id", name="uq_listing_unlocks_user_listing"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user: Mapped["User"] = relationship("User", back_populates="unlocks")
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id", ondelete="RESTRICT"), nullable=False
    )
    proof_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("payment_proofs.id", ondelete="SET NULL"), nullable=True
    )
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ListingReview(Base):
    __tablename__ = "listing_reviews"
    __table_args__ = (
        # one live review per (user, listing); deleted rows stay for history
        Index(
            "uq_listing_reviews_one_live",
            "user_id",
            "listing_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
        Index("ix_listing_reviews_listing_created", "listing_id", "created_at"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_listing_reviews_rating"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user: Mapped["User"] = relationship("User")
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id", ondelete="RESTRICT"), nullable=False
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

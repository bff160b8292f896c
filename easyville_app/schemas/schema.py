from __future__ import annotations

import re
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

import phonenumbers
from pydantic import BaseModel, Field, field_validator, model_validator

from models.enums import (
    Amenity,
    ListingStatus,
    PaymentMethod,
    PaymentProofStatus,
    PropertyType,
    ReviewDecision,
    UserRole,
)

T = TypeVar("T")

NIGERIAN_PHONE = re.compile(r"^\+234\d{10}$")


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


def normalize_landlord_phone(value):
    if value is None or value == "":
        return None
    value = str(value).replace(" ", "")
    if not NIGERIAN_PHONE.match(value):
        raise ValueError("Phone must be +234 followed by 10 digits")
    try:
        parsed = phonenumbers.parse(value, "NG")
    except phonenumbers.NumberParseException:
        raise ValueError("Invalid phone number format. Use e.g. +2348012345678")
    if not phonenumbers.is_possible_number(parsed):
        raise ValueError("Invalid phone number format. Use e.g. +2348012345678")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


class UserSummaryOut(BaseModel):
    id: uuid.UUID
    name: str
    role: UserRole

    model_config = {"from_attributes": True}


class OwnerContactOut(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    phone: Optional[str] = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------- listings


class ListingBase(BaseModel):
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=20, max_length=1000)
    location: str = Field(..., min_length=2, max_length=50)
    property_type: PropertyType
    address_approx: str = Field(..., min_length=5, max_length=200)
    price_yearly: Decimal = Field(..., ge=50_000, le=5_000_000)
    bedrooms: int = Field(..., ge=0, le=5)
    bathrooms: int = Field(..., ge=1, le=4)
    walking_minutes: int = Field(..., ge=1, le=120)
    amenities: List[Amenity] = Field(..., min_length=1, max_length=13)
    photos: List[str] = Field(..., min_length=1, max_length=10)
    videos: List[str] = Field(default_factory=list, max_length=3)
    cover_photo: str = Field(..., min_length=1, max_length=512)
    map_preview: str = Field(..., min_length=1, max_length=512)

    @field_validator(
        "title", "description", "location", "address_approx", mode="before"
    )
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("amenities")
    @classmethod
    def unique_amenities(cls, value: List[Amenity]):
        if len(set(value)) != len(value):
            raise ValueError("Amenities must not repeat")
        return value


class ListingCreate(ListingBase):
    address_full: str = Field(..., min_length=10, max_length=300)
    map_full: str = Field(..., min_length=1, max_length=512)
    landlord_name: Optional[str] = Field(None, max_length=100)
    landlord_phone: Optional[str] = None

    @field_validator("address_full", "landlord_name", mode="before")
    @classmethod
    def strip_private_text(cls, value):
        return _strip(value)

    @field_validator("landlord_phone", mode="before")
    @classmethod
    def validate_landlord_phone(cls, value):
        return normalize_landlord_phone(value)


class ListingUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    description: Optional[str] = Field(None, min_length=20, max_length=1000)
    location: Optional[str] = Field(None, min_length=2, max_length=50)
    property_type: Optional[PropertyType] = None
    address_approx: Optional[str] = Field(None, min_length=5, max_length=200)
    price_yearly: Optional[Decimal] = Field(None, ge=50_000, le=5_000_000)
    bedrooms: Optional[int] = Field(None, ge=0, le=5)
    bathrooms: Optional[int] = Field(None, ge=1, le=4)
    walking_minutes: Optional[int] = Field(None, ge=1, le=120)
    amenities: Optional[List[Amenity]] = Field(None, min_length=1, max_length=13)
    photos: Optional[List[str]] = Field(None, min_length=1, max_length=10)
    videos: Optional[List[str]] = Field(None, max_length=3)
    cover_photo: Optional[str] = Field(None, min_length=1, max_length=512)
    map_preview: Optional[str] = Field(None, min_length=1, max_length=512)
    address_full: Optional[str] = Field(None, min_length=10, max_length=300)
    map_full: Optional[str] = Field(None, min_length=1, max_length=512)
    landlord_name: Optional[str] = Field(None, max_length=100)
    landlord_phone: Optional[str] = None

    @field_validator("landlord_phone", mode="before")
    @classmethod
    def validate_landlord_phone(cls, value):
        return normalize_landlord_phone(value)

    @field_validator(
        "title", "description", "location", "address_approx", "address_full",
        mode="before",
    )
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @model_validator(mode="after")
    def not_empty(self):
        if not self.model_fields_set:
            raise ValueError("Nothing to update")
        return self


class ListingStatusUpdate(BaseModel):
    status: ListingStatus


class PublicListingOut(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    location: str
    property_type: PropertyType
    address_approx: str
    price_yearly: Decimal
    bedrooms: int
    bathrooms: int
    walking_minutes: int
    amenities: List[str]
    photos: List[str]
    videos: List[str]
    cover_photo: str
    map_preview: str
    status: ListingStatus
    views: int
    rating: float = 0.0
    reviews_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UnlockedListingOut(PublicListingOut):
    address_full: str
    map_full: str
    landlord_name: Optional[str] = None
    landlord_phone: Optional[str] = None
    owner: OwnerContactOut


class ListingDetailOut(BaseModel):
    listing: UnlockedListingOut | PublicListingOut = Field(union_mode="left_to_right")
    is_unlocked: bool


class ListingSummaryOut(BaseModel):
    id: uuid.UUID
    title: str
    location: str
    cover_photo: str
    status: ListingStatus

    model_config = {"from_attributes": True}


# ---------------------------------------------------------- payment proofs


class PaymentProofCreate(BaseModel):
    """Amount, method, reference and receipt rules are checked by
    PaymentProofService after the listing and duplicate checks."""

    listing_id: uuid.UUID
    amount: Decimal
    method: str
    reference: Optional[str] = None
    receipt_url: Optional[str] = None


class ReviewSchema(BaseModel):
    status: ReviewDecision
    rejection_reason: Optional[str] = None


class PaymentProofOut(BaseModel):
    id: uuid.UUID
    requester_id: uuid.UUID
    listing_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod
    reference: str
    receipt_url: str
    status: PaymentProofStatus
    rejection_reason: Optional[str] = None
    reviewed_by_id: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    submitted_at: datetime
    listing: Optional[ListingSummaryOut] = None

    model_config = {"from_attributes": True}


class ListingUnlockOut(BaseModel):
    proof_id: uuid.UUID
    requester: UserSummaryOut
    amount: Decimal
    reviewed_at: Optional[datetime] = None


# ------------------------------------------------------------- pagination


class PaginationMeta(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    items: List[T]
    pagination: PaginationMeta


# ---------------------------------------------------------------- reviews


class ListingReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=10, max_length=500)

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, value):
        return _strip(value)


class ListingReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=10, max_length=500)

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, value):
        return _strip(value)

    @model_validator(mode="after")
    def not_empty(self):
        if self.rating is None and self.comment is None:
            raise ValueError("At least one field must be provided")
        return self


class ListingReviewOut(BaseModel):
    id: uuid.UUID
    listing_id: uuid.UUID
    rating: int
    comment: str
    user: UserSummaryOut
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ListingReviewsOut(BaseModel):
    items: List[ListingReviewOut]
    pagination: PaginationMeta
    average_rating: float
    total_reviews: int
    can_review: bool = False
    has_reviewed: bool = False
    user_review: Optional[ListingReviewOut] = None


# --------------------------------------------------------------- earnings


class EarningsSummary(BaseModel):
    owner_id: uuid.UUID
    listing_count: int
    active_listing_count: int
    total_views: int
    total_approved_unlocks: int
    total_earnings: Decimal
    conversion_rate: float
    currency: str


class MonthlyEarning(BaseModel):
    period: str
    label: str
    unlock_count: int
    amount: Decimal


class MonthlyEarningsOut(BaseModel):
    owner_id: uuid.UUID
    months: List[MonthlyEarning]
    total: Decimal


class ListingEarningOut(BaseModel):
    listing: ListingSummaryOut
    views: int
    unlock_count: int
    earnings: Decimal


class PlatformStats(BaseModel):
    users_by_role: dict[str, int]
    total_users: int
    total_listings: int
    active_listings: int
    proofs_by_status: dict[str, int]
    total_revenue: Decimal
    currency: str

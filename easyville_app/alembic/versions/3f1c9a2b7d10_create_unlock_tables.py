"""create listings, payment proofs and unlock grants

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-18 10:12:44.501233

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def enum(*values, name):
    return sa.Enum(*values, name=name, native_enum=False, length=32)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column(
            "role", enum("Student", "Agent", "Owner", "Admin", name="userrole"), nullable=False
        ),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "owner_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(50), nullable=False),
        sa.Column(
            "property_type",
            enum(
                "bedsitter", "self-con", "1-bedroom", "2-bedroom", "3-bedroom",
                name="propertytype",
            ),
            nullable=False,
        ),
        sa.Column("address_approx", sa.String(200), nullable=False),
        sa.Column("price_yearly", sa.Numeric(12, 2), nullable=False),
        sa.Column("bedrooms", sa.Integer(), nullable=False),
        sa.Column("bathrooms", sa.Integer(), nullable=False),
        sa.Column("walking_minutes", sa.Integer(), nullable=False),
        sa.Column("amenities", sa.JSON(), nullable=False),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("videos", sa.JSON(), nullable=False),
        sa.Column("cover_photo", sa.String(512), nullable=False),
        sa.Column("map_preview", sa.String(512), nullable=False),
        sa.Column("address_full", sa.String(300), nullable=False),
        sa.Column("map_full", sa.String(512), nullable=False),
        sa.Column("landlord_name", sa.String(100), nullable=True),
        sa.Column("landlord_phone", sa.String(20), nullable=True),
        sa.Column("status", enum("open", "closed", name="listingstatus"), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "lifecycle", enum("active", "deleted", name="listinglifecycle"), nullable=False
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("views >= 0", name="ck_listings_views_non_negative"),
        sa.CheckConstraint(
            "lifecycle = 'active' OR deleted_at IS NOT NULL", name="ck_listings_deleted_at"
        ),
    )
    op.create_index("ix_listings_owner_id", "listings", ["owner_id"])
    op.create_index("ix_listings_owner_lifecycle", "listings", ["owner_id", "lifecycle"])
    op.create_index("ix_listings_status_lifecycle", "listings", ["status", "lifecycle"])

    op.create_table(
        "payment_proofs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "requester_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "listing_id",
            sa.Uuid(),
            sa.ForeignKey("listings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "method", enum("bank_transfer", "ussd", "pos", name="paymentmethod"), nullable=False
        ),
        sa.Column("reference", sa.String(50), nullable=False),
        sa.Column("receipt_url", sa.String(512), nullable=False),
        sa.Column(
            "status",
            enum("pending", "approved", "rejected", name="paymentproofstatus"),
            nullable=False,
        ),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column(
            "reviewed_by_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status != 'rejected' OR "
            "(rejection_reason IS NOT NULL AND length(trim(rejection_reason)) > 0)",
            name="ck_payment_proofs_rejection_reason",
        ),
        sa.CheckConstraint(
            "status = 'pending' OR (reviewed_at IS NOT NULL AND reviewed_by_id IS NOT NULL)",
            name="ck_payment_proofs_reviewed",
        ),
    )
    op.create_index("ix_payment_proofs_requester_id", "payment_proofs", ["requester_id"])
    op.create_index("ix_payment_proofs_listing_id", "payment_proofs", ["listing_id"])
    op.create_index("ix_payment_proofs_status", "payment_proofs", ["status"])
    op.create_index(
        "ix_payment_proofs_status_submitted", "payment_proofs", ["status", "submitted_at"]
    )
    op.create_index(
        "ix_payment_proofs_listing_status", "payment_proofs", ["listing_id", "status"]
    )
    op.create_index(
        "uq_payment_proofs_one_pending",
        "payment_proofs",
        ["requester_id", "listing_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "listing_unlocks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "listing_id",
            sa.Uuid(),
            sa.ForeignKey("listings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "proof_id",
            sa.Uuid(),
            sa.ForeignKey("payment_proofs.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("granted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "listing_id", name="uq_listing_unlocks_user_listing"),
    )
    op.create_index("ix_listing_unlocks_user_id", "listing_unlocks", ["user_id"])


def downgrade():
    op.drop_index("ix_listing_unlocks_user_id", table_name="listing_unlocks")
    op.drop_table("listing_unlocks")
    op.drop_index("uq_payment_proofs_one_pending", table_name="payment_proofs")
    op.drop_index("ix_payment_proofs_listing_status", table_name="payment_proofs")
    op.drop_index("ix_payment_proofs_status_submitted", table_name="payment_proofs")
    op.drop_index("ix_payment_proofs_status", table_name="payment_proofs")
    op.drop_index("ix_payment_proofs_listing_id", table_name="payment_proofs")
    op.drop_index("ix_payment_proofs_requester_id", table_name="payment_proofs")
    op.drop_table("payment_proofs")
    op.drop_index("ix_listings_status_lifecycle", table_name="listings")
    op.drop_index("ix_listings_owner_lifecycle", table_name="listings")
    op.drop_index("ix_listings_owner_id", table_name="listings")
    op.drop_table("listings")
    op.drop_table("users")

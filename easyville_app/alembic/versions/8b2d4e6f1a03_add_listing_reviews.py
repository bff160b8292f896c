"""add listing reviews and listing rating columns

Revision ID: 8b2d4e6f1a03
Revises: 3f1c9a2b7d10
Create Date: 2026-10-18 15:40:02.118904

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8b2d4e6f1a03"
down_revision: Union[str, Sequence[str], None] = "3f1c9a2b7d10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    with op.batch_alter_table("listings") as batch:
        batch.add_column(
            sa.Column("rating", sa.Numeric(2, 1), nullable=False, server_default="0")
        )
        batch.add_column(
            sa.Column("reviews_count", sa.Integer(), nullable=False, server_default="0")
        )

    op.create_table(
        "listing_reviews",
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
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_listing_reviews_rating"),
    )
    op.create_index("ix_listing_reviews_user_id", "listing_reviews", ["user_id"])
    op.create_index(
        "ix_listing_reviews_listing_created", "listing_reviews", ["listing_id", "created_at"]
    )
    op.create_index(
        "uq_listing_reviews_one_live",
        "listing_reviews",
        ["user_id", "listing_id"],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL"),
        postgresql_where=sa.text("deleted_at IS NULL"),
    )


def downgrade():
    op.drop_index("uq_listing_reviews_one_live", table_name="listing_reviews")
    op.drop_index("ix_listing_reviews_listing_created", table_name="listing_reviews")
    op.drop_index("ix_listing_reviews_user_id", table_name="listing_reviews")
    op.drop_table("listing_reviews")

    with op.batch_alter_table("listings") as batch:
        batch.drop_column("reviews_count")
        batch.drop_column("rating")

import uuid
from datetime import datetime

from sqlalchemy import and_, case, func, select

from models.enums import ListingLifecycle, ListingStatus, PaymentProofStatus
from models.models import Listing, PaymentProof, User


class EarningsRepo:
    """Read-only aggregates over listings and approved proofs. Deleted
    listings never count."""

    def __init__(self, db):
        self.db = db

    async def listing_totals(self, owner_id: uuid.UUID) -> dict[str, int]:
        result = await self.db.execute(
            select(
                func.count(Listing.id),
                func.coalesce(
                    func.sum(case((Listing.status == ListingStatus.OPEN, 1), else_=0)), 0
                ),
                func.coalesce(func.sum(Listing.views), 0),
            ).where(
                Listing.owner_id == owner_id,
                Listing.lifecycle == ListingLifecycle.ACTIVE,
            )
        )
        listing_count, active_count, views = result.one()
        return {
            "listing_count": int(listing_count or 0),
            "active_listing_count": int(active_count or 0),
            "total_views": int(views or 0),
        }

    def _approved_for_owner(self, owner_id: uuid.UUID):
        return (
            select(PaymentProof)
            .join(Listing, Listing.id == PaymentProof.listing_id)
            .where(
                Listing.owner_id == owner_id,
                Listing.lifecycle == ListingLifecycle.ACTIVE,
                PaymentProof.status == PaymentProofStatus.APPROVED,
            )
        )

    async def approved_unlock_count(self, owner_id: uuid.UUID) -> int:
        subq = self._approved_for_owner(owner_id).subquery()
        total = await self.db.scalar(select(func.count()).select_from(subq))
        return int(total or 0)

    async def approved_review_times(
        self, owner_id: uuid.UUID, since: datetime
    ) -> list[datetime]:
        stmt = (
            select(PaymentProof.reviewed_at)
            .join(Listing, Listing.id == PaymentProof.listing_id)
            .where(
                Listing.owner_id == owner_id,
                Listing.lifecycle == ListingLifecycle.ACTIVE,
                PaymentProof.status == PaymentProofStatus.APPROVED,
                PaymentProof.reviewed_at >= since,
            )
        )
        result = await self.db.execute(stmt)
        return [row for row in result.scalars().all() if row is not None]

    async def listing_breakdown(
        self, owner_id: uuid.UUID, offset: int, limit: int
    ) -> tuple[list[tuple[Listing, int]], int]:
        filters = [
            Listing.owner_id == owner_id,
            Listing.lifecycle == ListingLifecycle.ACTIVE,
        ]
        total = await self.db.scalar(select(func.count(Listing.id)).where(*filters))

        unlocks = func.count(PaymentProof.id).label("unlock_count")
        result = await self.db.execute(
            select(Listing, unlocks)
            .outerjoin(
                PaymentProof,
                and_(
                    PaymentProof.listing_id == Listing.id,
                    PaymentProof.status == PaymentProofStatus.APPROVED,
                ),
            )
            .where(*filters)
            .group_by(Listing.id)
            .order_by(unlocks.desc(), Listing.created_at.desc(), Listing.id)
            .offset(offset)
            .limit(limit)
        )
        rows = [(listing, int(count)) for listing, count in result.all()]
        return rows, total or 0

    async def users_by_role(self) -> dict[str, int]:
        result = await self.db.execute(
            select(User.role, func.count(User.id)).group_by(User.role)
        )
        return {role.value: int(count) for role, count in result.all()}

    async def listing_counts(self) -> tuple[int, int]:
        result = await self.db.execute(
            select(
                func.count(Listing.id),
                func.coalesce(
                    func.sum(case((Listing.status == ListingStatus.OPEN, 1), else_=0)), 0
                ),
            ).where(Listing.lifecycle == ListingLifecycle.ACTIVE)
        )
        total, active = result.one()
        return int(total or 0), int(active or 0)

    async def proofs_by_status(self) -> dict[str, int]:
        result = await self.db.execute(
            select(PaymentProof.status, func.count(PaymentProof.id)).group_by(
                PaymentProof.status
            )
        )
        counts = {status.value: 0 for status in PaymentProofStatus}
        for status, count in result.all():
            counts[status.value] = int(count)
        return counts

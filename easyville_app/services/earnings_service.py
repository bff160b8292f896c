import logging
import uuid
from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal

from core.cache import Cache, cache
from core.check_permission import CheckRolePermission
from core.errors import ValidationError
from core.mapper import ORMMapper
from core.paginate import PaginatePage
from core.settings import settings
from fire_and_forget.owner_stats import OwnerStatsCache
from models.models import User
from models.utils import as_utc, months_window, period_key, period_label, utcnow
from repos.earnings_repo import EarningsRepo
from schemas.schema import (
    EarningsSummary,
    ListingEarningOut,
    ListingSummaryOut,
    MonthlyEarning,
    MonthlyEarningsOut,
    PlatformStats,
)

logger = logging.getLogger(__name__)

MAX_MONTHS_BACK = 24


class EarningsService:
    def __init__(
        self,
        db,
        fee: Decimal = settings.UNLOCK_FEE,
        cache_client: Cache = cache,
    ):
        self.fee = Decimal(fee)
        self.repo: EarningsRepo = EarningsRepo(db)
        self.stats_cache: OwnerStatsCache = OwnerStatsCache(cache_client)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.paginate: PaginatePage = PaginatePage()
        self.mapper: ORMMapper = ORMMapper()

    def earnings_for(self, unlock_count: int) -> Decimal:
        return self.fee * unlock_count

    async def stats_for(self, current_user: User, owner_id: uuid.UUID) -> EarningsSummary:
        await self.permission.check_owner_or_admin(current_user, owner_id)

        cached = await self.stats_cache.read(owner_id)
        if cached:
            return self.mapper.cached(cached, EarningsSummary)

        # stamp is read before compute_stats
        stamp = await self.stats_cache.stamp(owner_id)
        summary = await self.compute_stats(owner_id)
        await self.stats_cache.store(owner_id, summary.model_dump(mode="json"), stamp)
        return summary

    async def compute_stats(self, owner_id: uuid.UUID) -> EarningsSummary:
        totals = await self.repo.listing_totals(owner_id)
        unlocks = await self.repo.approved_unlock_count(owner_id)
        views = totals["total_views"]

        return EarningsSummary(
            owner_id=owner_id,
            listing_count=totals["listing_count"],
            active_listing_count=totals["active_listing_count"],
            total_views=views,
            total_approved_unlocks=unlocks,
            total_earnings=self.earnings_for(unlocks),
            conversion_rate=round(unlocks / views, 4) if views else 0.0,
            currency=settings.CURRENCY,
        )

    async def monthly_earnings(
        self,
        current_user: User,
        owner_id: uuid.UUID,
        months_back: int = 6,
        now: datetime | None = None,
    ) -> MonthlyEarningsOut:
        await self.permission.check_owner_or_admin(current_user, owner_id)
        if months_back < 0 or months_back > MAX_MONTHS_BACK:
            raise ValidationError.for_field(
                "months_back", f"months_back must be between 0 and {MAX_MONTHS_BACK}"
            )

        now = as_utc(now or utcnow())
        window = months_window(now, months_back)
        since = datetime(window[0].year, window[0].month, 1, tzinfo=timezone.utc)

        reviewed = await self.repo.approved_review_times(owner_id, since)
        counts = Counter(period_key(as_utc(ts)) for ts in reviewed)

        months = [
            MonthlyEarning(
                period=period_key(month),
                label=period_label(month),
                unlock_count=counts.get(period_key(month), 0),
                amount=self.earnings_for(counts.get(period_key(month), 0)),
            )
            for month in window
        ]
        return MonthlyEarningsOut(
            owner_id=owner_id,
            months=months,
            total=sum((m.amount for m in months), Decimal("0")),
        )

    async def listing_breakdown(
        self,
        current_user: User,
        owner_id: uuid.UUID,
        page: int = 1,
        per_page: int = 20,
    ):
        await self.permission.check_owner_or_admin(current_user, owner_id)
        page, per_page = self.paginate.normalize(page, per_page)
        rows, total = await self.repo.listing_breakdown(
            owner_id, offset=self.paginate.offset(page, per_page), limit=per_page
        )
        items = [
            ListingEarningOut(
                listing=self.mapper.one(listing, ListingSummaryOut),
                views=listing.views,
                unlock_count=count,
                earnings=self.earnings_for(count),
            )
            for listing, count in rows
        ]
        return self.paginate.build(items, total, page, per_page)

    async def platform_stats(self, current_user: User) -> PlatformStats:
        await self.permission.check_admin(current_user)

        users_by_role = await self.repo.users_by_role()
        total_listings, active_listings = await self.repo.listing_counts()
        proofs_by_status = await self.repo.proofs_by_status()

        return PlatformStats(
            users_by_role=users_by_role,
            total_users=sum(users_by_role.values()),
            total_listings=total_listings,
            active_listings=active_listings,
            proofs_by_status=proofs_by_status,
            total_revenue=self.earnings_for(proofs_by_status.get("approved", 0)),
            currency=settings.CURRENCY,
        )

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import PaymentMethod, PaymentProofStatus
from models.models import PaymentProof

from .unlock_repo import UnlockRepo


class PaymentProofRepo:
    def __init__(self, db):
        self.db = db
        self.unlock_repo = UnlockRepo(db)

    async def create(
        self,
        requester_id: uuid.UUID,
        listing_id: uuid.UUID,
        amount: Decimal,
        method: PaymentMethod,
        reference: str,
        receipt_url: str,
    ) -> uuid.UUID:
        proof = PaymentProof(
            requester_id=requester_id,
            listing_id=listing_id,
            amount=amount,
            method=method,
            reference=reference,
            receipt_url=receipt_url,
            status=PaymentProofStatus.PENDING,
        )
        self.db.add(proof)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            # IntegrityError on the pending index is mapped by the caller
            await self.db.rollback()
            raise
        return proof.id

    async def get_one(self, proof_id: uuid.UUID) -> PaymentProof | None:
        result = await self.db.execute(
            select(PaymentProof)
            .where(PaymentProof.id == proof_id)
            .options(
                selectinload(PaymentProof.listing),
                selectinload(PaymentProof.requester),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def has_pending(self, requester_id: uuid.UUID, listing_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(PaymentProof.id).where(
                PaymentProof.requester_id == requester_id,
                PaymentProof.listing_id == listing_id,
                PaymentProof.status == PaymentProofStatus.PENDING,
            )
        )
        return result.first() is not None

    async def _page(self, filters: list, offset: int, limit: int, order_by):
        total = await self.db.scalar(select(func.count(PaymentProof.id)).where(*filters))
        result = await self.db.execute(
            select(PaymentProof)
            .where(*filters)
            .options(
                selectinload(PaymentProof.listing),
                selectinload(PaymentProof.requester),
            )
            .order_by(order_by, PaymentProof.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def list_for_requester(
        self,
        requester_id: uuid.UUID,
        offset: int,
        limit: int,
        status: PaymentProofStatus | None = None,
    ) -> tuple[list[PaymentProof], int]:
        filters = [PaymentProof.requester_id == requester_id]
        if status is not None:
            filters.append(PaymentProof.status == status)
        return await self._page(filters, offset, limit, PaymentProof.submitted_at.desc())

    async def list_by_status(
        self, status: PaymentProofStatus, offset: int, limit: int
    ) -> tuple[list[PaymentProof], int]:
        # pending queue is served oldest first
        order = (
            PaymentProof.submitted_at.asc()
            if status == PaymentProofStatus.PENDING
            else PaymentProof.submitted_at.desc()
        )
        return await self._page([PaymentProof.status == status], offset, limit, order)

    async def list_approved_for_listing(
        self, listing_id: uuid.UUID, offset: int, limit: int
    ) -> tuple[list[PaymentProof], int]:
        filters = [
            PaymentProof.listing_id == listing_id,
            PaymentProof.status == PaymentProofStatus.APPROVED,
        ]
        return await self._page(filters, offset, limit, PaymentProof.reviewed_at.desc())

    async def review_once(
        self,
        proof_id: uuid.UUID,
        status: PaymentProofStatus,
        reviewer_id: uuid.UUID,
        reviewed_at: datetime,
        rejection_reason: str | None,
    ) -> bool:
        """Moves a pending proof to its terminal status. On approval the
        unlock grant is written in the same transaction. Returns False when
        the proof was no longer pending."""
        try:
            result = await self.db.execute(
                update(PaymentProof)
                .where(
                    PaymentProof.id == proof_id,
                    PaymentProof.status == PaymentProofStatus.PENDING,
                )
                .values(
                    status=status,
                    reviewed_by_id=reviewer_id,
                    reviewed_at=reviewed_at,
                    rejection_reason=rejection_reason,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.db.rollback()
                return False

            if status == PaymentProofStatus.APPROVED:
                row = await self.db.execute(
                    select(PaymentProof.requester_id, PaymentProof.listing_id).where(
                        PaymentProof.id == proof_id
                    )
                )
                requester_id, listing_id = row.one()
                await self.unlock_repo.grant(
                    user_id=requester_id, listing_id=listing_id, proof_id=proof_id
                )

            await self.db.commit()
            return True

        except SQLAlchemyError:
            await self.db.rollback()
            raise

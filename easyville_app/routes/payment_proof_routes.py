import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.paginate import DEFAULT_PER_PAGE, MAX_PER_PAGE
from core.safe_handler import safe_handler
from models.enums import PaymentProofStatus
from models.models import User
from schemas.schema import Page, PaymentProofCreate, PaymentProofOut, ReviewSchema
from services.payment_proof_service import PaymentProofService
from services.proof_review_service import ProofReviewService

router = APIRouter(tags=["Payment Proofs"])


@cbv(router)
class PaymentProofRoutes:
    @router.post("/", response_model=PaymentProofOut, status_code=201)
    @safe_handler
    async def submit(
        self,
        data: PaymentProofCreate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PaymentProofService(db).submit(current_user=current_user, data=data)

    @router.get("/", response_model=Page[PaymentProofOut])
    @safe_handler
    async def list_mine(
        self,
        page: int = Query(1, ge=1),
        per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
        status: Optional[PaymentProofStatus] = None,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PaymentProofService(db).list_mine(
            current_user=current_user, page=page, per_page=per_page, status=status
        )

    @router.get("/pending", response_model=Page[PaymentProofOut])
    @safe_handler
    async def list_pending(
        self,
        page: int = Query(1, ge=1),
        per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PaymentProofService(db).list_pending(
            current_user=current_user, page=page, per_page=per_page
        )

    @router.get("/{proof_id}", response_model=PaymentProofOut)
    @safe_handler
    async def get_proof(
        self,
        proof_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PaymentProofService(db).get_proof(
            current_user=current_user, proof_id=proof_id
        )

    @router.patch("/{proof_id}", response_model=PaymentProofOut)
    @safe_handler
    async def review(
        self,
        proof_id: uuid.UUID,
        data: ReviewSchema,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ProofReviewService(db).review(
            current_user=current_user,
            proof_id=proof_id,
            decision=data.status,
            reason=data.rejection_reason,
        )

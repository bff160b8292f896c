import logging
import uuid
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from core.check_permission import CheckRolePermission
from core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from core.key_lock import submission_lock
from core.mapper import ORMMapper
from core.paginate import PaginatePage
from core.retry import with_storage_retry
from core.settings import settings
from fire_and_forget.proofs import ProofOutbox, proof_outbox
from models.enums import (
    REFERENCE_MAX_LENGTH,
    REFERENCE_MIN_LENGTH,
    PaymentMethod,
    PaymentProofStatus,
    ProofEvent,
)
from models.models import User
from policy.unlock_policy import UnlockPolicy
from repos.listing_repo import ListingRepo
from repos.payment_proof_repo import PaymentProofRepo
from schemas.schema import (
    ListingUnlockOut,
    PaymentProofCreate,
    PaymentProofOut,
    UserSummaryOut,
)

logger = logging.getLogger(__name__)


class PaymentProofService:
    def __init__(
        self,
        db,
        fee: Decimal = settings.UNLOCK_FEE,
        outbox: ProofOutbox | None = None,
    ):
        self.fee = Decimal(fee)
        self.repo: PaymentProofRepo = PaymentProofRepo(db)
        self.listing_repo: ListingRepo = ListingRepo(db)
        self.policy: UnlockPolicy = UnlockPolicy(db)
        self.outbox: ProofOutbox = outbox or proof_outbox
        self.permission: CheckRolePermission = CheckRolePermission()
        self.paginate: PaginatePage = PaginatePage()
        self.mapper: ORMMapper = ORMMapper()

    def validate_claim(self, data: PaymentProofCreate) -> tuple[PaymentMethod, str, str]:
        errors = []

        try:
            amount = Decimal(data.amount)
        except (InvalidOperation, TypeError):
            amount = None
        if amount is None or amount != self.fee:
            errors.append(
                {
                    "loc": ["body", "amount"],
                    "msg": f"Amount must be exactly {settings.CURRENCY} {self.fee}",
                }
            )

        method = None
        try:
            method = PaymentMethod(data.method)
        except ValueError:
            allowed = ", ".join(m.value for m in PaymentMethod)
            errors.append(
                {"loc": ["body", "method"], "msg": f"Payment method must be one of: {allowed}"}
            )

        reference = (data.reference or "").strip()
        if len(reference) < REFERENCE_MIN_LENGTH:
            errors.append(
                {
                    "loc": ["body", "reference"],
                    "msg": f"Reference must be at least {REFERENCE_MIN_LENGTH} characters",
                }
            )
        elif len(reference) > REFERENCE_MAX_LENGTH:
            errors.append(
                {
                    "loc": ["body", "reference"],
                    "msg": f"Reference cannot exceed {REFERENCE_MAX_LENGTH} characters",
                }
            )

        receipt_url = (data.receipt_url or "").strip()
        if not receipt_url:
            errors.append({"loc": ["body", "receipt_url"], "msg": "Receipt is required"})

        if errors:
            raise ValidationError("Validation failed", details=errors)
        return method, reference, receipt_url

    async def submit(self, current_user: User, data: PaymentProofCreate) -> PaymentProofOut:
        requester_id = current_user.id
        async with submission_lock.hold(f"{requester_id}:{data.listing_id}"):
            proof_id = await with_storage_retry(
                lambda: self._record_claim(requester_id, data)
            )

        proof = await with_storage_retry(lambda: self.repo.get_one(proof_id))
        logger.info(
            "Payment proof %s submitted by %s for listing %s",
            proof_id,
            requester_id,
            data.listing_id,
        )
        self.outbox.dispatch(ProofEvent.SUBMITTED, proof)
        return self.mapper.one(proof, PaymentProofOut)

    async def _record_claim(self, requester_id: uuid.UUID, data: PaymentProofCreate) -> uuid.UUID:
        """Checks and inserts one pending claim; returns its id once committed."""
        listing = await self.listing_repo.get_active(data.listing_id)
        if not listing:
            raise NotFoundError("Listing not found", reason="listing-not-found")

        if await self.policy.has_unlocked(requester_id, listing.id):
            raise ConflictError(ConflictError.ALREADY_UNLOCKED)

        if await self.repo.has_pending(requester_id, listing.id):
            raise ConflictError(ConflictError.PENDING_EXISTS)

        method, reference, receipt_url = self.validate_claim(data)

        try:
            return await self.repo.create(
                requester_id=requester_id,
                listing_id=listing.id,
                amount=self.fee,
                method=method,
                reference=reference,
                receipt_url=receipt_url,
            )
        except IntegrityError:
            # another process won the race for the pending slot
            raise ConflictError(ConflictError.PENDING_EXISTS)

    async def get_proof(self, current_user: User, proof_id: uuid.UUID) -> PaymentProofOut:
        proof = await self.repo.get_one(proof_id)
        if not proof:
            raise NotFoundError("Payment proof not found", reason="proof-not-found")
        if not current_user.is_admin and proof.requester_id != current_user.id:
            raise AuthorizationError("You do not have access to this payment proof")
        return self.mapper.one(proof, PaymentProofOut)

    async def list_mine(
        self,
        current_user: User,
        page: int = 1,
        per_page: int = 20,
        status: PaymentProofStatus | None = None,
    ):
        page, per_page = self.paginate.normalize(page, per_page)
        proofs, total = await self.repo.list_for_requester(
            requester_id=current_user.id,
            offset=self.paginate.offset(page, per_page),
            limit=per_page,
            status=status,
        )
        items = self.mapper.many(proofs, PaymentProofOut)
        return self.paginate.build(items, total, page, per_page)

    async def list_pending(self, current_user: User, page: int = 1, per_page: int = 20):
        await self.permission.check_admin(current_user)
        page, per_page = self.paginate.normalize(page, per_page)
        proofs, total = await self.repo.list_by_status(
            status=PaymentProofStatus.PENDING,
            offset=self.paginate.offset(page, per_page),
            limit=per_page,
        )
        items = self.mapper.many(proofs, PaymentProofOut)
        return self.paginate.build(items, total, page, per_page)

    async def list_unlocks_for_listing(
        self,
        current_user: User,
        listing_id: uuid.UUID,
        page: int = 1,
        per_page: int = 20,
    ):
        listing = await self.listing_repo.get_active(listing_id)
        if not listing:
            raise NotFoundError("Listing not found", reason="listing-not-found")
        await self.permission.check_owner_or_admin(current_user, listing.owner_id)

        page, per_page = self.paginate.normalize(page, per_page)
        proofs, total = await self.repo.list_approved_for_listing(
            listing_id=listing_id,
            offset=self.paginate.offset(page, per_page),
            limit=per_page,
        )
        items = [
            ListingUnlockOut(
                proof_id=proof.id,
                requester=UserSummaryOut.model_validate(proof.requester),
                amount=proof.amount,
                reviewed_at=proof.reviewed_at,
            )
            for proof in proofs
        ]
        return self.paginate.build(items, total, page, per_page)

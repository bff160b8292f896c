import logging
import uuid

from core.check_permission import CheckRolePermission
from core.errors import ConflictError, NotFoundError
from core.key_lock import review_lock
from core.mapper import ORMMapper
from core.retry import with_storage_retry
from fire_and_forget.proofs import ProofOutbox, proof_outbox
from models.enums import PaymentProofStatus, ProofEvent, ReviewDecision
from models.models import User
from models.utils import utcnow
from policy.proof_policy import ensure_review_consistency
from repos.payment_proof_repo import PaymentProofRepo
from schemas.schema import PaymentProofOut

logger = logging.getLogger(__name__)

DECISION_EVENTS = {
    ReviewDecision.APPROVE: ProofEvent.APPROVED,
    ReviewDecision.REJECT: ProofEvent.REJECTED,
}


class ProofReviewService:
    """pending -> approved | rejected, exactly once per proof."""

    def __init__(
        self,
        db,
        outbox: ProofOutbox | None = None,
    ):
        self.repo: PaymentProofRepo = PaymentProofRepo(db)
        self.outbox: ProofOutbox = outbox or proof_outbox
        self.permission: CheckRolePermission = CheckRolePermission()
        self.mapper: ORMMapper = ORMMapper()

    async def review(
        self,
        current_user: User,
        proof_id: uuid.UUID,
        decision: ReviewDecision,
        reason: str | None = None,
    ) -> PaymentProofOut:
        await self.permission.check_admin(current_user)
        reviewer_id = current_user.id

        async with review_lock.hold(str(proof_id)):
            target = await with_storage_retry(
                lambda: self._transition(reviewer_id, proof_id, decision, reason)
            )

        # committed from here on
        proof = await with_storage_retry(lambda: self.repo.get_one(proof_id))
        logger.info("Payment proof %s %s by %s", proof_id, target.value, reviewer_id)

        if target == PaymentProofStatus.APPROVED:
            await self.outbox.invalidate_owner_stats(proof.listing.owner_id)
        self.outbox.dispatch(DECISION_EVENTS[decision], proof)

        return self.mapper.one(proof, PaymentProofOut)

    async def _transition(
        self,
        reviewer_id: uuid.UUID,
        proof_id: uuid.UUID,
        decision: ReviewDecision,
        reason: str | None,
    ) -> PaymentProofStatus:
        """Conditional pending -> terminal write. Raises already-reviewed
        when another review got there first."""
        proof = await self.repo.get_one(proof_id)
        if not proof:
            raise NotFoundError("Payment proof not found", reason="proof-not-found")
        if proof.status != PaymentProofStatus.PENDING:
            raise ConflictError(ConflictError.ALREADY_REVIEWED)

        target = decision.target_status
        rejection_reason = ensure_review_consistency(target, reason)

        changed = await self.repo.review_once(
            proof_id=proof_id,
            status=target,
            reviewer_id=reviewer_id,
            reviewed_at=utcnow(),
            rejection_reason=rejection_reason,
        )
        if not changed:
            raise ConflictError(ConflictError.ALREADY_REVIEWED)
        return target

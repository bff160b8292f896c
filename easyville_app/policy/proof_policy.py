from core.errors import ValidationError
from models.enums import (
    REJECTION_REASON_MAX_LENGTH,
    REJECTION_REASON_MIN_LENGTH,
    PaymentProofStatus,
)


def ensure_review_consistency(status: PaymentProofStatus, reason: str | None) -> str | None:
    """Returns the reason to persist for `status`.

    Rejections need a reason of 10 to 500 characters after trimming. Any
    other status persists no reason.
    """
    if status != PaymentProofStatus.REJECTED:
        return None

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError.for_field("rejection_reason", "Rejection reason is required")
    if len(reason) < REJECTION_REASON_MIN_LENGTH:
        raise ValidationError.for_field(
            "rejection_reason",
            f"Rejection reason must be at least {REJECTION_REASON_MIN_LENGTH} characters",
        )
    if len(reason) > REJECTION_REASON_MAX_LENGTH:
        raise ValidationError.for_field(
            "rejection_reason",
            f"Rejection reason cannot exceed {REJECTION_REASON_MAX_LENGTH} characters",
        )
    return reason

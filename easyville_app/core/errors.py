from typing import Any

from fastapi import HTTPException


class AppError(HTTPException):
    """Business-rule failure with a stable, machine readable reason."""

    status_code_default = 400
    reason_default = "bad-request"

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        details: list[dict[str, Any]] | None = None,
    ):
        self.reason = reason or self.reason_default
        self.message = message
        self.details = details or []
        super().__init__(status_code=self.status_code_default, detail=message)

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "reason": self.reason,
        }
        if self.details:
            content["details"] = self.details
        return content


class ValidationError(AppError):
    status_code_default = 422
    reason_default = "validation-failed"

    @classmethod
    def for_field(cls, field: str, msg: str) -> "ValidationError":
        return cls("Validation failed", details=[{"loc": ["body", field], "msg": msg}])


class NotFoundError(AppError):
    status_code_default = 404
    reason_default = "not-found"


class AuthorizationError(AppError):
    status_code_default = 403
    reason_default = "forbidden"


class ConflictError(AppError):
    status_code_default = 409
    reason_default = "conflict"

    ALREADY_UNLOCKED = "already-unlocked"
    PENDING_EXISTS = "pending-exists"
    ALREADY_REVIEWED = "already-reviewed"
    UNLOCK_REQUIRED = "unlock-required"
    REVIEW_EXISTS = "review-exists"

    MESSAGES = {
        ALREADY_UNLOCKED: "You have already unlocked this listing",
        PENDING_EXISTS: "You already have a pending payment proof for this listing",
        ALREADY_REVIEWED: "This payment proof has already been reviewed",
        UNLOCK_REQUIRED: "You must unlock this listing before reviewing",
        REVIEW_EXISTS: "You have already reviewed this listing",
    }

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or self.MESSAGES.get(reason, reason), reason=reason)


class ExternalServiceError(AppError):
    status_code_default = 502
    reason_default = "external-service-failed"


class StorageError(AppError):
    status_code_default = 503
    reason_default = "storage-unavailable"

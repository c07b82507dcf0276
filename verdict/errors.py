"""Typed error taxonomy for request lifecycle and verdict operations.

Every error carries a machine-readable ``error_type`` and the HTTP status it
maps to at the API boundary. ``to_dict()`` renders the public body; internal
detail never goes into it.
"""

from typing import Any


class VerdictServiceError(Exception):
    """Base exception for verdict service errors."""

    status_code: int = 400

    def __init__(self, message: str, error_type: str = "verdict_service_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_type, "detail": self.message, **self.extra()}


class ValidationError(VerdictServiceError):
    """Malformed or missing input."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "validation_error")
        self.field = field

    def extra(self) -> dict[str, Any]:
        return {"field": self.field} if self.field else {}


class InvalidTier(VerdictServiceError):
    """Raised when a tier name is unknown or inactive."""

    def __init__(self, tier: str | int | None):
        super().__init__(f"Invalid pricing tier: {tier!r}", "invalid_tier")
        self.tier = tier


class TierCatalogInconsistent(VerdictServiceError):
    """Raised at startup when legacy and named tiers disagree on price."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, "tier_catalog_inconsistent")


class ModerationRejected(VerdictServiceError):
    """Raised when the moderation gate rejects a submission."""

    def __init__(self, reason: str):
        super().__init__(reason, "moderation_rejected")
        self.reason = reason


class InsufficientCredits(VerdictServiceError):
    """Raised when an account cannot cover a debit."""

    status_code = 402

    def __init__(self, required: int, balance: int):
        super().__init__(
            f"Insufficient credits. You need {required} credits for this tier.",
            "insufficient_credits",
        )
        self.required_credits = required
        self.balance = balance

    def extra(self) -> dict[str, Any]:
        return {"required_credits": self.required_credits}


class CannotJudgeOwnRequest(VerdictServiceError):
    """Raised when a requester tries to judge their own request."""

    status_code = 403

    def __init__(self):
        super().__init__("You cannot judge your own request", "cannot_judge_own_request")


class NotRequestOwner(VerdictServiceError):
    """Raised when an owner-only action comes from another account."""

    status_code = 403

    def __init__(self, request_id: Any):
        super().__init__("Only the request owner can do this", "not_request_owner")
        self.request_id = request_id


class RequestNotFound(VerdictServiceError):
    """Raised when a request does not exist or was deleted."""

    status_code = 404

    def __init__(self, request_id: Any):
        super().__init__(f"Request '{request_id}' not found", "request_not_found")
        self.request_id = request_id


class RequestNotAcceptingVerdicts(VerdictServiceError):
    """Raised when a verdict targets a closed or full request."""

    status_code = 409

    def __init__(self, request_id: Any, status: str | None = None):
        super().__init__(
            "Request is no longer accepting verdicts",
            "request_not_accepting_verdicts",
        )
        self.request_id = request_id
        self.status = status


class DuplicateVerdict(VerdictServiceError):
    """Raised when a judge submits a second verdict for one request."""

    status_code = 409

    def __init__(self, request_id: Any, judge_id: Any):
        super().__init__(
            "Judge has already submitted a verdict for this request",
            "duplicate_verdict",
        )
        self.request_id = request_id
        self.judge_id = judge_id


class InvalidVerdictShape(VerdictServiceError):
    """Raised when a verdict payload does not match the request variant."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message, "invalid_verdict_shape")
        self.errors = errors or []

    def extra(self) -> dict[str, Any]:
        return {"errors": self.errors} if self.errors else {}


class InvalidTransition(VerdictServiceError):
    """Raised for a status change the lifecycle does not allow."""

    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Invalid transition: {current} -> {target}",
            "invalid_transition",
        )
        self.current = current
        self.target = target


class ConsensusNotReady(VerdictServiceError):
    """Raised when consensus is requested before the target count is reached."""

    status_code = 409

    def __init__(self, received: int, target: int):
        super().__init__(
            f"Consensus not ready: {received}/{target} verdicts received",
            "consensus_not_ready",
        )
        self.received = received
        self.target = target


class RateLimited(VerdictServiceError):
    """Raised when an account exceeds its request budget."""

    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__(
            f"Rate limit exceeded. Retry after {retry_after}s",
            "rate_limit_exceeded",
        )
        self.retry_after = retry_after

    def extra(self) -> dict[str, Any]:
        return {"retry_after": self.retry_after}


class InternalError(VerdictServiceError):
    """Unexpected failure. The public message is always generic."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, "internal_error")

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_type, "detail": "Internal server error"}

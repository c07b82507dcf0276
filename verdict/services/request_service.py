"""Request creation, listing and owner actions.

Creation runs a fixed pipeline: field validation, tier resolution,
moderation, credit debit, insert. Every step before the debit is free of
side effects, so a rejection there leaves nothing behind. A failed insert
after the debit is compensated with a reversal credit.
"""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import UUID, uuid4

from pydantic import ValidationError as PydanticValidationError

from verdict.domain import (
    ComparisonPayload,
    Request,
    RequestPayload,
    RequestStatus,
    RequestVariant,
    SplitTestPayload,
    StandardPayload,
    Verdict,
)
from verdict.errors import (
    InternalError,
    NotRequestOwner,
    RequestNotFound,
    ValidationError,
)
from verdict.logging_config import get_logger
from verdict.services.events import REQUEST_CREATED, EventBus
from verdict.services.moderation import ModerationGate
from verdict.services.tier_catalog import TierCatalog
from verdict.store.base import CreditLedger, RequestStore

logger = get_logger(__name__)

STANDARD_CATEGORIES = ("appearance", "profile", "writing", "decision")
COMPARISON_CATEGORIES = ("career", "lifestyle", "business", "appearance", "general")
SPLIT_TEST_CATEGORIES = STANDARD_CATEGORIES

CONTEXT_MIN = 20
CONTEXT_MAX = 500
QUESTION_MIN = 10

REASON_CREATION = "request_creation"
REASON_REVERSAL = "request_creation_reversal"


# ------------------------------------------
# SUBMISSION VALIDATION
# ------------------------------------------


def _require_text(data: dict[str, Any], field: str, message: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message, field=field)
    return value.strip()


def _check_context(context: Any) -> str:
    if not isinstance(context, str) or not context.strip():
        raise ValidationError("Context is required", field="context")
    context = context.strip()
    if len(context) < CONTEXT_MIN:
        raise ValidationError(f"Context must be at least {CONTEXT_MIN} characters", field="context")
    if len(context) > CONTEXT_MAX:
        raise ValidationError(f"Context must be {CONTEXT_MAX} characters or less", field="context")
    return context


def _check_category(data: dict[str, Any], allowed: tuple[str, ...]) -> str:
    category = data.get("category")
    if category not in allowed:
        raise ValidationError("Invalid category", field="category")
    return category


def _standard_payload(data: dict[str, Any]) -> StandardPayload:
    category = _check_category(data, STANDARD_CATEGORIES)
    media_type = data.get("media_type")
    if media_type not in ("photo", "text"):
        raise ValidationError("Invalid media type", field="media_type")
    context = _check_context(data.get("context"))

    media_url = data.get("media_url")
    text_content = data.get("text_content")
    if media_type == "photo" and not media_url:
        raise ValidationError("Photo URL is required for photo requests", field="media_url")
    if media_type == "text" and not (isinstance(text_content, str) and text_content.strip()):
        raise ValidationError("Text content is required for text requests", field="text_content")

    return StandardPayload(
        category=category,
        subcategory=data.get("subcategory"),
        media_type=media_type,
        media_url=media_url if media_type == "photo" else None,
        text_content=text_content if media_type == "text" else None,
        context=context,
    )


def _comparison_payload(data: dict[str, Any]) -> ComparisonPayload:
    question = _require_text(data, "question", "Question is required")
    if len(question) < QUESTION_MIN:
        raise ValidationError(
            f"Question must be at least {QUESTION_MIN} characters", field="question"
        )
    category = _check_category(data, COMPARISON_CATEGORIES)

    for key, label in (("option_a", "Option A"), ("option_b", "Option B")):
        option = data.get(key)
        if not isinstance(option, dict) or not option.get("title") or not option.get("description"):
            raise ValidationError(f"{label} needs a title and description", field=key)

    try:
        return ComparisonPayload(
            category=category,
            question=question,
            option_a=data["option_a"],
            option_b=data["option_b"],
            decision_context=data.get("decision_context") or {},
            visibility=data.get("visibility") or "private",
        )
    except PydanticValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(p) for p in err["loc"]) or None
        raise ValidationError(f"Invalid {field or 'comparison'}: {err['msg']}", field=field)


def _split_test_payload(data: dict[str, Any]) -> SplitTestPayload:
    category = _check_category(data, SPLIT_TEST_CATEGORIES)
    photo_a = _require_text(data, "photo_a_url", "Both photos are required")
    photo_b = _require_text(data, "photo_b_url", "Both photos are required")
    context = _check_context(data.get("context"))
    return SplitTestPayload(
        category=category,
        question=data.get("question"),
        photo_a_url=photo_a,
        photo_b_url=photo_b,
        context=context,
    )


_BUILDERS = {
    RequestVariant.standard: _standard_payload,
    RequestVariant.comparison: _comparison_payload,
    RequestVariant.split_test: _split_test_payload,
}


def build_payload(data: dict[str, Any]) -> RequestPayload:
    """Turn a raw submission into a typed request payload."""
    raw_type = data.get("request_type") or RequestVariant.standard.value
    try:
        variant = RequestVariant(raw_type)
    except ValueError:
        raise ValidationError(f"Unknown request type: {raw_type}", field="request_type")
    return _BUILDERS[variant](data)


def moderation_input(payload: RequestPayload) -> tuple[str, str | None]:
    """Text and media reference the moderation gate sees for a payload."""
    if isinstance(payload, StandardPayload):
        text = payload.context
        if payload.text_content:
            text = f"{text}\n\n{payload.text_content}"
        return text, payload.media_url
    if isinstance(payload, ComparisonPayload):
        parts = [
            payload.question,
            payload.option_a.title,
            payload.option_a.description,
            payload.option_b.title,
            payload.option_b.description,
        ]
        return "\n".join(parts), payload.option_a.image_url or payload.option_b.image_url
    return f"{payload.question or ''}\n{payload.context}".strip(), payload.photo_a_url


def verdict_preview(request: Request) -> tuple[str, float | None]:
    """One-line result summary and average rating for list views."""
    outcome = request.outcome
    if request.status != RequestStatus.completed or outcome is None:
        return (
            f"{request.received_verdict_count}/{request.target_verdict_count} verdicts",
            None,
        )
    if outcome.variant == "standard":
        if outcome.avg_rating is None:
            return "No ratings given", None
        return f"Average rating {outcome.avg_rating:.1f}/10", outcome.avg_rating
    if outcome.variant == "comparison":
        if outcome.winner_option == "tie":
            return "Tie", None
        return f"Option {outcome.winner_option} preferred", None
    if outcome.winning_photo == "tie":
        return "Tie", None
    return (
        f"Photo {outcome.winning_photo} wins ({outcome.consensus_strength:.0%})",
        None,
    )


# ------------------------------------------
# SERVICE
# ------------------------------------------


class RequestService:
    def __init__(
        self,
        requests: RequestStore,
        ledger: CreditLedger,
        catalog: TierCatalog,
        moderation: ModerationGate,
        bus: EventBus | None = None,
    ) -> None:
        self.requests = requests
        self.ledger = ledger
        self.catalog = catalog
        self.moderation = moderation
        self.bus = bus

    async def create(self, owner_id: UUID, data: dict[str, Any]) -> Request:
        payload = build_payload(data)
        text, media_ref = moderation_input(payload)
        await self.moderation.enforce(text, media_ref)

        tier_value = data.get("tier")
        if tier_value in (None, ""):
            tier_value = data.get("request_tier")
        tier = self.catalog.resolve(tier_value)

        request_id = uuid4()
        if tier.credits_required > 0:
            await self.ledger.debit(
                owner_id, tier.credits_required, REASON_CREATION, reference_id=request_id
            )

        try:
            request = await self.requests.create(owner_id, payload, tier, request_id=request_id)
        except Exception as e:
            logger.error(
                "request_insert_failed",
                request_id=str(request_id),
                owner_id=str(owner_id),
                error=str(e),
                exc_info=True,
            )
            await self._reverse_debit(owner_id, tier.credits_required, request_id)
            raise InternalError(f"Failed to create request: {e}")

        logger.info(
            "request_created",
            request_id=str(request.id),
            owner_id=str(owner_id),
            variant=request.variant.value,
            tier=tier.tier_name,
            credits=tier.credits_required,
            target=request.target_verdict_count,
        )
        if self.bus is not None:
            self.bus.emit(
                REQUEST_CREATED,
                {
                    "request_id": str(request.id),
                    "owner_id": str(owner_id),
                    "variant": request.variant.value,
                    "tier": tier.tier_name,
                    "routing_strategy": tier.routing_strategy.value,
                    "target_verdict_count": request.target_verdict_count,
                },
            )
        return request

    async def _reverse_debit(self, owner_id: UUID, amount: int, request_id: UUID) -> None:
        if amount <= 0:
            return
        try:
            await self.ledger.credit(owner_id, amount, REASON_REVERSAL, reference_id=request_id)
        except Exception as e:
            logger.critical(
                "debit_reversal_failed",
                request_id=str(request_id),
                owner_id=str(owner_id),
                amount=amount,
                error=str(e),
            )

    async def list_for_owner(self, owner_id: UUID, limit: int = 20, offset: int = 0) -> list[Request]:
        """Merged newest-first page across all request variants."""
        window = offset + limit
        per_variant = await asyncio.gather(
            *(self.requests.list_by_owner(owner_id, variant, limit=window) for variant in RequestVariant)
        )
        merged = [r for rows in per_variant for r in rows]
        merged.sort(key=lambda r: r.created_at, reverse=True)
        return merged[offset:window]

    async def get(self, request_id: UUID) -> Request:
        request = await self.requests.get_by_id(request_id)
        if request is None:
            raise RequestNotFound(request_id)
        return request

    async def get_owned(self, owner_id: UUID, request_id: UUID) -> Request:
        request = await self.get(request_id)
        if request.owner_id != owner_id:
            raise NotRequestOwner(request_id)
        return request

    async def cancel(self, owner_id: UUID, request_id: UUID) -> Request:
        await self.get_owned(owner_id, request_id)
        request = await self.requests.cancel(request_id)
        logger.info("request_cancelled", request_id=str(request_id), owner_id=str(owner_id))
        return request

    async def delete(self, owner_id: UUID, request_id: UUID) -> Request:
        await self.get_owned(owner_id, request_id)
        request = await self.requests.soft_delete(request_id)
        logger.info("request_deleted", request_id=str(request_id), owner_id=str(owner_id))
        return request

    async def list_verdicts(self, owner_id: UUID, request_id: UUID) -> list[Verdict]:
        await self.get_owned(owner_id, request_id)
        return await self.requests.list_verdicts(request_id)

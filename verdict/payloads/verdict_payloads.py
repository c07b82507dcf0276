"""Structured validation for verdict payloads by request variant."""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from verdict.errors import InvalidVerdictShape, ValidationError

STANDARD_REASONING_MIN = 50
STANDARD_REASONING_MAX = 500
CHOICE_REASONING_MIN = 20
CHOICE_REASONING_MAX = 2000


# ------------------------------------------
# PER-VARIANT PAYLOADS
# ------------------------------------------

class _VerdictPayloadBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    reasoning: str
    time_spent_seconds: int = Field(default=0, ge=0)


class StandardVerdictPayload(_VerdictPayloadBase):
    """Single rating plus written feedback for a standard request."""
    variant: Literal["standard"] = "standard"
    rating: int | None = Field(default=None, ge=1, le=10)
    tone: Literal["honest", "constructive", "encouraging"]


class ComparisonVerdictPayload(_VerdictPayloadBase):
    """A/B preference with per-option ratings."""
    variant: Literal["comparison"] = "comparison"
    preferred_option: Literal["A", "B", "tie"]
    confidence_score: int = Field(..., ge=1, le=10)
    option_a_rating: int = Field(..., ge=1, le=10)
    option_b_rating: int = Field(..., ge=1, le=10)
    option_a_feedback: str = ""
    option_b_feedback: str = ""
    option_a_strengths: list[str] = Field(default_factory=list)
    option_a_weaknesses: list[str] = Field(default_factory=list)
    option_b_strengths: list[str] = Field(default_factory=list)
    option_b_weaknesses: list[str] = Field(default_factory=list)
    budget_consideration: str | None = None


class SplitTestVerdictPayload(_VerdictPayloadBase):
    """Photo choice with per-photo ratings."""
    variant: Literal["split_test"] = "split_test"
    chosen_photo: Literal["A", "B"]
    confidence_score: int = Field(..., ge=1, le=10)
    photo_a_rating: int = Field(..., ge=1, le=10)
    photo_b_rating: int = Field(..., ge=1, le=10)
    photo_a_feedback: str = ""
    photo_b_feedback: str = ""
    photo_a_strengths: list[str] = Field(default_factory=list)
    photo_a_improvements: list[str] = Field(default_factory=list)
    photo_b_strengths: list[str] = Field(default_factory=list)
    photo_b_improvements: list[str] = Field(default_factory=list)


VerdictPayload = Annotated[
    Union[StandardVerdictPayload, ComparisonVerdictPayload, SplitTestVerdictPayload],
    Field(discriminator="variant"),
]


# ------------------------------------------
# VALIDATION DISPATCHER
# ------------------------------------------

# Map: request variant -> Pydantic model for its verdict payload
VARIANT_MODELS: dict[str, type[_VerdictPayloadBase]] = {
    "standard": StandardVerdictPayload,
    "comparison": ComparisonVerdictPayload,
    "split_test": SplitTestVerdictPayload,
}


def parse_verdict_payload(variant: str, raw: dict[str, Any]) -> _VerdictPayloadBase:
    """Validate the payload shape against the request variant.

    Unknown fields, missing fields and out-of-range values raise
    InvalidVerdictShape with one message per offending field.
    """
    model_cls = VARIANT_MODELS.get(variant)
    if model_cls is None:
        raise InvalidVerdictShape(f"Unknown request variant: {variant}")
    if not isinstance(raw, dict):
        raise InvalidVerdictShape("Verdict payload must be an object")

    try:
        return model_cls.model_validate(raw)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidVerdictShape(
            f"Payload does not match the {variant} verdict shape", errors
        )


def check_verdict_rules(payload: _VerdictPayloadBase) -> None:
    """Apply length and consistency rules that sit on top of the shape."""
    reasoning = payload.reasoning

    if isinstance(payload, StandardVerdictPayload):
        if len(reasoning) < STANDARD_REASONING_MIN:
            raise ValidationError(
                f"Feedback must be at least {STANDARD_REASONING_MIN} characters",
                field="reasoning",
            )
        if len(reasoning) > STANDARD_REASONING_MAX:
            raise ValidationError(
                f"Feedback must be {STANDARD_REASONING_MAX} characters or less",
                field="reasoning",
            )
        return

    if len(reasoning) < CHOICE_REASONING_MIN:
        raise ValidationError(
            f"Reasoning must be at least {CHOICE_REASONING_MIN} characters",
            field="reasoning",
        )
    if len(reasoning) > CHOICE_REASONING_MAX:
        raise ValidationError(
            f"Reasoning must be {CHOICE_REASONING_MAX} characters or less",
            field="reasoning",
        )

    # The chosen side may not be rated below the other one
    if isinstance(payload, ComparisonVerdictPayload):
        a, b, choice = payload.option_a_rating, payload.option_b_rating, payload.preferred_option
        label = "option"
    else:
        a, b, choice = payload.photo_a_rating, payload.photo_b_rating, payload.chosen_photo
        label = "photo"

    if choice == "A" and a < b:
        raise ValidationError(
            f"If choosing {label} A, it should have a higher or equal rating than {label} B"
        )
    if choice == "B" and b < a:
        raise ValidationError(
            f"If choosing {label} B, it should have a higher or equal rating than {label} A"
        )

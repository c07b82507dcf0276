"""Moderation gate that approves or rejects a submission before any state exists.

The primary classifier calls a hosted moderation API. Any failure there
(timeout, transport error, bad status, malformed body) is recoverable and
hands the decision to the rule-based classifier, which cannot fail. A
rejection from either classifier is final.
"""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from verdict.errors import ModerationRejected
from verdict.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModerationDecision:
    approved: bool
    reason: str | None = None
    confidence: float = 1.0
    classifier: str = "rules"


class ModerationClassifier(ABC):
    name: str = "classifier"

    @abstractmethod
    async def classify(self, text: str, media_ref: str | None = None) -> ModerationDecision:
        ...


# ------------------------------------------
# RULE-BASED FALLBACK
# ------------------------------------------

_BANNED: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"\b(nude|naked|sex|porn|xxx|nsfw|adult|explicit)\b", re.I), "Sexual content not allowed"),
    (re.compile(r"\b(penis|vagina|breast|dick|pussy|cock)\b", re.I), "Sexual content not allowed"),
    (re.compile(r"\b(kill|murder|suicide|harm|abuse|violence|attack|hurt)\b", re.I), "Violent content not allowed"),
    (re.compile(r"\b(gun|weapon|knife|bomb|terrorist)\b", re.I), "Violent content not allowed"),
    (re.compile(r"\b(drug|cocaine|heroin|meth|weed|marijuana|illegal|scam)\b", re.I), "Illegal content not allowed"),
    (re.compile(r"\b(click here|buy now|money back|guarantee|limited time|act now)\b", re.I), "Spam content detected"),
    (
        re.compile(r"\b(visit|check out|download|subscribe|follow me)\s+\w+\.(com|net|org)\b", re.I),
        "Promotional links not allowed",
    ),
    (re.compile(r"\b(nazi|hitler|racist|retard)\b", re.I), "Hate speech not allowed"),
    (re.compile(r"\b\d{3}-?\d{3}-?\d{4}\b"), "Phone numbers not allowed"),
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "Email addresses not allowed"),
    (re.compile(r"\b\d{4}\s?\d{4}\s?\d{4}\s?\d{4}\b"), "Credit card numbers not allowed"),
)

# Each hit adds 0.3; only all three together cross the review threshold
_SUSPICIOUS: tuple[re.Pattern, ...] = (
    re.compile(r"\b(urgent|emergency|help|crisis|desperate)\b", re.I),
    re.compile(r"\b(address|home|location|where.*live)\b", re.I),
    re.compile(r"\b(ugly|fat|stupid|loser|pathetic|worthless)\b", re.I),
)

_REPEATED_CHAR = re.compile(r"(.)\1{4,}")
_EXCESS_PUNCT = re.compile(r"!{3,}|\?{3,}")
_UNSAFE_MEDIA_NAME = re.compile(r"\b(nude|naked|sex|porn|xxx|nsfw)\b", re.I)

MIN_TEXT_LENGTH = 10
MAX_TEXT_LENGTH = 2000


class RuleBasedClassifier(ModerationClassifier):
    """Deterministic pattern classifier. Returns a decision for any input."""

    name = "rules"

    async def classify(self, text: str, media_ref: str | None = None) -> ModerationDecision:
        return self.classify_sync(text, media_ref)

    def classify_sync(self, text: object, media_ref: object = None) -> ModerationDecision:
        text = "" if text is None else str(text)

        if not text.strip():
            return self._reject("Empty content not allowed", 1.0)
        if len(text) > MAX_TEXT_LENGTH:
            return self._reject(f"Content too long (max {MAX_TEXT_LENGTH} characters)", 1.0)
        if len(text) < MIN_TEXT_LENGTH:
            return self._reject(f"Content too short (min {MIN_TEXT_LENGTH} characters)", 0.8)

        for pattern, reason in _BANNED:
            if pattern.search(text):
                return self._reject(reason, 0.9)

        caps = sum(1 for c in text if "A" <= c <= "Z")
        if len(text) > 20 and caps / len(text) > 0.7:
            return self._reject("Excessive capitalization (spam indicator)", 0.8)
        if _REPEATED_CHAR.search(text):
            return self._reject("Repetitive characters (spam indicator)", 0.7)
        if _EXCESS_PUNCT.search(text):
            return self._reject("Excessive punctuation (spam indicator)", 0.6)

        suspicious = sum(0.3 for pattern in _SUSPICIOUS if pattern.search(text))
        if suspicious > 0.6:
            return self._reject("Content flagged for manual review", 0.6)

        if media_ref and _UNSAFE_MEDIA_NAME.search(str(media_ref)):
            return self._reject("Inappropriate media name", 0.8)

        return ModerationDecision(approved=True, confidence=0.9, classifier=self.name)

    def _reject(self, reason: str, confidence: float) -> ModerationDecision:
        return ModerationDecision(
            approved=False, reason=reason, confidence=confidence, classifier=self.name
        )


# ------------------------------------------
# HOSTED PRIMARY
# ------------------------------------------


class OpenAIModerationClassifier(ModerationClassifier):
    """Calls an OpenAI-compatible ``/moderations`` endpoint."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.openai.com/v1/moderations",
        model: str = "omni-moderation-latest",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.model = model
        self._api_key = api_key
        self._client = client or httpx.AsyncClient()

    async def classify(self, text: str, media_ref: str | None = None) -> ModerationDecision:
        inputs: list[dict] = [{"type": "text", "text": text}]
        if media_ref and media_ref.startswith(("http://", "https://")):
            inputs.append({"type": "image_url", "image_url": {"url": media_ref}})

        response = await self._client.post(
            self.url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={"model": self.model, "input": inputs},
        )
        response.raise_for_status()
        result = response.json()["results"][0]

        if not result["flagged"]:
            return ModerationDecision(approved=True, confidence=0.95, classifier=self.name)

        violations = [name for name, hit in result.get("categories", {}).items() if hit]
        primary = violations[0] if violations else "policy_violation"
        scores = result.get("category_scores") or {}
        top = max(scores.values(), default=0.9)
        return ModerationDecision(
            approved=False,
            reason=f"Content violates community guidelines: {re.sub(r'[/_]', ' ', primary)}",
            confidence=min(float(top) + 0.1, 1.0),
            classifier=self.name,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


# ------------------------------------------
# GATE
# ------------------------------------------


class ModerationGate:
    def __init__(
        self,
        primary: ModerationClassifier | None = None,
        fallback: RuleBasedClassifier | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.primary = primary
        self.fallback = fallback or RuleBasedClassifier()
        self.timeout_seconds = timeout_seconds

    async def evaluate(self, context: str, media_ref: str | None = None) -> ModerationDecision:
        """Classify a submission. Never raises for classifier failures."""
        if self.primary is not None:
            try:
                return await asyncio.wait_for(
                    self.primary.classify(context, media_ref), self.timeout_seconds
                )
            except Exception as e:
                logger.warning(
                    "moderation_primary_failed",
                    classifier=self.primary.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
        return self.fallback.classify_sync(context, media_ref)

    async def enforce(self, context: str, media_ref: str | None = None) -> ModerationDecision:
        """Evaluate and raise ModerationRejected on a rejection."""
        decision = await self.evaluate(context, media_ref)
        if not decision.approved:
            logger.info(
                "moderation_rejected",
                classifier=decision.classifier,
                reason=decision.reason,
                confidence=decision.confidence,
            )
            raise ModerationRejected(decision.reason or "Content rejected by moderation")
        return decision

"""Tests for the moderation gate and its classifiers."""

import asyncio
import json

import httpx
import pytest

from verdict.errors import ModerationRejected
from verdict.services.moderation import (
    ModerationClassifier,
    ModerationDecision,
    ModerationGate,
    OpenAIModerationClassifier,
    RuleBasedClassifier,
)

CLEAN_TEXT = "Is this outfit right for a summer wedding in the garden?"


class ExplodingClassifier(ModerationClassifier):
    name = "exploding"

    async def classify(self, text, media_ref=None):
        raise ConnectionError("moderation host unreachable")


class SlowClassifier(ModerationClassifier):
    name = "slow"

    async def classify(self, text, media_ref=None):
        await asyncio.sleep(5)
        return ModerationDecision(approved=True, classifier=self.name)


class RejectingClassifier(ModerationClassifier):
    name = "strict"

    async def classify(self, text, media_ref=None):
        return ModerationDecision(approved=False, reason="policy", classifier=self.name)


def openai_classifier(handler) -> OpenAIModerationClassifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIModerationClassifier(api_key="sk-test", url="https://mod.test/v1/moderations", client=client)


class TestRuleBasedClassifier:
    """Deterministic fallback rules."""

    def setup_method(self):
        self.rules = RuleBasedClassifier()

    def test_clean_text_approved(self):
        decision = self.rules.classify_sync(CLEAN_TEXT)
        assert decision.approved is True
        assert decision.classifier == "rules"

    @pytest.mark.parametrize(
        "text,reason",
        [
            ("", "Empty content"),
            ("   ", "Empty content"),
            ("too short", "too short"),
            ("x" * 2001, "too long"),
            ("Please rate my nude beach photo today", "Sexual content"),
            ("Would this outfit hurt my chances tonight?", "Violent content"),
            ("Click here for a free upgrade on my profile", "Spam content"),
            ("Call me at 555-123-4567 for the details", "Phone numbers"),
            ("Send thoughts to someone@example.com please", "Email addresses"),
            ("WHICH PHOTO IS BETTER FOR MY PROFILE", "capitalization"),
            ("Which one is better sooooooo confused", "Repetitive characters"),
            ("Which one should I pick!!! really", "punctuation"),
        ],
    )
    def test_rejections(self, text, reason):
        decision = self.rules.classify_sync(text)
        assert decision.approved is False
        assert reason in decision.reason

    def test_suspicious_score_threshold(self):
        two_hits = "Urgent help, do I look ugly in this jacket?"
        three_hits = "Urgent help, do I look ugly at my home address?"
        assert self.rules.classify_sync(two_hits).approved is True
        decision = self.rules.classify_sync(three_hits)
        assert decision.approved is False
        assert decision.reason == "Content flagged for manual review"

    def test_unsafe_media_name(self):
        decision = self.rules.classify_sync(CLEAN_TEXT, "https://cdn.example.com/nsfw.jpg")
        assert decision.approved is False
        assert decision.reason == "Inappropriate media name"

    def test_none_text_is_empty(self):
        assert self.rules.classify_sync(None).approved is False


class TestOpenAIModerationClassifier:
    """Hosted classifier over a mocked transport."""

    @pytest.mark.asyncio
    async def test_clean_response_approves(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"results": [{"flagged": False}]})

        classifier = openai_classifier(handler)
        decision = await classifier.classify(CLEAN_TEXT, "https://cdn.example.com/a.jpg")
        await classifier.aclose()

        assert decision.approved is True
        assert decision.classifier == "openai"
        assert seen["auth"] == "Bearer sk-test"
        assert [i["type"] for i in seen["body"]["input"]] == ["text", "image_url"]

    @pytest.mark.asyncio
    async def test_flagged_response_rejects_with_category(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "results": [
                        {
                            "flagged": True,
                            "categories": {"harassment": False, "self-harm/intent": True},
                            "category_scores": {"self-harm/intent": 0.97},
                        }
                    ]
                },
            )

        decision = await openai_classifier(handler).classify(CLEAN_TEXT)
        assert decision.approved is False
        assert decision.reason == "Content violates community guidelines: self-harm intent"
        assert decision.confidence == 1.0

    @pytest.mark.asyncio
    async def test_non_http_media_ref_not_sent(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"results": [{"flagged": False}]})

        await openai_classifier(handler).classify(CLEAN_TEXT, "local/a.jpg")
        assert len(bodies[0]["input"]) == 1


class TestModerationGate:
    """Primary-with-fallback evaluation."""

    @pytest.mark.asyncio
    async def test_no_primary_uses_rules(self):
        decision = await ModerationGate().evaluate(CLEAN_TEXT)
        assert decision.approved is True
        assert decision.classifier == "rules"

    @pytest.mark.asyncio
    async def test_primary_error_falls_back(self):
        gate = ModerationGate(primary=ExplodingClassifier())
        decision = await gate.evaluate(CLEAN_TEXT)
        assert decision.approved is True
        assert decision.classifier == "rules"

    @pytest.mark.asyncio
    async def test_primary_timeout_falls_back(self):
        gate = ModerationGate(primary=SlowClassifier(), timeout_seconds=0.01)
        decision = await gate.evaluate("Please rate my nude beach photo today")
        assert decision.approved is False
        assert decision.classifier == "rules"

    @pytest.mark.asyncio
    async def test_primary_http_error_falls_back(self):
        primary = openai_classifier(lambda request: httpx.Response(500, text="upstream down"))
        decision = await ModerationGate(primary=primary).evaluate(CLEAN_TEXT)
        assert decision.classifier == "rules"

    @pytest.mark.asyncio
    async def test_primary_malformed_body_falls_back(self):
        primary = openai_classifier(lambda request: httpx.Response(200, json={"unexpected": []}))
        decision = await ModerationGate(primary=primary).evaluate(CLEAN_TEXT)
        assert decision.classifier == "rules"

    @pytest.mark.asyncio
    async def test_primary_rejection_is_final(self):
        gate = ModerationGate(primary=RejectingClassifier())
        decision = await gate.evaluate(CLEAN_TEXT)
        assert decision.approved is False
        assert decision.classifier == "strict"

    @pytest.mark.asyncio
    async def test_enforce_raises_on_rejection(self):
        with pytest.raises(ModerationRejected) as exc_info:
            await ModerationGate().enforce("Please rate my nude beach photo today")
        assert exc_info.value.status_code == 400
        assert exc_info.value.to_dict()["error"] == "moderation_rejected"

    @pytest.mark.asyncio
    async def test_enforce_returns_approval(self):
        decision = await ModerationGate().enforce(CLEAN_TEXT)
        assert decision.approved is True

"""Tests for settings loading, logging setup and container wiring."""

import pydantic
import pytest
import structlog

from tests.factories import make_settings
from verdict.config import Settings
from verdict.container import build_container, build_moderation_gate, build_rate_limiter
from verdict.logging_config import bind_request_context, clear_request_context
from verdict.services.moderation import OpenAIModerationClassifier
from verdict.services.rate_limiter import RedisSlidingWindowLimiter, TokenBucketLimiter
from verdict.store.memory import InMemoryRequestStore


class TestSettings:

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("VERDICT_JWT_SECRET", "env-secret-value")
        monkeypatch.setenv("VERDICT_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("VERDICT_RATE_LIMIT_REQUESTS", "5")
        monkeypatch.setenv("VERDICT_CORS_ORIGINS", "https://a.example, https://b.example")

        settings = Settings()

        assert settings.jwt_secret == "env-secret-value"
        assert settings.storage_backend == "memory"
        assert settings.rate_limit_requests == 5
        assert settings.cors_origin_list == ["https://a.example", "https://b.example"]

    def test_jwt_secret_required(self, monkeypatch):
        monkeypatch.delenv("VERDICT_JWT_SECRET", raising=False)
        with pytest.raises(pydantic.ValidationError):
            Settings()

    def test_unknown_storage_backend_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            make_settings(storage_backend="mongo")


class TestContainerWiring:

    def test_memory_backend(self, settings):
        container = build_container(settings)
        assert isinstance(container.requests, InMemoryRequestStore)
        assert container.database is None
        assert container.request_service.ledger is container.ledger

    def test_rate_limiter_backend_follows_redis_url(self):
        assert isinstance(build_rate_limiter(make_settings()), TokenBucketLimiter)
        limiter = build_rate_limiter(make_settings(redis_url="redis://localhost:6379/0"))
        assert isinstance(limiter, RedisSlidingWindowLimiter)

    def test_moderation_primary_needs_api_key(self):
        assert build_moderation_gate(make_settings()).primary is None
        gate = build_moderation_gate(make_settings(moderation_api_key="sk-test", moderation_timeout_seconds=2))
        assert isinstance(gate.primary, OpenAIModerationClassifier)
        assert gate.timeout_seconds == 2

    @pytest.mark.asyncio
    async def test_startup_and_shutdown(self, container):
        await container.startup()
        await container.shutdown()
        assert container.bus.pending == 0


class TestRequestContext:

    def test_bind_and_clear(self):
        bind_request_context(request_id="abc123", path="/requests")
        assert structlog.contextvars.get_contextvars()["request_id"] == "abc123"

        clear_request_context()
        context = structlog.contextvars.get_contextvars()
        assert "request_id" not in context
        structlog.contextvars.unbind_contextvars("path")

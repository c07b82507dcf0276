"""FastAPI dependencies that hand routes the app's wired services."""

from uuid import UUID

from fastapi import Depends, Request, Response

from verdict.auth import get_current_account
from verdict.container import Container
from verdict.errors import RateLimited
from verdict.logging_config import get_logger
from verdict.services.request_service import RequestService
from verdict.services.verdict_ingestion import VerdictIngestion

logger = get_logger(__name__)


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_request_service(container: Container = Depends(get_container)) -> RequestService:
    return container.request_service


def get_ingestion(container: Container = Depends(get_container)) -> VerdictIngestion:
    return container.ingestion


async def enforce_rate_limit(
    request: Request,
    response: Response,
    account_id: UUID = Depends(get_current_account),
    container: Container = Depends(get_container),
) -> UUID:
    """Per-account back-pressure. Runs before the endpoint does any work."""
    decision = await container.rate_limiter.check(str(account_id))
    if not decision.allowed:
        logger.warning(
            "rate_limit_exceeded",
            account_id=str(account_id),
            path=request.url.path,
            limit=decision.limit,
        )
        raise RateLimited(decision.retry_after)

    response.headers["X-RateLimit-Limit"] = str(decision.limit)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
    return account_id

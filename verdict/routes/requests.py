"""Request endpoints: create, list, inspect, cancel and delete."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from verdict.auth import get_current_account
from verdict.dependencies import enforce_rate_limit, get_request_service
from verdict.logging_config import get_logger
from verdict.schemas import (
    CreateRequestBody,
    RequestListResponse,
    RequestResponse,
    RequestSummary,
    VerdictResponse,
)
from verdict.services.request_service import RequestService

logger = get_logger(__name__)
router = APIRouter(prefix="/requests", tags=["requests"])


@router.get("", response_model=RequestListResponse)
async def list_requests(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    account_id: UUID = Depends(enforce_rate_limit),
    service: RequestService = Depends(get_request_service),
):
    """Caller's requests across all variants, newest first."""
    requests = await service.list_for_owner(account_id, limit=limit, offset=offset)
    return RequestListResponse(
        items=[RequestSummary.from_domain(r) for r in requests],
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=RequestResponse, status_code=201)
async def create_request(
    body: CreateRequestBody,
    account_id: UUID = Depends(enforce_rate_limit),
    service: RequestService = Depends(get_request_service),
):
    """Create a request. Charges the tier's credits once moderation approves."""
    request = await service.create(account_id, body.model_dump())
    return RequestResponse.from_domain(request)


@router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: UUID,
    account_id: UUID = Depends(get_current_account),
    service: RequestService = Depends(get_request_service),
):
    request = await service.get(request_id)
    return RequestResponse.from_domain(request)


@router.post("/{request_id}/cancel", response_model=RequestResponse)
async def cancel_request(
    request_id: UUID,
    account_id: UUID = Depends(get_current_account),
    service: RequestService = Depends(get_request_service),
):
    """Owner-only. Credits are not refunded."""
    request = await service.cancel(account_id, request_id)
    return RequestResponse.from_domain(request)


@router.delete("/{request_id}", status_code=204)
async def delete_request(
    request_id: UUID,
    account_id: UUID = Depends(get_current_account),
    service: RequestService = Depends(get_request_service),
):
    await service.delete(account_id, request_id)


@router.get("/{request_id}/verdicts", response_model=list[VerdictResponse])
async def list_request_verdicts(
    request_id: UUID,
    account_id: UUID = Depends(get_current_account),
    service: RequestService = Depends(get_request_service),
):
    """All verdicts on the caller's own request."""
    verdicts = await service.list_verdicts(account_id, request_id)
    return [VerdictResponse.from_domain(v) for v in verdicts]

"""Consensus read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends

from verdict.auth import get_current_account
from verdict.dependencies import get_request_service
from verdict.domain import RequestStatus
from verdict.errors import ConsensusNotReady
from verdict.schemas import ConsensusResponse
from verdict.services.request_service import RequestService

router = APIRouter(prefix="/consensus", tags=["consensus"])


@router.get("/{request_id}", response_model=ConsensusResponse)
async def get_consensus(
    request_id: UUID,
    account_id: UUID = Depends(get_current_account),
    service: RequestService = Depends(get_request_service),
):
    """Aggregated outcome. 409 until every verdict is in."""
    request = await service.get(request_id)
    if request.status != RequestStatus.completed or request.outcome is None:
        raise ConsensusNotReady(request.received_verdict_count, request.target_verdict_count)
    return ConsensusResponse(
        request_id=request.id,
        request_type=request.variant.value,
        status=request.status.value,
        verdict_count=request.received_verdict_count,
        outcome=request.outcome.model_dump(mode="json"),
    )

"""Credit balance endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from verdict.auth import get_current_account
from verdict.container import Container
from verdict.dependencies import get_container
from verdict.schemas import CreditsResponse

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("", response_model=CreditsResponse)
async def get_credits(
    limit: int = Query(default=20, ge=1, le=100),
    account_id: UUID = Depends(get_current_account),
    container: Container = Depends(get_container),
):
    """Current balance and the most recent ledger entries."""
    balance = await container.ledger.balance(account_id)
    entries = await container.ledger.entries(account_id, limit=limit)
    return CreditsResponse.build(account_id, balance, entries)

"""Verdict submission endpoints, one per request variant."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends

from verdict.auth import get_current_account
from verdict.dependencies import get_ingestion
from verdict.domain import RequestVariant
from verdict.schemas import VerdictResponse
from verdict.services.verdict_ingestion import VerdictIngestion

router = APIRouter(tags=["verdicts"])


async def _submit(
    ingestion: VerdictIngestion,
    request_id: UUID,
    judge_id: UUID,
    body: dict[str, Any],
    variant: RequestVariant,
) -> VerdictResponse:
    verdict = await ingestion.submit(request_id, judge_id, body, expected_variant=variant)
    return VerdictResponse.from_domain(verdict)


@router.post("/requests/{request_id}/verdict", response_model=VerdictResponse, status_code=201)
async def submit_standard_verdict(
    request_id: UUID,
    body: dict[str, Any] = Body(...),
    judge_id: UUID = Depends(get_current_account),
    ingestion: VerdictIngestion = Depends(get_ingestion),
):
    """Rating, tone and written feedback on a standard request."""
    return await _submit(ingestion, request_id, judge_id, body, RequestVariant.standard)


@router.post("/comparisons/{request_id}/verdict", response_model=VerdictResponse, status_code=201)
async def submit_comparison_verdict(
    request_id: UUID,
    body: dict[str, Any] = Body(...),
    judge_id: UUID = Depends(get_current_account),
    ingestion: VerdictIngestion = Depends(get_ingestion),
):
    return await _submit(ingestion, request_id, judge_id, body, RequestVariant.comparison)


@router.post("/split-tests/{request_id}/verdict", response_model=VerdictResponse, status_code=201)
async def submit_split_test_verdict(
    request_id: UUID,
    body: dict[str, Any] = Body(...),
    judge_id: UUID = Depends(get_current_account),
    ingestion: VerdictIngestion = Depends(get_ingestion),
):
    return await _submit(ingestion, request_id, judge_id, body, RequestVariant.split_test)

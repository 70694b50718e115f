"""
Attempt API Router

Endpoints a student uses to take an assessment: start (or resume), fetch the
attempt in progress, submit answers, complete and abandon. The caller is
identified by the ``X-User-Id`` header; errors are raised as PlatformError and
turned into responses by the application's exception handler.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Path, Request

from backend.attempts.schemas import AbandonRequest, SubmitAnswerRequest, start_response
from backend.attempts.service import ABANDONED_BY_USER, AttemptService
from backend.common.auth import get_current_user_id
from backend.common.serialization import camelize

logger = logging.getLogger(__name__)

router = APIRouter()


def get_attempt_service(request: Request) -> AttemptService:
    return request.app.state.container.attempt_service


@router.post("/{assessment_id}/start")
async def start_attempt(
    assessment_id: str = Path(..., description="ID of the assessment to take"),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> Dict[str, Any]:
    """
    Start an attempt, or resume the one already in progress.

    The response lists the questions without their correct answers.
    """
    result = await service.start(user_id, assessment_id)
    return start_response(result.attempt, result.resumed)


@router.get("/{assessment_id}/attempt")
async def get_active_attempt(
    assessment_id: str = Path(..., description="ID of the assessment"),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> Dict[str, Any]:
    """Get the caller's attempt in progress."""
    attempt = await service.get_active(user_id, assessment_id)
    return {"attempt": attempt.to_api_dict()}


@router.put("/{assessment_id}/attempt")
async def submit_answer(
    payload: SubmitAnswerRequest,
    assessment_id: str = Path(..., description="ID of the assessment"),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> Dict[str, Any]:
    """Grade and record one answer of the caller's attempt in progress."""
    attempt = await service.require_active(user_id, assessment_id)
    result = await service.submit_answer(
        attempt.id,
        question_index=payload.question_index,
        user_answer=payload.user_answer,
        time_spent_seconds=payload.time_spent,
    )
    return camelize(result.to_dict())


@router.post("/{assessment_id}/complete")
async def complete_attempt(
    assessment_id: str = Path(..., description="ID of the assessment"),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> Dict[str, Any]:
    """Complete the caller's attempt in progress and return the scored attempt."""
    attempt = await service.require_active(user_id, assessment_id)
    result = await service.complete(attempt.id)
    logger.info(f"User {user_id} completed assessment {assessment_id} with score {result.attempt.score}")
    return {
        "attempt": result.attempt.to_api_dict(),
        "userScore": camelize(result.user_score),
    }


@router.post("/{assessment_id}/abandon")
async def abandon_attempt(
    assessment_id: str = Path(..., description="ID of the assessment"),
    payload: Optional[AbandonRequest] = Body(None),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> Dict[str, Any]:
    """Give up on the caller's attempt in progress."""
    attempt = await service.require_active(user_id, assessment_id)
    reason = payload.reason if payload and payload.reason else ABANDONED_BY_USER
    abandoned = await service.abandon(attempt.id, reason)
    return {"attempt": abandoned.to_api_dict()}
